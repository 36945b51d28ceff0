"""Key-value persistence for list snapshots, marks and enrichment results.

Sub-modules:
- ``base``     abstract :class:`FilmStore` contract
- ``memory``   process-local dictionaries (default)
- ``file``     single JSON document on disk
- ``redis``    Redis-backed document store
- ``factory``  backend selection from settings
"""
