"""TMDB enrichment of scraped film records.

Sub-modules:
- ``config``        endpoints, limits and scoring weights
- ``tmdb_client``   async httpx client for search and detail endpoints
- ``matching``      title normalisation and candidate scoring
- ``service``       :class:`Enricher`, the cached lookup used by refresh jobs
"""
