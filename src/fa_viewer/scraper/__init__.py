"""FilmAffinity list scraper.

Sub-modules:
- ``config``         selectors, challenge markers, identities and retry timings
- ``session``        session cookie and client identity rotation
- ``http_fetcher``   async httpx page fetcher with backoff and challenge detection
- ``list_parser``    list-page HTML to :class:`FilmRecord` sequence
- ``film_parser``    detail-page HTML to :class:`FilmDetail`
- ``urls``           source URL validation, pagination and list keys
- ``jobs``           background refresh jobs with polled progress
- ``router``         FastAPI router (``/api/list``, ``/api/film``, ``/api/marks``)
"""
