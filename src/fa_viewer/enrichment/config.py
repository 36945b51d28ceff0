"""Constants for the TMDB enrichment engine.

Scoring weights live in :class:`MatchWeights`; pass a custom instance to
the scorer instead of editing these defaults.
"""

from __future__ import annotations

from dataclasses import dataclass

#: TMDB v3 REST base URL.
TMDB_BASE_URL: str = "https://api.themoviedb.org/3"

#: Prefix for poster paths returned by TMDB.
TMDB_IMAGE_BASE_URL: str = "https://image.tmdb.org/t/p/w500"

#: Request timeout for TMDB calls (seconds).
TMDB_TIMEOUT: float = 10.0

#: Search results considered per index (movie and tv).
MAX_CANDIDATES_PER_INDEX: int = 5

#: TMDB index path segment for each FilmRecord type.
TMDB_MEDIA_PATHS: dict[str, str] = {
    "movie": "movie",
    "series": "tv",
}


@dataclass(frozen=True)
class MatchWeights:
    """Score contributions used by :func:`~fa_viewer.enrichment.matching.score_candidate`."""

    title_exact: int = 100
    title_affix: int = 30
    title_substring: int = 10
    title_unrelated: int = -60
    year_exact: int = 50
    year_adjacent: int = 20
    year_mismatch: int = -40
    type_match: int = 10
    accept_threshold: int = 40


DEFAULT_WEIGHTS = MatchWeights()
