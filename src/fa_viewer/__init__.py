"""FA Viewer: FilmAffinity list scraper with TMDB enrichment."""

__version__ = "0.1.0"
