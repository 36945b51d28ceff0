"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
The TMDB credential and the store connection details are accessed
exclusively through this module; never call ``os.getenv`` directly
elsewhere in the codebase.

Usage::

    from fa_viewer.config.settings import get_settings

    settings = get_settings()
    if settings.enrichment_enabled:
        ...
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by ``FA_``-prefixed environment variables.

    Every field has a working default so the service starts with an
    in-memory store and enrichment disabled.
    """

    model_config = SettingsConfigDict(
        env_prefix="FA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "FA Viewer"
    """Human-readable application name shown in the OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    allowed_origins: list[str] = ["*"]
    """Origins permitted by the CORS middleware."""

    rate_limit: str = "60/minute"
    """Per-client limit applied to every ``/api/`` route."""

    rate_limit_enabled: bool = True
    """Enforce ``rate_limit``.  Disabled in the test suite."""

    metrics_enabled: bool = True
    """Expose Prometheus metrics at ``GET /metrics``."""

    static_dir: str = "public"
    """Directory holding the single-page frontend; skipped when missing."""

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    store_backend: Literal["memory", "file", "redis"] = "memory"
    """Which :class:`~fa_viewer.storage.base.FilmStore` implementation to use."""

    store_file_path: str = "data/fa_viewer.json"
    """JSON file used when ``store_backend="file"``."""

    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL used when ``store_backend="redis"``."""

    key_encoding: Literal["sha256", "base64"] = "sha256"
    """Encoding used to derive list keys from source URLs.

    ``base64`` reproduces the reversible keys older clients computed
    themselves; ``sha256`` avoids collisions between long URLs that share a
    common prefix.
    """

    # ------------------------------------------------------------------
    # Cache lifetimes
    # ------------------------------------------------------------------

    list_cache_ttl_hours: float = 24.0
    """Age after which a stored list snapshot is reported as stale."""

    film_cache_ttl_hours: float = 24.0
    """Lifetime of a scraped film detail page in the process cache."""

    enrichment_ttl_days: float = 7.0
    """Lifetime of positive and negative TMDB enrichment results."""

    # ------------------------------------------------------------------
    # Scraping
    # ------------------------------------------------------------------

    request_timeout: float = 20.0
    """Per-request timeout (seconds) for FilmAffinity page fetches."""

    session_ttl_seconds: float = 3600.0
    """Age after which the FilmAffinity session cookie is renewed."""

    max_pages: int = 30
    """Upper bound on paginated list pages fetched by one refresh job."""

    page_delay_min: float = 2.0
    """Minimum pause between two list page fetches (seconds)."""

    page_delay_max: float = 3.0
    """Maximum pause between two list page fetches (seconds)."""

    film_delay_min: float = 0.8
    """Minimum pause before an uncached film detail fetch (seconds)."""

    film_delay_max: float = 1.5
    """Maximum pause before an uncached film detail fetch (seconds)."""

    # ------------------------------------------------------------------
    # TMDB enrichment
    # ------------------------------------------------------------------

    tmdb_api_key: str = ""
    """TMDB v3 API key.  Enrichment is skipped entirely when empty."""

    tmdb_language: str = "es-ES"
    """Language requested for TMDB synopses and genre names."""

    enrich_delay: float = 0.08
    """Pause between two consecutive enrichment lookups (seconds)."""

    @property
    def enrichment_enabled(self) -> bool:
        """``True`` when a TMDB credential is configured."""
        return bool(self.tmdb_api_key.strip())


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    In tests, call ``get_settings.cache_clear()`` after patching environment
    variables.
    """
    return Settings()
