"""FastAPI dependency injection providers.

Every long-lived component is built once in the application lifespan
(``api/main.py``) and stored on ``app.state``.  Route handlers receive them
through these providers so tests can swap any of them on a live app.

Provided components::

    get_app_settings   Settings the app was built with
    get_store          configured FilmStore backend
    get_job_manager    JobManager owning refresh tasks
    get_fetcher        PageFetcher shared with the jobs
    get_film_cache     in-process cache of scraped detail pages
"""

from __future__ import annotations

import time
from typing import Callable

from fastapi import Request

from fa_viewer.config.settings import Settings
from fa_viewer.core.schemas.films import FilmDetail
from fa_viewer.scraper.http_fetcher import PageFetcher
from fa_viewer.scraper.jobs import JobManager
from fa_viewer.storage.base import FilmStore


class FilmDetailCache:
    """Time-bounded cache of :class:`FilmDetail` keyed by film id.

    Args:
        ttl_seconds: Lifetime of an entry.
        clock: Time source (injectable for tests).
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, FilmDetail]] = {}

    def get(self, film_id: str) -> FilmDetail | None:
        entry = self._entries.get(film_id)
        if entry is None:
            return None
        stored_at, detail = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[film_id]
            return None
        return detail

    def put(self, detail: FilmDetail) -> None:
        """Store *detail* and drop every expired entry."""
        now = self._clock()
        self._prune(now)
        # Re-inserting keeps the dict ordered by storage time.
        self._entries.pop(detail.id, None)
        self._entries[detail.id] = (now, detail)

    def _prune(self, now: float) -> None:
        expired = []
        for film_id, (stored_at, _) in self._entries.items():
            if now - stored_at < self._ttl:
                break
            expired.append(film_id)
        for film_id in expired:
            del self._entries[film_id]

    def __len__(self) -> int:
        return len(self._entries)


def get_app_settings(request: Request) -> Settings:
    """Return the settings the running application was created with."""
    return request.app.state.settings


def get_store(request: Request) -> FilmStore:
    return request.app.state.store


def get_job_manager(request: Request) -> JobManager:
    return request.app.state.jobs


def get_fetcher(request: Request) -> PageFetcher:
    return request.app.state.fetcher


def get_film_cache(request: Request) -> FilmDetailCache:
    return request.app.state.film_cache
