"""Build the configured :class:`~fa_viewer.storage.base.FilmStore`."""

from __future__ import annotations

import logging
from datetime import timedelta

from fa_viewer.config.settings import Settings
from fa_viewer.storage.base import FilmStore
from fa_viewer.storage.file import JsonFileStore
from fa_viewer.storage.memory import MemoryStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> FilmStore:
    """Return a store instance for ``settings.store_backend``."""
    backend = settings.store_backend
    if backend == "file":
        store: FilmStore = JsonFileStore(settings.store_file_path)
    elif backend == "redis":
        from fa_viewer.storage.redis import RedisStore  # noqa: PLC0415

        store = RedisStore.from_url(
            settings.redis_url,
            enrichment_ttl=timedelta(days=settings.enrichment_ttl_days),
        )
    else:
        store = MemoryStore()
    logger.info("store: using %s backend", store.name)
    return store
