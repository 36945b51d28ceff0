"""Abstract storage contract shared by every persistence backend.

Three logical collections, each keyed uniquely:

- lists:       list key  -> :class:`~fa_viewer.core.schemas.films.ListSnapshot`
- marks:       list key  -> ordered list of film id strings
- enrichment:  film id   -> :class:`~fa_viewer.core.schemas.films.EnrichmentCacheEntry`

Every operation is asynchronous and idempotent.  Saves are full upserts;
there are no multi-key transactions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from fa_viewer.core.schemas.films import EnrichmentCacheEntry, ListSnapshot


class FilmStore(ABC):
    """Uniform key-value contract implemented by memory, file and Redis stores."""

    #: Short backend identifier reported by the health endpoint.
    name: str = "abstract"

    @abstractmethod
    async def get_list(self, key: str) -> ListSnapshot | None:
        """Return the stored snapshot for *key*, or ``None``."""

    @abstractmethod
    async def save_list(self, key: str, snapshot: ListSnapshot) -> None:
        """Insert or replace the snapshot stored under *key*."""

    @abstractmethod
    async def get_marks(self, key: str) -> list[str]:
        """Return the marks stored under *key*, or an empty list."""

    @abstractmethod
    async def save_marks(self, key: str, marks: list[str]) -> None:
        """Replace the marks stored under *key*."""

    @abstractmethod
    async def get_enrichment(self, film_id: str) -> EnrichmentCacheEntry | None:
        """Return the cached enrichment for *film_id*, or ``None``."""

    @abstractmethod
    async def save_enrichment(self, film_id: str, entry: EnrichmentCacheEntry) -> None:
        """Insert or replace the cached enrichment for *film_id*."""

    async def ping(self) -> bool:
        """Return ``True`` when the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources.  No-op by default."""
        return None
