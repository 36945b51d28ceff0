"""In-process dictionary store.  State is lost on restart."""

from __future__ import annotations

from fa_viewer.core.schemas.films import EnrichmentCacheEntry, ListSnapshot
from fa_viewer.storage.base import FilmStore


class MemoryStore(FilmStore):
    name = "memory"

    def __init__(self) -> None:
        self._lists: dict[str, ListSnapshot] = {}
        self._marks: dict[str, list[str]] = {}
        self._enrichment: dict[str, EnrichmentCacheEntry] = {}

    async def get_list(self, key: str) -> ListSnapshot | None:
        return self._lists.get(key)

    async def save_list(self, key: str, snapshot: ListSnapshot) -> None:
        self._lists[key] = snapshot

    async def get_marks(self, key: str) -> list[str]:
        return list(self._marks.get(key, []))

    async def save_marks(self, key: str, marks: list[str]) -> None:
        self._marks[key] = list(marks)

    async def get_enrichment(self, film_id: str) -> EnrichmentCacheEntry | None:
        return self._enrichment.get(film_id)

    async def save_enrichment(self, film_id: str, entry: EnrichmentCacheEntry) -> None:
        self._enrichment[film_id] = entry
