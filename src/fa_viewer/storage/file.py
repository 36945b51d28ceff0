"""Single-file JSON store for deployments without a database.

The whole document is loaded lazily on first access and rewritten after
every save.  Writes go to a temporary sibling file that is then renamed
over the target, so a crash mid-write never leaves a truncated document.
Blocking file I/O runs in a worker thread via :func:`asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from fa_viewer.core.exceptions import StoreError
from fa_viewer.core.schemas.films import EnrichmentCacheEntry, ListSnapshot
from fa_viewer.storage.base import FilmStore

logger = logging.getLogger(__name__)

_COLLECTIONS: tuple[str, ...] = ("lists", "marks", "enrichment")


class JsonFileStore(FilmStore):
    """Persist the three collections as one JSON object on disk.

    Args:
        path: Location of the JSON document.  Parent directories are
            created on first write.
    """

    name = "file"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, dict[str, Any]] | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ io

    def _read_sync(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {name: {} for name in _COLLECTIONS}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"store: cannot read {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StoreError(f"store: {self._path} does not contain a JSON object")
        return {name: dict(raw.get(name) or {}) for name in _COLLECTIONS}

    def _write_sync(self, data: dict[str, dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StoreError(f"store: cannot write {self._path}: {exc}") from exc

    async def _read_locked(self) -> dict[str, dict[str, Any]]:
        """Load the document once; the caller holds ``self._lock``."""
        if self._data is None:
            self._data = await asyncio.to_thread(self._read_sync)
            logger.info(
                "store: loaded %s (%d lists, %d enrichment entries)",
                self._path,
                len(self._data["lists"]),
                len(self._data["enrichment"]),
            )
        return self._data

    async def _load(self) -> dict[str, dict[str, Any]]:
        if self._data is None:
            async with self._lock:
                return await self._read_locked()
        return self._data

    async def _put(self, collection: str, key: str, value: Any) -> None:
        async with self._lock:
            data = await self._read_locked()
            data[collection][key] = value
            # Serialise under the lock so concurrent saves never interleave.
            await asyncio.to_thread(self._write_sync, data)

    # --------------------------------------------------------------- lists

    async def get_list(self, key: str) -> ListSnapshot | None:
        raw = (await self._load())["lists"].get(key)
        return ListSnapshot.model_validate(raw) if raw is not None else None

    async def save_list(self, key: str, snapshot: ListSnapshot) -> None:
        await self._put("lists", key, snapshot.model_dump(mode="json"))

    # --------------------------------------------------------------- marks

    async def get_marks(self, key: str) -> list[str]:
        return list((await self._load())["marks"].get(key) or [])

    async def save_marks(self, key: str, marks: list[str]) -> None:
        await self._put("marks", key, list(marks))

    # ---------------------------------------------------------- enrichment

    async def get_enrichment(self, film_id: str) -> EnrichmentCacheEntry | None:
        raw = (await self._load())["enrichment"].get(film_id)
        return EnrichmentCacheEntry.model_validate(raw) if raw is not None else None

    async def save_enrichment(self, film_id: str, entry: EnrichmentCacheEntry) -> None:
        await self._put("enrichment", film_id, entry.model_dump(mode="json"))

    async def ping(self) -> bool:
        try:
            await self._load()
        except StoreError:
            logger.exception("store: file backend unreadable")
            return False
        return True
