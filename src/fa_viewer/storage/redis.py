"""Redis-backed document store.

Each document is a JSON string under a namespaced key::

    fa:list:{list_key}
    fa:marks:{list_key}
    fa:enrichment:{film_id}

Enrichment documents also receive a Redis expiry equal to the enrichment
TTL so stale lookups are evicted without a sweeper job.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from fa_viewer.core.exceptions import StoreError
from fa_viewer.core.schemas.films import EnrichmentCacheEntry, ListSnapshot
from fa_viewer.storage.base import FilmStore

logger = logging.getLogger(__name__)

_PREFIX = "fa"


class RedisStore(FilmStore):
    """Store documents in Redis.

    Args:
        client: An async Redis client.  Use :meth:`from_url` to build one.
        enrichment_ttl: Expiry applied to enrichment documents, or ``None``
            to keep them until overwritten.
    """

    name = "redis"

    def __init__(
        self,
        client: aioredis.Redis,
        enrichment_ttl: timedelta | None = None,
    ) -> None:
        self._client = client
        self._enrichment_ttl = enrichment_ttl

    @classmethod
    def from_url(cls, url: str, enrichment_ttl: timedelta | None = None) -> RedisStore:
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client, enrichment_ttl=enrichment_ttl)

    @staticmethod
    def _key(collection: str, key: str) -> str:
        return f"{_PREFIX}:{collection}:{key}"

    async def _get_json(self, collection: str, key: str) -> object | None:
        try:
            raw = await self._client.get(self._key(collection, key))
        except RedisError as exc:
            raise StoreError(f"store: redis GET {collection}:{key} failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("store: discarding corrupt %s document for %s", collection, key)
            return None

    async def _set_json(
        self,
        collection: str,
        key: str,
        value: object,
        ttl: timedelta | None = None,
    ) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        try:
            await self._client.set(self._key(collection, key), payload, ex=ttl)
        except RedisError as exc:
            raise StoreError(f"store: redis SET {collection}:{key} failed: {exc}") from exc

    async def get_list(self, key: str) -> ListSnapshot | None:
        raw = await self._get_json("list", key)
        return ListSnapshot.model_validate(raw) if raw is not None else None

    async def save_list(self, key: str, snapshot: ListSnapshot) -> None:
        await self._set_json("list", key, snapshot.model_dump(mode="json"))

    async def get_marks(self, key: str) -> list[str]:
        raw = await self._get_json("marks", key)
        return [str(m) for m in raw] if isinstance(raw, list) else []

    async def save_marks(self, key: str, marks: list[str]) -> None:
        await self._set_json("marks", key, list(marks))

    async def get_enrichment(self, film_id: str) -> EnrichmentCacheEntry | None:
        raw = await self._get_json("enrichment", film_id)
        return EnrichmentCacheEntry.model_validate(raw) if raw is not None else None

    async def save_enrichment(self, film_id: str, entry: EnrichmentCacheEntry) -> None:
        await self._set_json(
            "enrichment",
            film_id,
            entry.model_dump(mode="json"),
            ttl=self._enrichment_ttl,
        )

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            logger.exception("store: redis unreachable")
            return False

    async def close(self) -> None:
        await self._client.aclose()
