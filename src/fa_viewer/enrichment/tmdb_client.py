"""Async TMDB API client.

Thin wrapper over the v3 ``/search/{movie,tv}`` and ``/{movie,tv}/{id}``
endpoints using a shared :class:`httpx.AsyncClient`.  Authentication is the
v3 ``api_key`` query parameter.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fa_viewer.core.exceptions import EnrichmentError
from fa_viewer.core.schemas.films import FilmType
from fa_viewer.enrichment.config import (
    MAX_CANDIDATES_PER_INDEX,
    TMDB_BASE_URL,
    TMDB_MEDIA_PATHS,
    TMDB_TIMEOUT,
)

logger = logging.getLogger(__name__)


class TMDBClient:
    """Async HTTP client for the TMDB API.

    Args:
        client: Shared HTTP client.
        api_key: TMDB v3 API key.
        language: Language for overviews and genre names (e.g. ``"es-ES"``).
        base_url: API base URL.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        *,
        language: str = "es-ES",
        base_url: str = TMDB_BASE_URL,
        timeout: float = TMDB_TIMEOUT,
    ) -> None:
        self._client = client
        self._api_key = api_key.strip()
        self._language = language
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        query: dict[str, Any] = {"api_key": self._api_key, "language": self._language}
        query.update(params or {})
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(
                url,
                params=query,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.RequestError as exc:
            raise EnrichmentError(f"tmdb: request error on {path}: {exc}") from exc

        if response.status_code == 401:
            raise EnrichmentError("tmdb: invalid API key", status_code=401)
        if response.status_code >= 400:
            raise EnrichmentError(
                f"tmdb: HTTP {response.status_code} on {path}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise EnrichmentError(f"tmdb: invalid JSON from {path}") from exc
        if not isinstance(data, dict):
            raise EnrichmentError(f"tmdb: unexpected payload from {path}")
        return data

    async def search(self, media_type: FilmType, query: str) -> list[dict[str, Any]]:
        """Return up to five search results for *query* in one index.

        No year filter is sent; years are scored afterwards.

        Raises:
            EnrichmentError: On HTTP or network failure (``status_code=401``
                for a rejected key).
        """
        path = f"/search/{TMDB_MEDIA_PATHS[media_type]}"
        data = await self._get(path, {"query": query, "page": 1, "include_adult": "false"})
        results = data.get("results") or []
        if not isinstance(results, list):
            return []
        return [r for r in results if isinstance(r, dict)][:MAX_CANDIDATES_PER_INDEX]

    async def details(self, media_type: FilmType, tmdb_id: int) -> dict[str, Any]:
        """Return the detail payload for one movie or TV show.

        Raises:
            EnrichmentError: On HTTP or network failure.
        """
        return await self._get(f"/{TMDB_MEDIA_PATHS[media_type]}/{tmdb_id}")
