"""Cached TMDB enrichment of :class:`~fa_viewer.core.schemas.films.FilmRecord`.

:meth:`Enricher.enrich` never raises.  Every failure resolves to an empty
:class:`~fa_viewer.core.schemas.films.FilmEnrichment` plus a diagnostic tag:

=============== ==========================================================
``no_key``      no TMDB credential configured; nothing is looked up
``cache_hit``   a fresh cached entry was returned (may be empty)
``match``       a candidate was accepted and its fields returned
``no_match``    no candidate reached the threshold; cached as negative
``invalid_key`` TMDB rejected the credential; *not* cached
``error``       transient failure; *not* cached
=============== ==========================================================

Results are cached per film id in process memory and in the configured
:class:`~fa_viewer.storage.base.FilmStore`, both positive and negative, for
the enrichment TTL (7 days by default).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from fa_viewer.api.metrics import enrichment_lookups_total
from fa_viewer.core.exceptions import EnrichmentError, StoreError
from fa_viewer.core.schemas.films import EnrichmentCacheEntry, FilmEnrichment, FilmRecord
from fa_viewer.enrichment.config import DEFAULT_WEIGHTS, TMDB_IMAGE_BASE_URL, MatchWeights
from fa_viewer.enrichment.matching import Candidate, pick_best
from fa_viewer.enrichment.tmdb_client import TMDBClient
from fa_viewer.storage.base import FilmStore

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentResult:
    """Outcome of one :meth:`Enricher.enrich` call."""

    enrichment: FilmEnrichment
    tag: str

    @property
    def matched(self) -> bool:
        return not self.enrichment.is_empty


def _empty(tag: str) -> EnrichmentResult:
    enrichment_lookups_total.labels(outcome=tag).inc()
    return EnrichmentResult(enrichment=FilmEnrichment(), tag=tag)


def _runtime(media_type: str, detail: dict[str, Any]) -> int | None:
    if media_type == "series":
        runtimes = detail.get("episode_run_time") or []
        value = runtimes[0] if isinstance(runtimes, list) and runtimes else None
    else:
        value = detail.get("runtime")
    try:
        minutes = int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
    return minutes if minutes else None


def build_enrichment(candidate: Candidate, detail: dict[str, Any] | None) -> FilmEnrichment:
    """Assemble enrichment fields from a detail payload and its search result.

    Fields missing from both sources are left unset so they never overwrite
    what the scraper found; in particular a missing poster path never
    replaces the FilmAffinity poster.
    """
    source = detail or {}
    fallback = candidate.payload
    fields: dict[str, Any] = {"type": candidate.media_type}

    overview = source.get("overview") or fallback.get("overview")
    if overview:
        fields["synopsis"] = str(overview)

    duration = _runtime(candidate.media_type, source)
    if duration:
        fields["duration"] = duration

    genres = [g.get("name") for g in source.get("genres") or [] if isinstance(g, dict)]
    genres = [str(name) for name in genres if name]
    if genres:
        fields["genres"] = genres

    poster_path = source.get("poster_path") or fallback.get("poster_path")
    if poster_path:
        fields["poster"] = f"{TMDB_IMAGE_BASE_URL}{poster_path}"

    return FilmEnrichment(**fields)


class Enricher:
    """Look up FilmAffinity records on TMDB with positive and negative caching.

    Args:
        tmdb: TMDB client, or ``None`` when no credential is configured.
        store: Durable store for cache entries.
        ttl: Freshness window of a cache entry.
        weights: Scoring weights.
    """

    def __init__(
        self,
        tmdb: TMDBClient | None,
        store: FilmStore,
        *,
        ttl: timedelta = timedelta(days=7),
        weights: MatchWeights = DEFAULT_WEIGHTS,
    ) -> None:
        self._tmdb = tmdb
        self._store = store
        self._ttl = ttl
        self._weights = weights
        self._memory: dict[str, EnrichmentCacheEntry] = {}

    @property
    def enabled(self) -> bool:
        return self._tmdb is not None

    # ------------------------------------------------------------------ cache

    async def _cached(self, film_id: str) -> EnrichmentCacheEntry | None:
        entry = self._memory.get(film_id)
        if entry is None:
            try:
                entry = await self._store.get_enrichment(film_id)
            except StoreError as exc:
                logger.warning("enrichment: cache read failed for %s: %s", film_id, exc)
                return None
            if entry is not None:
                self._memory[film_id] = entry
        if entry is not None and entry.is_fresh(self._ttl):
            return entry
        return None

    async def _remember(self, film_id: str, enrichment: FilmEnrichment) -> None:
        entry = EnrichmentCacheEntry(data=enrichment.as_update())
        self._memory[film_id] = entry
        try:
            await self._store.save_enrichment(film_id, entry)
        except StoreError as exc:
            logger.warning("enrichment: cache write failed for %s: %s", film_id, exc)

    # ----------------------------------------------------------------- lookup

    async def enrich(self, film: FilmRecord) -> EnrichmentResult:
        """Return enrichment fields for *film*.  Never raises."""
        if self._tmdb is None:
            return EnrichmentResult(enrichment=FilmEnrichment(), tag="no_key")

        try:
            cached = await self._cached(film.id)
            if cached is not None:
                enrichment_lookups_total.labels(outcome="cache_hit").inc()
                return EnrichmentResult(enrichment=cached.to_enrichment(), tag="cache_hit")
            return await self._lookup(film)
        except Exception as exc:  # noqa: BLE001
            logger.warning("enrichment: lookup failed for %s (%r): %s", film.id, film.title, exc)
            return _empty("error")

    async def _lookup(self, film: FilmRecord) -> EnrichmentResult:
        assert self._tmdb is not None
        if not film.title.strip():
            await self._remember(film.id, FilmEnrichment())
            return _empty("no_match")

        movie_results, series_results = await asyncio.gather(
            self._tmdb.search("movie", film.title),
            self._tmdb.search("series", film.title),
            return_exceptions=True,
        )

        for outcome in (movie_results, series_results):
            if isinstance(outcome, EnrichmentError) and outcome.status_code == 401:
                logger.error("enrichment: TMDB rejected the API key")
                return _empty("invalid_key")
        for outcome in (movie_results, series_results):
            if isinstance(outcome, BaseException):
                logger.warning("enrichment: search failed for %s: %s", film.id, outcome)
                return _empty("error")

        candidates = [Candidate.from_result(r, "movie") for r in movie_results]
        candidates += [Candidate.from_result(r, "series") for r in series_results]

        best = pick_best(film, candidates, self._weights)
        if best is None:
            logger.debug("enrichment: no confident match for %s (%r)", film.id, film.title)
            await self._remember(film.id, FilmEnrichment())
            return _empty("no_match")

        detail: dict[str, Any] | None
        try:
            detail = await self._tmdb.details(best.media_type, best.tmdb_id)
        except EnrichmentError as exc:
            logger.info(
                "enrichment: detail call failed for tmdb %s/%d, using search fields: %s",
                best.media_type,
                best.tmdb_id,
                exc,
            )
            detail = None

        enrichment = build_enrichment(best, detail)
        await self._remember(film.id, enrichment)
        enrichment_lookups_total.labels(outcome="match").inc()
        logger.debug(
            "enrichment: %s (%r) -> tmdb %s/%d score=%d",
            film.id,
            film.title,
            best.media_type,
            best.tmdb_id,
            best.score,
        )
        return EnrichmentResult(enrichment=enrichment, tag="match")
