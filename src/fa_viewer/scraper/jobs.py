"""Background refresh jobs for FilmAffinity lists.

A refresh runs as an :mod:`asyncio` task owned by :class:`JobManager`:

1. Fetch page 1, parse its films and the total page count.
2. Fetch pages ``2..min(total, max_pages)`` strictly in sequence with a
   random pause between pages.  A page that fails or parses to zero films
   ends pagination; everything gathered so far is kept.
3. Reverse the accumulated films (FilmAffinity lists newest-first), drop
   duplicate ids keeping the first occurrence and persist the snapshot.
4. When an :class:`~fa_viewer.enrichment.service.Enricher` is enabled,
   enrich every film sequentially and persist the snapshot again.  Every
   record ends up flagged ``enriched``; a rejected TMDB key stops the
   lookups and flags the remaining records without enrichment data.

At most one job runs per list key.  Terminal states (``done`` / ``error``)
stay visible until one :meth:`JobManager.status` call reads them; that read
removes the job entry.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field

from fa_viewer.api.metrics import refresh_jobs_total
from fa_viewer.config.settings import Settings
from fa_viewer.core.exceptions import FaViewerError
from fa_viewer.core.schemas.films import FilmRecord, ListSnapshot
from fa_viewer.core.schemas.jobs import JobState, JobStatus
from fa_viewer.enrichment.service import Enricher
from fa_viewer.scraper.config import MAX_PAGES
from fa_viewer.scraper.http_fetcher import PageFetcher
from fa_viewer.scraper.list_parser import dedupe_films, parse_list_page, parse_total_pages
from fa_viewer.scraper.urls import page_url
from fa_viewer.storage.base import FilmStore

logger = logging.getLogger(__name__)


@dataclass
class _Job:
    key: str
    url: str
    status: JobState = "running"
    progress: str = "Starting"
    error: str | None = None
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class JobManager:
    """Single-flight registry of list refresh jobs.

    Args:
        fetcher: Page fetcher shared by every job.
        store: Store the finished snapshots are written to.
        enricher: Optional enrichment engine; skipped when ``None`` or
            disabled.
        max_pages: Hard cap on pages fetched per list.
        page_delay: ``(min, max)`` seconds slept between two page fetches.
        enrich_delay: Seconds slept between two enrichment lookups.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        store: FilmStore,
        enricher: Enricher | None = None,
        *,
        max_pages: int = MAX_PAGES,
        page_delay: tuple[float, float] = (2.0, 3.0),
        enrich_delay: float = 0.08,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._enricher = enricher
        self._max_pages = max_pages
        self._page_delay = page_delay
        self._enrich_delay = enrich_delay
        self._jobs: dict[str, _Job] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetcher: PageFetcher,
        store: FilmStore,
        enricher: Enricher | None = None,
    ) -> JobManager:
        return cls(
            fetcher,
            store,
            enricher,
            max_pages=settings.max_pages,
            page_delay=(settings.page_delay_min, settings.page_delay_max),
            enrich_delay=settings.enrich_delay,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_running(self, key: str) -> bool:
        job = self._jobs.get(key)
        return job is not None and job.status == "running"

    def start(self, key: str, url: str) -> JobStatus:
        """Start a refresh of *url* under *key* unless one is already running.

        Returns:
            The job's ``running`` status.  ``already_running`` is ``True``
            when an existing job was found and nothing new was started.
        """
        if self.is_running(key):
            existing = self._jobs[key]
            logger.info("scraper: refresh of %s already running", key)
            return JobStatus(
                key=key,
                status="running",
                progress=existing.progress,
                already_running=True,
            )

        job = _Job(key=key, url=url)
        self._jobs[key] = job
        job.task = asyncio.create_task(self._run(job), name=f"refresh:{key}")
        logger.info("scraper: refresh of %s started (%s)", key, url)
        return JobStatus(key=key, status="running", progress=job.progress)

    async def status(self, key: str) -> JobStatus:
        """Return the job status for *key*.

        Reading a ``done`` or ``error`` state removes the job entry, so the
        next read falls back to the stored snapshot (``done``) or ``idle``.
        """
        job = self._jobs.get(key)
        if job is None:
            snapshot = await self._store.get_list(key)
            if snapshot is not None:
                return JobStatus(key=key, status="done", snapshot=snapshot)
            return JobStatus(key=key, status="idle")

        if job.status == "running":
            return JobStatus(key=key, status="running", progress=job.progress)

        del self._jobs[key]
        if job.status == "error":
            return JobStatus(key=key, status="error", error=job.error)
        snapshot = await self._store.get_list(key)
        return JobStatus(key=key, status="done", snapshot=snapshot)

    def peek(self, key: str) -> JobState:
        """Return the current state without consuming it."""
        job = self._jobs.get(key)
        return job.status if job is not None else "idle"

    async def wait(self, key: str) -> None:
        """Await the task of the job registered under *key*, if any.

        Test hook: lets a caller block until a refresh finishes instead of
        polling :meth:`status`.  The task is shielded, so cancelling the
        waiter leaves the job running.
        """
        job = self._jobs.get(key)
        if job is not None and job.task is not None:
            await asyncio.shield(job.task)

    async def aclose(self) -> None:
        """Cancel every running job.  Called on application shutdown."""
        tasks = [job.task for job in self._jobs.values() if job.task and not job.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("scraper: cancelled %d running refresh job(s)", len(tasks))

    # ------------------------------------------------------------------
    # Task body
    # ------------------------------------------------------------------

    async def _run(self, job: _Job) -> None:
        try:
            films = await self._collect(job)
            snapshot = ListSnapshot(key=job.key, source_url=job.url, films=films)
            await self._store.save_list(job.key, snapshot)
            logger.info("scraper: %s saved with %d films", job.key, len(films))

            if self._enricher is not None and self._enricher.enabled and films:
                snapshot = snapshot.model_copy(update={"films": await self._enrich(job, films)})
                await self._store.save_list(job.key, snapshot)
                logger.info("scraper: %s saved after enrichment", job.key)

            job.progress = f"Done: {len(films)} films"
            job.status = "done"
            refresh_jobs_total.labels(status="done").inc()
        except asyncio.CancelledError:
            job.status = "error"
            job.error = "Refresh cancelled"
            raise
        except FaViewerError as exc:
            logger.warning("scraper: refresh of %s failed: %s", job.key, exc)
            job.status = "error"
            job.error = str(exc)
            refresh_jobs_total.labels(status="error").inc()
        except Exception as exc:  # noqa: BLE001
            logger.exception("scraper: refresh of %s crashed", job.key)
            job.status = "error"
            job.error = str(exc) or exc.__class__.__name__
            refresh_jobs_total.labels(status="error").inc()

    async def _collect(self, job: _Job) -> list[FilmRecord]:
        job.progress = "Fetching page 1"
        first = await self._fetcher.fetch_page(job.url)
        films = parse_list_page(first)
        total = min(parse_total_pages(first), self._max_pages)
        logger.info("scraper: %s page 1/%d -> %d films", job.key, total, len(films))

        for page in range(2, total + 1):
            job.progress = f"Fetching page {page} of {total} ({len(films)} films so far)"
            await asyncio.sleep(random.uniform(*self._page_delay))
            try:
                html = await self._fetcher.fetch_page(page_url(job.url, page))
            except FaViewerError as exc:
                logger.warning(
                    "scraper: %s page %d failed, keeping %d films: %s",
                    job.key,
                    page,
                    len(films),
                    exc,
                )
                break
            page_films = parse_list_page(html)
            if not page_films:
                logger.info("scraper: %s page %d is empty, stopping", job.key, page)
                break
            films.extend(page_films)
            logger.debug("scraper: %s page %d/%d -> %d films", job.key, page, total, len(page_films))

        films.reverse()
        return dedupe_films(films)

    async def _enrich(self, job: _Job, films: list[FilmRecord]) -> list[FilmRecord]:
        assert self._enricher is not None
        enriched: list[FilmRecord] = []
        matched = 0
        for index, film in enumerate(films, start=1):
            job.progress = f"Enriching {index} of {len(films)}"
            result = await self._enricher.enrich(film)
            if result.tag == "invalid_key":
                # Every further lookup would be rejected the same way.
                logger.error("scraper: %s enrichment stopped, TMDB key rejected", job.key)
                enriched.extend(f.with_enrichment(None) for f in films[index - 1 :])
                break
            if result.matched:
                matched += 1
            enriched.append(film.with_enrichment(result.enrichment))
            if index < len(films):
                await asyncio.sleep(self._enrich_delay)
        logger.info("scraper: %s enriched %d/%d films", job.key, matched, len(films))
        return enriched
