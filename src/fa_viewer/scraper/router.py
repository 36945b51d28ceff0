"""HTTP routes for FilmAffinity lists, refresh jobs, film pages and marks.

Endpoints::

    GET  /api/list?url=           stored snapshot (or an empty list); never scrapes
    POST /api/list/refresh?url=   start a background refresh (single-flight)
    GET  /api/list/status?url=    poll the refresh job; terminal states are consumed
    GET  /api/jobs/{key}          same as above, by list key
    GET  /api/film/{film_id}      scrape one detail page, cached per film
    GET  /api/marks/{key}         marks overlay for a list
    POST /api/marks/{key}         replace the marks overlay

The ``url`` parameter is a FilmAffinity list URL, plain or base64-encoded.
"""

from __future__ import annotations

import asyncio
import random
import re
from datetime import timedelta
from typing import Annotated, Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from fa_viewer.api.dependencies import (
    FilmDetailCache,
    get_app_settings,
    get_fetcher,
    get_film_cache,
    get_job_manager,
    get_store,
)
from fa_viewer.config.settings import Settings
from fa_viewer.core.exceptions import (
    InputValidationError,
    UpstreamChallengeError,
    UpstreamError,
    UpstreamForbiddenError,
    UpstreamRateLimitedError,
    UpstreamUnavailableError,
)
from fa_viewer.core.schemas.films import FilmDetail, film_detail_url
from fa_viewer.core.schemas.jobs import JobStatus
from fa_viewer.scraper.config import FILM_ID_RE
from fa_viewer.scraper.film_parser import parse_film_page
from fa_viewer.scraper.http_fetcher import PageFetcher
from fa_viewer.scraper.jobs import JobManager
from fa_viewer.scraper.urls import LIST_KEY_LENGTH, derive_list_key, resolve_list_url
from fa_viewer.storage.base import FilmStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["lists"])

_KEY_RE = re.compile(rf"^[A-Za-z0-9]{{1,{LIST_KEY_LENGTH}}}$")

StoreDep = Annotated[FilmStore, Depends(get_store)]
JobsDep = Annotated[JobManager, Depends(get_job_manager)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve(url: Optional[str], settings: Settings) -> tuple[str, str]:
    """Return ``(list_url, key)`` or raise HTTP 400."""
    try:
        list_url = resolve_list_url(url)
    except InputValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return list_url, derive_list_key(list_url, settings.key_encoding)


def _check_key(key: str) -> str:
    if not _KEY_RE.match(key):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid list key")
    return key


def _status_body(job: JobStatus) -> dict[str, Any]:
    body = job.model_dump(mode="json", exclude={"snapshot"}, exclude_none=True)
    if job.snapshot is not None:
        body["films"] = job.snapshot.model_dump(mode="json")["films"]
        body["ts"] = job.snapshot.captured_at.isoformat()
    return body


# ---------------------------------------------------------------------------
# Lists and jobs
# ---------------------------------------------------------------------------


@router.get("/list")
async def read_list(
    store: StoreDep,
    jobs: JobsDep,
    settings: SettingsDep,
    url: Annotated[Optional[str], Query()] = None,
) -> dict[str, Any]:
    """Return the stored snapshot for a list without contacting FilmAffinity.

    ``cached`` is ``False`` and ``films`` empty when the list was never
    refreshed.  ``stale`` is ``True`` once the snapshot is older than the
    list cache TTL.  ``job`` reports the refresh state without consuming it.
    """
    list_url, key = _resolve(url, settings)
    snapshot = await store.get_list(key)
    if snapshot is None:
        return {
            "key": key,
            "url": list_url,
            "films": [],
            "cached": False,
            "ts": None,
            "stale": False,
            "job": jobs.peek(key),
        }
    ttl = timedelta(hours=settings.list_cache_ttl_hours)
    return {
        "key": key,
        "url": list_url,
        "films": snapshot.model_dump(mode="json")["films"],
        "cached": True,
        "ts": snapshot.captured_at.isoformat(),
        "stale": snapshot.is_stale(ttl),
        "job": jobs.peek(key),
    }


@router.post("/list/refresh", status_code=status.HTTP_202_ACCEPTED)
async def refresh_list(
    jobs: JobsDep,
    settings: SettingsDep,
    url: Annotated[Optional[str], Query()] = None,
) -> dict[str, Any]:
    """Start a background refresh; a running refresh is reported, not restarted."""
    list_url, key = _resolve(url, settings)
    job = jobs.start(key, list_url)
    logger.info("refresh_requested", list_key=key, already_running=job.already_running)
    return _status_body(job)


@router.get("/list/status")
async def list_status(
    jobs: JobsDep,
    settings: SettingsDep,
    url: Annotated[Optional[str], Query()] = None,
) -> dict[str, Any]:
    _, key = _resolve(url, settings)
    return _status_body(await jobs.status(key))


@router.get("/jobs/{key}")
async def job_status(key: str, jobs: JobsDep) -> dict[str, Any]:
    return _status_body(await jobs.status(_check_key(key)))


# ---------------------------------------------------------------------------
# Film detail
# ---------------------------------------------------------------------------


@router.get("/film/{film_id}", tags=["films"])
async def read_film(
    film_id: str,
    fetcher: Annotated[PageFetcher, Depends(get_fetcher)],
    cache: Annotated[FilmDetailCache, Depends(get_film_cache)],
    settings: SettingsDep,
) -> FilmDetail:
    """Scrape a single FilmAffinity detail page.

    Results are cached per film id.  Each uncached request waits a short
    random pause first so bursts of detail requests stay polite.

    Raises:
        HTTPException 400: *film_id* is not 5 to 10 digits.
        HTTPException 503: FilmAffinity is blocking or rate-limiting us.
        HTTPException 502: Any other upstream failure.
    """
    if not FILM_ID_RE.match(film_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid film id")

    cached = cache.get(film_id)
    if cached is not None:
        return cached

    await asyncio.sleep(random.uniform(settings.film_delay_min, settings.film_delay_max))
    try:
        html = await fetcher.fetch_page(film_detail_url(film_id))
    except (
        UpstreamChallengeError,
        UpstreamRateLimitedError,
        UpstreamForbiddenError,
        UpstreamUnavailableError,
    ) as exc:
        logger.warning("film_fetch_blocked", film_id=film_id, error=str(exc))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except UpstreamError as exc:
        logger.warning("film_fetch_failed", film_id=film_id, error=str(exc))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    detail = parse_film_page(html, film_id)
    cache.put(detail)
    return detail


# ---------------------------------------------------------------------------
# Marks
# ---------------------------------------------------------------------------


@router.get("/marks/{key}", tags=["marks"])
async def read_marks(key: str, store: StoreDep) -> dict[str, list[str]]:
    return {"marks": await store.get_marks(_check_key(key))}


@router.post("/marks/{key}", tags=["marks"])
async def write_marks(
    key: str,
    store: StoreDep,
    payload: Annotated[Any, Body()] = None,
) -> dict[str, bool]:
    """Replace the marks of a list.  The body must be ``{"marks": [str, ...]}``."""
    _check_key(key)
    marks = payload.get("marks") if isinstance(payload, dict) else None
    if not isinstance(marks, list) or not all(isinstance(m, str) for m in marks):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="marks must be an array of strings",
        )
    await store.save_marks(key, marks)
    logger.info("marks_saved", list_key=key, count=len(marks))
    return {"ok": True}
