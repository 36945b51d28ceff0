"""Health check route handlers.

``GET /health``
    Process liveness.  No I/O; always ``{"status": "ok"}``.

``GET /api/health``
    Store reachability plus enrichment and job summary.  Always returns
    HTTP 200; the ``status`` field distinguishes ``"ok"`` from
    ``"degraded"``.

These endpoints are diagnostic and must never raise HTTP 5xx errors.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from fa_viewer import __version__
from fa_viewer.api.limiter import limiter
from fa_viewer.storage.base import FilmStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


async def _check_store(store: FilmStore) -> str:
    """Ping the configured store.

    Returns:
        ``"ok"`` if the backend answers, ``"error"`` otherwise.
    """
    try:
        return "ok" if await store.ping() else "error"
    except Exception:  # noqa: BLE001
        logger.exception("Health check: store %s unreachable", store.name)
        return "error"


@router.get("/health", include_in_schema=True)
@limiter.exempt
async def health() -> JSONResponse:
    """Return a minimal process-level liveness status."""
    return JSONResponse({"status": "ok"})


@router.get("/api/health", include_in_schema=True)
async def system_health(request: Request) -> JSONResponse:
    """Return store connectivity and enrichment configuration.

    Returns:
        JSON with keys: ``status``, ``version``, ``store``,
        ``store_backend``, ``enrichment``, ``timestamp``.
    """
    state = request.app.state
    store_status = await _check_store(state.store)
    payload = {
        "status": "ok" if store_status == "ok" else "degraded",
        "version": __version__,
        "store": store_status,
        "store_backend": state.store.name,
        "enrichment": "enabled" if state.settings.enrichment_enabled else "disabled",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    logger.info("system_health_check", extra={"health": payload})
    return JSONResponse(payload)
