"""FastAPI application factory and entry point.

Creates the application instance, registers middleware, mounts the route
routers and builds the long-lived components (HTTP client, session,
fetcher, store, enricher, job manager) in the application lifespan.

Usage::

    # Development server (from project root)
    uvicorn fa_viewer.api.main:app --reload

    # Production
    uvicorn fa_viewer.api.main:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import AsyncIterator, Callable

import httpx
import structlog
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from fa_viewer import __version__
from fa_viewer.api.dependencies import FilmDetailCache
from fa_viewer.api.limiter import limiter
from fa_viewer.api.metrics import get_metrics_response, http_requests_total
from fa_viewer.config.settings import Settings, get_settings
from fa_viewer.core.logging_config import configure_logging, request_id_var
from fa_viewer.enrichment.service import Enricher
from fa_viewer.enrichment.tmdb_client import TMDBClient
from fa_viewer.scraper.http_fetcher import FetchPolicy, PageFetcher
from fa_viewer.scraper.jobs import JobManager
from fa_viewer.scraper.session import SessionManager
from fa_viewer.storage.factory import build_store

# ---------------------------------------------------------------------------
# Logging configuration: applied once at import time so that log records
# emitted during app construction are captured.  The level is re-applied
# inside create_app() after settings are loaded.
# ---------------------------------------------------------------------------

configure_logging("INFO")

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Build shared components on startup and release them on shutdown."""
    settings: Settings = application.state.settings

    http_client = httpx.AsyncClient(timeout=settings.request_timeout)
    session = SessionManager(http_client, ttl_seconds=settings.session_ttl_seconds)
    fetcher = PageFetcher(http_client, session, FetchPolicy.from_settings(settings))
    store = build_store(settings)

    tmdb = None
    if settings.enrichment_enabled:
        tmdb = TMDBClient(http_client, settings.tmdb_api_key, language=settings.tmdb_language)
    enricher = Enricher(tmdb, store, ttl=timedelta(days=settings.enrichment_ttl_days))

    state = application.state
    state.http_client = http_client
    state.session = session
    state.fetcher = fetcher
    state.store = store
    state.enricher = enricher
    state.jobs = JobManager.from_settings(settings, fetcher, store, enricher)
    state.film_cache = FilmDetailCache(settings.film_cache_ttl_hours * 3600)

    logger.info(
        "application_startup",
        app_name=settings.app_name,
        store_backend=store.name,
        enrichment=enricher.enabled,
        log_level=settings.log_level,
    )
    try:
        yield
    finally:
        await state.jobs.aclose()
        await store.close()
        await http_client.aclose()
        logger.info("application_shutdown")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Separated from the module-level ``app`` singleton so that tests can
    call ``create_app()`` with their own settings.

    Args:
        settings: Settings to build the app with.  Defaults to
            :func:`get_settings`.

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = settings or get_settings()

    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description="Browse FilmAffinity lists with cached scraping and TMDB enrichment.",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    application.state.settings = settings

    # ---- Middleware --------------------------------------------------------

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter.enabled = settings.rate_limit_enabled
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_middleware(SlowAPIMiddleware)

    # ---- Request logging middleware ----------------------------------------

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every request with its status and duration.

        Binds a unique ``request_id`` to the structlog context so that all
        log lines emitted during a request can be correlated, and echoes it
        in the ``X-Request-ID`` response header.
        """
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = getattr(response, "status_code", 500)
            route = request.scope.get("route")
            http_requests_total.labels(
                method=request.method,
                path=getattr(route, "path", request.url.path),
                status=str(status_code),
            ).inc()
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn("request_complete", status_code=status_code, elapsed_ms=elapsed_ms)

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Routers -----------------------------------------------------------

    from fa_viewer.api.routes import health as health_routes  # noqa: PLC0415
    from fa_viewer.scraper.router import router as list_router  # noqa: PLC0415

    application.include_router(health_routes.router)
    application.include_router(list_router)

    # ---- Metrics -----------------------------------------------------------

    if settings.metrics_enabled:

        @application.get("/metrics", tags=["system"], include_in_schema=False)
        @limiter.exempt
        async def metrics() -> Response:
            """Expose Prometheus metrics in text format."""
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    # ---- Single-page frontend ---------------------------------------------

    static_dir = Path(settings.static_dir).resolve()
    if (static_dir / "index.html").is_file():

        @application.get("/{full_path:path}", include_in_schema=False)
        @limiter.exempt
        async def frontend(full_path: str) -> FileResponse:
            """Serve a static asset, or ``index.html`` for client-side routes."""
            if full_path.startswith("api/"):
                raise HTTPException(status_code=404, detail="Not Found")
            candidate = (static_dir / full_path).resolve()
            if full_path and candidate.is_file() and candidate.is_relative_to(static_dir):
                return FileResponse(candidate)
            return FileResponse(static_dir / "index.html")

    return application


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

app = create_app()
"""The FastAPI application instance.

This is the ASGI callable passed to Uvicorn.
"""
