"""HTTP-level tests for the FastAPI application.

The app runs in-process through ``httpx.ASGITransport`` with its lifespan
entered explicitly; FilmAffinity is served by respx.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
import respx
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from fa_viewer.api.main import create_app
from fa_viewer.config.settings import Settings
from fa_viewer.core.schemas.films import FilmRecord, ListSnapshot
from fa_viewer.scraper.urls import derive_list_key

from conftest import LANDING_URL, LIST_URL, list_page_html

KEY = derive_list_key(LIST_URL)
FILM_URL = "https://www.filmaffinity.com/es/film123456.html"
FILM_PAGE = (
    "<html><body>"
    '<h1 id="main-title"><span itemprop="name">Matrix</span></h1>'
    '<dl class="movie-info"><dt>Año</dt><dd itemprop="datePublished">1999</dd>'
    '<dt>Duración</dt><dd itemprop="duration">136 min.</dd></dl>'
    + ("<p>relleno</p>" * 30)
    + "</body></html>"
)


def _mock_landing(mock: respx.MockRouter) -> None:
    mock.get(LANDING_URL).mock(return_value=httpx.Response(200, headers={"set-cookie": "FSID=1"}))


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI, None]:
    application = create_app(settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestSystemEndpoints:
    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert response.headers["x-request-id"]

    async def test_api_health_reports_store(self, client: AsyncClient) -> None:
        body = (await client.get("/api/health")).json()
        assert body["status"] == "ok"
        assert body["store"] == "ok"
        assert body["store_backend"] == "memory"
        assert body["enrichment"] == "disabled"

    async def test_metrics(self, client: AsyncClient) -> None:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "refresh_jobs_total" in response.text


# ---------------------------------------------------------------------------
# Lists and jobs
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestListEndpoints:
    async def test_missing_url_is_rejected(self, client: AsyncClient) -> None:
        response = await client.get("/api/list")
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing url param"

    async def test_foreign_host_is_rejected(self, client: AsyncClient) -> None:
        response = await client.get("/api/list", params={"url": "https://example.com/list"})
        assert response.status_code == 400
        assert "filmaffinity.com" in response.json()["detail"]

    async def test_unknown_list_is_empty_and_never_scraped(self, client: AsyncClient) -> None:
        with respx.mock(assert_all_called=False) as mock:
            response = await client.get("/api/list", params={"url": LIST_URL})

        assert not mock.calls
        body = response.json()
        assert body["key"] == KEY
        assert body["films"] == []
        assert body["cached"] is False
        assert body["job"] == "idle"

    async def test_refresh_then_read(self, app: FastAPI, client: AsyncClient) -> None:
        with respx.mock(assert_all_called=False) as mock:
            _mock_landing(mock)
            mock.get(LIST_URL).mock(
                return_value=httpx.Response(200, text=list_page_html([("100001", "Uno"), ("100002", "Dos")]))
            )
            started = await client.post("/api/list/refresh", params={"url": LIST_URL})
            await app.state.jobs.wait(KEY)

        assert started.status_code == 202
        assert started.json()["status"] == "running"

        listing = (await client.get("/api/list", params={"url": LIST_URL})).json()
        assert listing["cached"] is True
        assert listing["stale"] is False
        assert listing["job"] == "done"
        assert [f["id"] for f in listing["films"]] == ["100002", "100001"]

        status = (await client.get("/api/list/status", params={"url": LIST_URL})).json()
        assert status["status"] == "done"
        assert len(status["films"]) == 2

        again = (await client.get(f"/api/jobs/{KEY}")).json()
        assert again["status"] == "done"

    async def test_second_refresh_reports_running_job(
        self, app: FastAPI, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fetcher = app.state.fetcher
        fetch_page = fetcher.fetch_page
        release = asyncio.Event()

        async def held_fetch(url: str) -> str:
            await release.wait()
            return await fetch_page(url)

        monkeypatch.setattr(fetcher, "fetch_page", held_fetch)

        with respx.mock(assert_all_called=False) as mock:
            _mock_landing(mock)
            route = mock.get(LIST_URL).mock(
                return_value=httpx.Response(200, text=list_page_html([("100001", "Uno")]))
            )
            first = await client.post("/api/list/refresh", params={"url": LIST_URL})
            second = await client.post("/api/list/refresh", params={"url": LIST_URL})
            release.set()
            await app.state.jobs.wait(KEY)

        assert first.json().get("already_running") is False
        assert second.status_code == 202
        assert second.json()["already_running"] is True
        assert route.call_count == 1

    async def test_base64_url_maps_to_same_key(self, client: AsyncClient) -> None:
        encoded = base64.b64encode(LIST_URL.encode()).decode()
        body = (await client.get("/api/list", params={"url": encoded})).json()
        assert body["key"] == KEY

    async def test_old_snapshot_is_stale(self, app: FastAPI, client: AsyncClient) -> None:
        old = datetime.now(tz=timezone.utc) - timedelta(hours=30)
        snapshot = ListSnapshot(key=KEY, source_url=LIST_URL, films=[FilmRecord(id="100001")], captured_at=old)
        await app.state.store.save_list(KEY, snapshot)

        body = (await client.get("/api/list", params={"url": LIST_URL})).json()
        assert body["cached"] is True
        assert body["stale"] is True

    async def test_unknown_job_key_is_idle(self, client: AsyncClient) -> None:
        assert (await client.get("/api/jobs/abc123")).json()["status"] == "idle"

    async def test_invalid_job_key(self, client: AsyncClient) -> None:
        assert (await client.get("/api/jobs/not-a-key")).status_code == 400


# ---------------------------------------------------------------------------
# Film detail
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestFilmEndpoint:
    async def test_invalid_id(self, client: AsyncClient) -> None:
        assert (await client.get("/api/film/12ab")).status_code == 400
        assert (await client.get("/api/film/1234")).status_code == 400

    async def test_detail_is_scraped_once(self, client: AsyncClient) -> None:
        with respx.mock(assert_all_called=False) as mock:
            _mock_landing(mock)
            route = mock.get(FILM_URL).mock(return_value=httpx.Response(200, text=FILM_PAGE))
            first = await client.get("/api/film/123456")
            second = await client.get("/api/film/123456")

        assert first.status_code == 200
        body = first.json()
        assert body["title"] == "Matrix"
        assert body["year"] == 1999
        assert body["duration"] == 136
        assert body["source_url"] == FILM_URL
        assert second.json() == body
        assert route.call_count == 1

    async def test_not_found_upstream_is_bad_gateway(self, client: AsyncClient) -> None:
        with respx.mock(assert_all_called=False) as mock:
            _mock_landing(mock)
            mock.get(FILM_URL).mock(return_value=httpx.Response(404))
            response = await client.get("/api/film/123456")

        assert response.status_code == 502

    async def test_challenge_is_service_unavailable(self, client: AsyncClient) -> None:
        challenge = "<html><title>Just a moment...</title>" + ("x" * 300) + "</html>"
        with respx.mock(assert_all_called=False) as mock:
            _mock_landing(mock)
            mock.get(FILM_URL).mock(return_value=httpx.Response(200, text=challenge))
            response = await client.get("/api/film/123456")

        assert response.status_code == 503


# ---------------------------------------------------------------------------
# Marks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestMarksEndpoints:
    async def test_marks_default_to_empty(self, client: AsyncClient) -> None:
        assert (await client.get("/api/marks/abc123")).json() == {"marks": []}

    async def test_marks_round_trip(self, client: AsyncClient) -> None:
        saved = await client.post("/api/marks/abc123", json={"marks": ["100001", "100002"]})
        assert saved.json() == {"ok": True}
        assert (await client.get("/api/marks/abc123")).json() == {"marks": ["100001", "100002"]}

    @pytest.mark.parametrize(
        "payload",
        [{"marks": "100001"}, {"marks": [1, 2]}, {"other": []}, ["100001"]],
    )
    async def test_invalid_marks_are_rejected(self, client: AsyncClient, payload: object) -> None:
        response = await client.post("/api/marks/abc123", json=payload)
        assert response.status_code == 400
