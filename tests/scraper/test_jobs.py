"""Tests for the refresh job orchestrator.

Upstream pages are served by respx; every delay is zero.  Routes for later
pages are registered first so the bare page-1 pattern never shadows them.
"""

from __future__ import annotations

import httpx
import pytest
import respx

from fa_viewer.core.schemas.films import FilmEnrichment, FilmRecord
from fa_viewer.enrichment.service import EnrichmentResult
from fa_viewer.scraper.http_fetcher import PageFetcher
from fa_viewer.scraper.jobs import JobManager
from fa_viewer.storage.memory import MemoryStore

from conftest import LANDING_URL, LIST_URL, list_page_html

KEY = "abc123"


def _mock_pages(mock: respx.MockRouter, pages: dict[int, httpx.Response]) -> dict[int, respx.Route]:
    mock.get(LANDING_URL).mock(return_value=httpx.Response(200, headers={"set-cookie": "FSID=1"}))
    routes: dict[int, respx.Route] = {}
    for page in sorted(pages, reverse=True):
        url = LIST_URL if page == 1 else f"{LIST_URL}&page={page}"
        routes[page] = mock.get(url).mock(return_value=pages[page])
    return routes


def _html(films: list[tuple[str, str]], total_pages: int | None = None) -> httpx.Response:
    return httpx.Response(200, text=list_page_html(films, total_pages=total_pages))


class FakeEnricher:
    """Enricher stand-in returning canned results per film id."""

    enabled = True

    def __init__(self, results: dict[str, EnrichmentResult]) -> None:
        self._results = results
        self.calls: list[str] = []

    async def enrich(self, film: FilmRecord) -> EnrichmentResult:
        self.calls.append(film.id)
        return self._results.get(film.id, EnrichmentResult(FilmEnrichment(), "no_match"))


def _manager(fetcher: PageFetcher, store: MemoryStore, **kwargs) -> JobManager:
    return JobManager(fetcher, store, page_delay=(0, 0), enrich_delay=0, **kwargs)


@pytest.mark.asyncio
class TestRefreshJob:
    async def test_stops_at_empty_page_and_keeps_partial_results(
        self, fetcher: PageFetcher, store: MemoryStore
    ) -> None:
        manager = _manager(fetcher, store)
        with respx.mock(assert_all_called=False) as mock:
            routes = _mock_pages(
                mock,
                {
                    1: _html([("100001", "Uno"), ("100002", "Dos")], total_pages=4),
                    2: _html([("100003", "Tres"), ("100001", "Uno")]),
                    3: _html([]),
                    4: _html([("100004", "Cuatro")]),
                },
            )
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        assert routes[3].call_count == 1
        assert routes[4].call_count == 0

        status = await manager.status(KEY)
        assert status.status == "done"
        assert status.snapshot is not None
        # Pages 1-2 reversed, then deduplicated keeping the first occurrence.
        assert [f.id for f in status.snapshot.films] == ["100001", "100003", "100002"]

        stored = await store.get_list(KEY)
        assert stored is not None
        assert stored.source_url == LIST_URL
        assert [f.id for f in stored.films] == ["100001", "100003", "100002"]

    async def test_failed_page_keeps_earlier_pages(
        self, fetcher: PageFetcher, store: MemoryStore
    ) -> None:
        manager = _manager(fetcher, store)
        with respx.mock(assert_all_called=False) as mock:
            _mock_pages(
                mock,
                {
                    1: _html([("100001", "Uno")], total_pages=2),
                    2: httpx.Response(404),
                },
            )
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        status = await manager.status(KEY)
        assert status.status == "done"
        assert [f.id for f in status.snapshot.films] == ["100001"]

    async def test_page_count_is_capped(self, fetcher: PageFetcher, store: MemoryStore) -> None:
        manager = _manager(fetcher, store, max_pages=2)
        with respx.mock(assert_all_called=False) as mock:
            routes = _mock_pages(
                mock,
                {
                    1: _html([("100001", "Uno")], total_pages=5),
                    2: _html([("100002", "Dos")]),
                    3: _html([("100003", "Tres")]),
                },
            )
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        assert routes[3].call_count == 0
        stored = await store.get_list(KEY)
        assert [f.id for f in stored.films] == ["100002", "100001"]

    async def test_first_page_failure_is_a_job_error(
        self, fetcher: PageFetcher, store: MemoryStore
    ) -> None:
        manager = _manager(fetcher, store)
        with respx.mock(assert_all_called=False) as mock:
            _mock_pages(mock, {1: httpx.Response(404)})
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        status = await manager.status(KEY)
        assert status.status == "error"
        assert "404" in (status.error or "")
        assert await store.get_list(KEY) is None
        # The error was consumed by the read above.
        assert (await manager.status(KEY)).status == "idle"

    async def test_single_flight_per_key(self, fetcher: PageFetcher, store: MemoryStore) -> None:
        manager = _manager(fetcher, store)
        with respx.mock(assert_all_called=False) as mock:
            routes = _mock_pages(mock, {1: _html([("100001", "Uno")])})
            first = manager.start(KEY, LIST_URL)
            second = manager.start(KEY, LIST_URL)
            assert manager.is_running(KEY)
            await manager.wait(KEY)

        assert first.status == "running" and first.already_running is False
        assert second.status == "running" and second.already_running is True
        assert routes[1].call_count == 1

    async def test_running_status_reports_progress(
        self, fetcher: PageFetcher, store: MemoryStore
    ) -> None:
        manager = _manager(fetcher, store)
        with respx.mock(assert_all_called=False) as mock:
            _mock_pages(mock, {1: _html([("100001", "Uno")])})
            manager.start(KEY, LIST_URL)
            running = await manager.status(KEY)
            await manager.wait(KEY)

        assert running.status == "running"
        assert running.progress

    async def test_done_is_consumed_on_read(self, fetcher: PageFetcher, store: MemoryStore) -> None:
        manager = _manager(fetcher, store)
        with respx.mock(assert_all_called=False) as mock:
            _mock_pages(mock, {1: _html([("100001", "Uno")])})
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        assert manager.peek(KEY) == "done"
        assert (await manager.status(KEY)).status == "done"
        assert manager.peek(KEY) == "idle"
        # Without a job the stored snapshot is still reported as done.
        again = await manager.status(KEY)
        assert again.status == "done"
        assert again.snapshot is not None

    async def test_unknown_key_is_idle(self, fetcher: PageFetcher, store: MemoryStore) -> None:
        manager = _manager(fetcher, store)
        assert (await manager.status("nothing")).status == "idle"


@pytest.mark.asyncio
class TestRefreshEnrichment:
    async def test_every_film_is_marked_enriched(
        self, fetcher: PageFetcher, store: MemoryStore
    ) -> None:
        enricher = FakeEnricher(
            {"100001": EnrichmentResult(FilmEnrichment(synopsis="Sinopsis", duration=120), "match")}
        )
        manager = _manager(fetcher, store, enricher=enricher)
        with respx.mock(assert_all_called=False) as mock:
            _mock_pages(mock, {1: _html([("100001", "Uno"), ("100002", "Dos")])})
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        stored = await store.get_list(KEY)
        by_id = {f.id: f for f in stored.films}
        assert all(f.enriched for f in stored.films)
        assert by_id["100001"].synopsis == "Sinopsis"
        assert by_id["100001"].duration == 120
        assert by_id["100002"].synopsis is None
        # Enrichment runs over the final oldest-first order.
        assert enricher.calls == ["100002", "100001"]

    async def test_unset_enrichment_fields_keep_scraped_values(
        self, fetcher: PageFetcher, store: MemoryStore
    ) -> None:
        enricher = FakeEnricher(
            {"100001": EnrichmentResult(FilmEnrichment(type="series", genres=["Drama"]), "match")}
        )
        manager = _manager(fetcher, store, enricher=enricher)
        with respx.mock(assert_all_called=False) as mock:
            _mock_pages(mock, {1: _html([("100001", "Uno")])})
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        film = (await store.get_list(KEY)).films[0]
        assert film.poster == "https://pics.filmaffinity.com/100001-msmall.jpg"
        assert film.type == "series"
        assert film.genres == ["Drama"]

    async def test_rejected_key_stops_lookups_and_flags_the_rest(
        self, fetcher: PageFetcher, store: MemoryStore
    ) -> None:
        enricher = FakeEnricher(
            {"100002": EnrichmentResult(FilmEnrichment(), "invalid_key")}
        )
        manager = _manager(fetcher, store, enricher=enricher)
        with respx.mock(assert_all_called=False) as mock:
            _mock_pages(mock, {1: _html([("100001", "Uno"), ("100002", "Dos")])})
            manager.start(KEY, LIST_URL)
            await manager.wait(KEY)

        stored = await store.get_list(KEY)
        assert enricher.calls == ["100002"]
        assert [f.enriched for f in stored.films] == [True, True]
        assert all(f.synopsis is None and f.genres is None for f in stored.films)
        assert (await manager.status(KEY)).status == "done"
