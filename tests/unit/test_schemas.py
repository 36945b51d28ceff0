"""Unit tests for film and snapshot schemas."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fa_viewer.config.settings import Settings
from fa_viewer.core.schemas.films import EnrichmentCacheEntry, FilmEnrichment, FilmRecord, ListSnapshot

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestFilmRecord:
    def test_source_url_is_derived_from_id(self) -> None:
        assert FilmRecord(id="809297").source_url == "https://www.filmaffinity.com/es/film809297.html"

    def test_enrichment_merge_is_tri_state(self) -> None:
        film = FilmRecord(id="100001", title="Uno", poster="https://pics/fa.jpg", synopsis="viejo")
        enrichment = FilmEnrichment(synopsis=None, duration=95)

        merged = film.with_enrichment(enrichment)

        assert merged.poster == "https://pics/fa.jpg"
        assert merged.synopsis is None
        assert merged.duration == 95
        assert merged.enriched is True
        assert film.enriched is False

    def test_empty_enrichment_still_marks_record(self) -> None:
        merged = FilmRecord(id="100001", title="Uno").with_enrichment(FilmEnrichment())
        assert merged.enriched is True
        assert merged.title == "Uno"


class TestListSnapshot:
    def test_staleness(self) -> None:
        snapshot = ListSnapshot(key="k", source_url="u", captured_at=NOW - timedelta(hours=25))
        assert snapshot.is_stale(timedelta(hours=24), now=NOW) is True
        assert snapshot.is_stale(timedelta(hours=48), now=NOW) is False

    def test_naive_timestamp_is_treated_as_utc(self) -> None:
        snapshot = ListSnapshot(key="k", source_url="u", captured_at=datetime(2024, 5, 1, 11, 0))
        assert snapshot.is_stale(timedelta(hours=24), now=NOW) is False


class TestEnrichmentCacheEntry:
    def test_freshness(self) -> None:
        entry = EnrichmentCacheEntry(data={}, cached_at=NOW - timedelta(days=6))
        assert entry.is_fresh(timedelta(days=7), now=NOW) is True
        assert entry.is_fresh(timedelta(days=5), now=NOW) is False

    def test_only_stored_fields_are_set(self) -> None:
        enrichment = EnrichmentCacheEntry(data={"duration": 90}).to_enrichment()
        assert enrichment.as_update() == {"duration": 90}


class TestSettings:
    def test_enrichment_requires_a_key(self) -> None:
        assert Settings(tmdb_api_key="", _env_file=None).enrichment_enabled is False
        assert Settings(tmdb_api_key="  ", _env_file=None).enrichment_enabled is False
        assert Settings(tmdb_api_key="abc", _env_file=None).enrichment_enabled is True

    def test_environment_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("FA_MAX_PAGES", "5")
        monkeypatch.setenv("FA_STORE_BACKEND", "file")
        settings = Settings(_env_file=None)
        assert settings.max_pages == 5
        assert settings.store_backend == "file"
