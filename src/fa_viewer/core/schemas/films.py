"""Pydantic schemas for scraped films and persisted list snapshots."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

FilmType = Literal["movie", "series"]

FA_BASE_URL = "https://www.filmaffinity.com"


def film_detail_url(film_id: str) -> str:
    """Return the canonical FilmAffinity detail-page URL for *film_id*."""
    return f"{FA_BASE_URL}/es/film{film_id}.html"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class FilmEnrichment(BaseModel):
    """Fields merged into a :class:`FilmRecord` from TMDB.

    Each field is tri-state: a field that was never set means "leave the
    record's value alone", an explicit ``None`` clears it, and a value
    replaces it.  Only :meth:`as_update` should be used to merge, since it
    drops unset fields.
    """

    synopsis: Optional[str] = None
    duration: Optional[int] = None
    type: Optional[FilmType] = None
    genres: Optional[list[str]] = None
    poster: Optional[str] = None

    def as_update(self) -> dict[str, Any]:
        """Return only the fields that were explicitly set."""
        return self.model_dump(exclude_unset=True)

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set


class FilmRecord(BaseModel):
    """One entry of a FilmAffinity list.

    Attributes:
        id: Numeric FilmAffinity id (as a string), unique within a list.
        title: Display title; empty when it could not be parsed.
        poster: Absolute ``https`` poster URL, or ``None``.
        rating: Average user rating, or ``None``.
        year: Release year, or ``None``.
        type: ``"movie"`` or ``"series"``.
        source_url: Canonical detail-page URL derived from ``id``.
        synopsis: Overview from TMDB (enrichment).
        duration: Runtime in minutes (enrichment).
        genres: Ordered genre names (enrichment).
        enriched: ``True`` once an enrichment lookup was attempted.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    poster: Optional[str] = None
    rating: Optional[float] = None
    year: Optional[int] = None
    type: FilmType = "movie"
    source_url: str = ""

    synopsis: Optional[str] = None
    duration: Optional[int] = None
    genres: Optional[list[str]] = None
    enriched: bool = False

    def model_post_init(self, __context: Any) -> None:
        if not self.source_url:
            self.source_url = film_detail_url(self.id)

    def with_enrichment(self, enrichment: FilmEnrichment | None) -> FilmRecord:
        """Return a copy with *enrichment* merged and ``enriched`` set.

        The record is marked enriched even when *enrichment* is empty so the
        client can tell "looked up, nothing found" from "not looked up yet".
        """
        update: dict[str, Any] = enrichment.as_update() if enrichment is not None else {}
        update["enriched"] = True
        return self.model_copy(update=update)


class ListSnapshot(BaseModel):
    """Persisted result of one refresh job for one source list.

    ``films`` is ordered oldest-first: the reverse of FilmAffinity's
    newest-first list order.
    """

    key: str
    source_url: str
    films: list[FilmRecord] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=_utcnow)

    def is_stale(self, ttl: timedelta, now: datetime | None = None) -> bool:
        """Return ``True`` when the snapshot is older than *ttl*."""
        current = now or _utcnow()
        captured = self.captured_at
        if captured.tzinfo is None:
            captured = captured.replace(tzinfo=timezone.utc)
        return current - captured > ttl


class EnrichmentCacheEntry(BaseModel):
    """Cached TMDB lookup for one film id.

    ``data`` holds the set fields of a :class:`FilmEnrichment`; an empty dict
    is a cached negative result ("no confident match").
    """

    data: dict[str, Any] = Field(default_factory=dict)
    cached_at: datetime = Field(default_factory=_utcnow)

    def is_fresh(self, ttl: timedelta, now: datetime | None = None) -> bool:
        current = now or _utcnow()
        cached = self.cached_at
        if cached.tzinfo is None:
            cached = cached.replace(tzinfo=timezone.utc)
        return current - cached < ttl

    def to_enrichment(self) -> FilmEnrichment:
        # model_validate only marks the keys present in ``data`` as set.
        return FilmEnrichment.model_validate(self.data)


class FilmDetail(BaseModel):
    """Fields scraped from a single FilmAffinity detail page."""

    id: str
    title: Optional[str] = None
    year: Optional[int] = None
    duration: Optional[int] = None
    rating: Optional[float] = None
    poster: Optional[str] = None
    synopsis: Optional[str] = None
    type: FilmType = "movie"
    source_url: str = ""
