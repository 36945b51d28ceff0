"""Pydantic schemas shared by the scraper, enrichment, storage and API layers."""

from __future__ import annotations

from fa_viewer.core.schemas.films import (
    EnrichmentCacheEntry,
    FilmDetail,
    FilmEnrichment,
    FilmRecord,
    FilmType,
    ListSnapshot,
)
from fa_viewer.core.schemas.jobs import JobState, JobStatus

__all__ = [
    "EnrichmentCacheEntry",
    "FilmDetail",
    "FilmEnrichment",
    "FilmRecord",
    "FilmType",
    "JobState",
    "JobStatus",
    "ListSnapshot",
]
