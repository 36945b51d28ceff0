"""Candidate scoring for matching FilmAffinity records to TMDB results.

Searches are not year-filtered because Spanish release dates often differ
from TMDB's primary release date; the year is applied here as a score
instead, with one year of tolerance.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any

from fa_viewer.core.schemas.films import FilmRecord, FilmType
from fa_viewer.enrichment.config import DEFAULT_WEIGHTS, MatchWeights

_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)


def normalize_title(value: str | None) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _PUNCT_RE.sub(" ", stripped).replace("_", " ")
    return " ".join(stripped.split())


def _parse_year(date_value: Any) -> int | None:
    text = str(date_value or "")
    if len(text) >= 4 and text[:4].isdigit():
        return int(text[:4])
    return None


@dataclass
class Candidate:
    """One TMDB search result tagged with the index it came from."""

    media_type: FilmType
    tmdb_id: int
    title: str
    original_title: str
    year: int | None
    payload: dict[str, Any] = field(default_factory=dict)
    score: int = 0

    @classmethod
    def from_result(cls, result: dict[str, Any], media_type: FilmType) -> Candidate:
        if media_type == "series":
            title = result.get("name") or ""
            original = result.get("original_name") or ""
            year = _parse_year(result.get("first_air_date"))
        else:
            title = result.get("title") or ""
            original = result.get("original_title") or ""
            year = _parse_year(result.get("release_date"))
        return cls(
            media_type=media_type,
            tmdb_id=int(result.get("id") or 0),
            title=str(title),
            original_title=str(original),
            year=year,
            payload=result,
        )


def title_score(query: str, candidate: str, weights: MatchWeights = DEFAULT_WEIGHTS) -> int:
    """Score the textual relation between two titles."""
    q = normalize_title(query)
    c = normalize_title(candidate)
    if not q or not c:
        return weights.title_unrelated
    if q == c:
        return weights.title_exact
    if c.startswith(q) or c.endswith(q) or q.startswith(c) or q.endswith(c):
        return weights.title_affix
    if q in c or c in q:
        return weights.title_substring
    return weights.title_unrelated


def year_score(
    source_year: int | None,
    candidate_year: int | None,
    weights: MatchWeights = DEFAULT_WEIGHTS,
) -> int:
    """Score year agreement.  Zero when either side has no year."""
    if source_year is None or candidate_year is None:
        return 0
    delta = abs(source_year - candidate_year)
    if delta == 0:
        return weights.year_exact
    if delta == 1:
        return weights.year_adjacent
    return weights.year_mismatch


def score_candidate(
    film: FilmRecord,
    candidate: Candidate,
    weights: MatchWeights = DEFAULT_WEIGHTS,
) -> int:
    """Total score of *candidate* as a match for *film*."""
    score = max(
        title_score(film.title, candidate.title, weights),
        title_score(film.title, candidate.original_title, weights),
    )
    score += year_score(film.year, candidate.year, weights)
    if film.type and candidate.media_type == film.type:
        score += weights.type_match
    return score


def pick_best(
    film: FilmRecord,
    candidates: list[Candidate],
    weights: MatchWeights = DEFAULT_WEIGHTS,
) -> Candidate | None:
    """Return the highest-scoring candidate at or above the acceptance threshold."""
    if not candidates:
        return None
    for candidate in candidates:
        candidate.score = score_candidate(film, candidate, weights)
    ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
    best = ranked[0]
    if best.score < weights.accept_threshold:
        return None
    return best
