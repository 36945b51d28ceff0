"""FilmAffinity detail-page parsing.

Used by ``GET /api/film/{id}`` to show a single film without going through
a list refresh.  Like the list parser, it never raises: fields that cannot
be found are returned as ``None``.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

from fa_viewer.core.schemas.films import FilmDetail, film_detail_url
from fa_viewer.scraper.config import SERIES_KEYWORDS
from fa_viewer.scraper.list_parser import normalize_poster

logger = logging.getLogger(__name__)

#: Synopses are truncated to this many characters.
MAX_SYNOPSIS_LENGTH: int = 600

_INT_RE = re.compile(r"(\d+)")
_RATING_RE = re.compile(r"\d+(?:[.,]\d+)?")


def _select_text(soup: BeautifulSoup, *selectors: str) -> str:
    for selector in selectors:
        el = soup.select_one(selector)
        if el is not None:
            text = " ".join(el.get_text(" ", strip=True).split())
            if text:
                return text
    return ""


def _select_attr(soup: BeautifulSoup, attr: str, *selectors: str) -> str | None:
    for selector in selectors:
        el = soup.select_one(selector)
        if el is not None and el.get(attr):
            return str(el.get(attr))
    return None


def _first_int(text: str) -> int | None:
    match = _INT_RE.search(text)
    return int(match.group(1)) if match else None


def parse_film_page(html: object, film_id: str) -> FilmDetail:
    """Parse a FilmAffinity detail page.

    The original title is preferred over the localised one because it
    matches TMDB search results more reliably.

    Args:
        html: Raw page HTML.
        film_id: FilmAffinity id the page belongs to.

    Returns:
        A :class:`FilmDetail`.  Only ``id``, ``type`` and ``source_url`` are
        guaranteed to be set.
    """
    detail = FilmDetail(id=film_id, source_url=film_detail_url(film_id))
    if not isinstance(html, str) or not html.strip():
        return detail

    try:
        soup = BeautifulSoup(html, "html.parser")

        title = _select_text(
            soup,
            "h1#main-title span[itemprop='name']",
            "h1#main-title",
            "h1",
        )
        original_title = _select_text(soup, "dt.main-title span", "#movie-original-title")

        year = _first_int(_select_text(soup, "dd[itemprop='datePublished']", ".year"))
        duration = _first_int(_select_text(soup, "dd[itemprop='duration']", ".duration"))

        rating_text = _select_text(soup, "#movie-rat-avg", ".avgrat-box")
        rating_match = _RATING_RE.search(rating_text)
        rating = float(rating_match.group(0).replace(",", ".")) if rating_match else None

        poster = normalize_poster(
            _select_attr(
                soup,
                "src",
                "#movie-main-image-container img",
                "img[itemprop='image']",
                ".movie-card-1 img",
            )
        )

        synopsis = _select_text(
            soup,
            "[class*='synopsis'] dd",
            "#synopsis",
            ".movie-info dd.ltext",
            "[itemprop='description']",
        )[:MAX_SYNOPSIS_LENGTH]

        info_text = _select_text(soup, ".movie-info").lower()
        is_series = any(keyword in info_text for keyword in SERIES_KEYWORDS) or any(
            "serie" in dt.get_text(strip=True).lower() for dt in soup.find_all("dt")
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("scraper: film page parse failed for %s: %s", film_id, exc)
        return detail

    return detail.model_copy(
        update={
            "title": original_title or title or None,
            "year": year,
            "duration": duration,
            "rating": rating,
            "poster": poster,
            "synopsis": synopsis or None,
            "type": "series" if is_series else "movie",
        }
    )
