"""FilmAffinity list-page parsing.

FilmAffinity has shipped several list-item layouts over the years and
different list types still render different markup, so extraction runs a
selector chain: each selector in
:data:`~fa_viewer.scraper.config.CONTAINER_SELECTORS` is tried in priority
order and the first one that yields at least one film wins.  When none
matches, a generic strategy scans every detail-page anchor in the document.

Parsing never raises.  Unparseable input yields an empty list.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from fa_viewer.core.schemas.films import FilmRecord, FilmType
from fa_viewer.scraper.config import (
    CONTAINER_SELECTORS,
    DETAIL_HREF_RE,
    FA_BASE_URL,
    MAX_PAGER_VALUE,
    PAGER_SELECTORS,
    POSTER_ATTRIBUTES,
    RATING_SELECTORS,
    SERIES_KEYWORDS,
    SERIES_SELECTORS,
    TITLE_SELECTORS,
    YEAR_SELECTORS,
)

logger = logging.getLogger(__name__)

_RATING_RE = re.compile(r"\d+(?:[.,]\d+)?")
_YEAR_RE = re.compile(r"\b(\d{4})\b")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _clean_text(text: str) -> str:
    return " ".join(text.split())


def repair_title(title: str) -> str:
    """Collapse a title whose two halves are identical.

    Some list layouts render the title twice inside the same element, which
    ``get_text`` flattens to ``"Blue Moon Blue Moon"``.
    """
    text = _clean_text(title)
    n = len(text)
    if n < 2:
        return text
    mid = n // 2
    for cut in (mid, n - mid):
        left, right = text[:cut].strip(), text[cut:].strip()
        if left and left == right:
            return left
    return text


def normalize_poster(url: str | None) -> str | None:
    """Return an absolute ``https`` poster URL, or ``None``."""
    if not url:
        return None
    url = url.strip()
    if not url or url.startswith("data:"):
        return None
    # srcset values carry a width descriptor after the URL.
    url = url.split(",")[0].split()[0]
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return urljoin(FA_BASE_URL + "/", url)


def _poster_from_img(img: Tag | None) -> str | None:
    if img is None:
        return None
    for attr in POSTER_ATTRIBUTES:
        value = img.get(attr)
        if isinstance(value, list):
            value = " ".join(value)
        poster = normalize_poster(value)
        if poster:
            return poster
    return None


def _first_text(container: Tag, selectors: Iterable[str]) -> str:
    """Return the stripped text of the first selector that matches."""
    for selector in selectors:
        el = container.select_one(selector)
        if el is not None:
            text = _clean_text(el.get_text(" ", strip=True))
            if text:
                return text
    return ""


def _parse_rating(text: str) -> float | None:
    match = _RATING_RE.search(text)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", "."))
    except ValueError:
        return None


def _parse_year(text: str) -> int | None:
    match = _YEAR_RE.search(text)
    return int(match.group(1)) if match else None


def _infer_type(container: Tag) -> FilmType:
    text = container.get_text(" ", strip=True).lower()
    if any(keyword in text for keyword in SERIES_KEYWORDS):
        return "series"
    if any(container.select_one(selector) is not None for selector in SERIES_SELECTORS):
        return "series"
    return "movie"


def _detail_anchor(container: Tag) -> tuple[Tag, str] | None:
    """Return the first anchor linking to a detail page, with its film id."""
    for anchor in container.find_all("a", href=True):
        match = DETAIL_HREF_RE.search(str(anchor["href"]))
        if match:
            return anchor, match.group(1)
    return None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def _film_from_container(container: Tag) -> FilmRecord | None:
    """Extract one film from a list-item container, or ``None``."""
    found = _detail_anchor(container)
    if found is None:
        return None
    anchor, film_id = found

    title = _first_text(container, TITLE_SELECTORS)
    if not title:
        title = _clean_text(str(anchor.get("title") or ""))

    return FilmRecord(
        id=film_id,
        title=repair_title(title),
        poster=_poster_from_img(container.find("img")),
        rating=_parse_rating(_first_text(container, RATING_SELECTORS)),
        year=_parse_year(_first_text(container, YEAR_SELECTORS)),
        type=_infer_type(container),
    )


def _parse_containers(soup: BeautifulSoup) -> list[FilmRecord]:
    """Extract films from every known item layout, in document order.

    A container nested inside an already matched container is skipped.
    """
    matched: set[int] = set()
    films: list[FilmRecord] = []
    for container in soup.select(", ".join(CONTAINER_SELECTORS)):
        if any(id(parent) in matched for parent in container.parents):
            continue
        matched.add(id(container))
        film = _film_from_container(container)
        if film is not None:
            films.append(film)
    if films:
        logger.debug("scraper: %d films via %d item containers", len(films), len(matched))
    return dedupe_films(films)


def _parse_generic_anchors(soup: BeautifulSoup) -> list[FilmRecord]:
    """Fallback: one film per detail-page anchor anywhere in the document.

    Rating and year are not available in this mode.
    """
    films: list[FilmRecord] = []
    for anchor in soup.find_all("a", href=DETAIL_HREF_RE):
        match = DETAIL_HREF_RE.search(str(anchor.get("href") or ""))
        if not match:
            continue
        img = anchor.find("img")
        if img is None and isinstance(anchor.parent, Tag):
            img = anchor.parent.find("img")
        title = str(anchor.get("title") or "") or anchor.get_text(" ", strip=True)
        films.append(
            FilmRecord(
                id=match.group(1),
                title=repair_title(title),
                poster=_poster_from_img(img),
            )
        )
    if films:
        logger.debug("scraper: %d anchors via generic fallback", len(films))
    return films


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def dedupe_films(films: Iterable[FilmRecord]) -> list[FilmRecord]:
    """Drop repeated ids, keeping the first occurrence and its position."""
    seen: set[str] = set()
    unique: list[FilmRecord] = []
    for film in films:
        if film.id in seen:
            continue
        seen.add(film.id)
        unique.append(film)
    return unique


def parse_list_page(html: object) -> list[FilmRecord]:
    """Parse one list page into film records.

    Args:
        html: Raw page HTML.  Non-string input yields an empty list.

    Returns:
        Films in page order with unique ids.
    """
    if not isinstance(html, str) or not html.strip():
        return []
    try:
        soup = BeautifulSoup(html, "html.parser")
        films = _parse_containers(soup)
        if not films:
            films = _parse_generic_anchors(soup)
        return dedupe_films(films)
    except Exception as exc:  # noqa: BLE001
        logger.warning("scraper: list page parse failed: %s", exc)
        return []


def parse_total_pages(html: object) -> int:
    """Return the highest page number linked from the pager, at least 1.

    Numbers above :data:`~fa_viewer.scraper.config.MAX_PAGER_VALUE` are
    ignored so a year or id inside a pager-like element is never read as
    a page count.
    """
    if not isinstance(html, str) or not html.strip():
        return 1
    try:
        soup = BeautifulSoup(html, "html.parser")
    except Exception as exc:  # noqa: BLE001
        logger.warning("scraper: pager parse failed: %s", exc)
        return 1

    total = 1
    for selector in PAGER_SELECTORS:
        for link in soup.select(selector):
            text = link.get_text(strip=True)
            if not text.isdecimal():
                continue
            value = int(text)
            if total < value <= MAX_PAGER_VALUE:
                total = value
    return total
