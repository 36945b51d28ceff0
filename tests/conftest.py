"""Shared pytest fixtures for FA Viewer tests.

Fixture summary
---------------
settings         Settings with every delay zeroed and enrichment disabled.
store            Fresh in-memory FilmStore.
http_client      httpx.AsyncClient; pair with ``respx.mock`` to stub upstreams.
session          SessionManager over ``http_client``.
fetcher          PageFetcher with a zero-delay retry policy.

Helpers
-------
list_page_html()   Builds a FilmAffinity-like list page.

No test touches the network: every upstream call is stubbed with respx.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Iterable

import httpx
import pytest
import pytest_asyncio

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set before any application module builds Settings, so importing
# ``fa_viewer.api.main`` never reads a developer's .env values.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "FA_STORE_BACKEND": "memory",
    "FA_TMDB_API_KEY": "",
    "FA_RATE_LIMIT_ENABLED": "false",
    "FA_PAGE_DELAY_MIN": "0",
    "FA_PAGE_DELAY_MAX": "0",
    "FA_FILM_DELAY_MIN": "0",
    "FA_FILM_DELAY_MAX": "0",
    "FA_ENRICH_DELAY": "0",
    "FA_STATIC_DIR": "tests/does-not-exist",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ[_key] = _default

from fa_viewer.config.settings import Settings, get_settings  # noqa: E402
from fa_viewer.scraper.http_fetcher import FetchPolicy, PageFetcher  # noqa: E402
from fa_viewer.scraper.session import SessionManager  # noqa: E402
from fa_viewer.storage.memory import MemoryStore  # noqa: E402

get_settings.cache_clear()

LANDING_URL = "https://www.filmaffinity.com/es/main.html"
LIST_URL = "https://www.filmaffinity.com/es/userlist.php?user_id=123&list_id=456"

ZERO_DELAY_POLICY = FetchPolicy(
    rate_limit_base_delay=0,
    rate_limit_jitter=0,
    blocked_delay=0,
    blocked_jitter=0,
)


# ---------------------------------------------------------------------------
# HTML builders
# ---------------------------------------------------------------------------


def film_item_html(
    film_id: str,
    title: str,
    *,
    year: int | None = 2001,
    rating: str | None = "7,5",
    poster: str | None = None,
    extra: str = "",
) -> str:
    """Render one ``.user-list-film-item`` container."""
    poster_url = poster or f"https://pics.filmaffinity.com/{film_id}-msmall.jpg"
    year_html = f'<span class="mc-year">{year}</span>' if year else ""
    rating_html = f'<div class="avgrat-box">{rating}</div>' if rating else ""
    return (
        '<li class="user-list-film-item">'
        f'<a href="/es/film{film_id}.html"><img src="{poster_url}" alt="{title}"></a>'
        f'<div class="mc-title"><a href="/es/film{film_id}.html">{title}</a></div>'
        f"{year_html}{rating_html}{extra}"
        "</li>"
    )


def list_page_html(
    films: Iterable[tuple[str, str]],
    *,
    total_pages: int | None = None,
) -> str:
    """Render a list page with the given ``(id, title)`` films and pager."""
    items = "".join(film_item_html(film_id, title) for film_id, title in films)
    pager = ""
    if total_pages:
        links = "".join(f'<a href="?page={n}">{n}</a>' for n in range(1, total_pages + 1))
        pager = f'<div class="pager">{links}</div>'
    filler = "<p>" + ("Lista de películas de un usuario de FilmAffinity. " * 8) + "</p>"
    return f"<html><head><title>Lista</title></head><body>{filler}<ul>{items}</ul>{pager}</body></html>"


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: memory store, no delays, enrichment off."""
    return Settings(
        store_backend="memory",
        tmdb_api_key="",
        rate_limit_enabled=False,
        page_delay_min=0,
        page_delay_max=0,
        film_delay_min=0,
        film_delay_max=0,
        enrich_delay=0,
        static_dir="tests/does-not-exist",
        _env_file=None,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest_asyncio.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def session(http_client: httpx.AsyncClient) -> SessionManager:
    return SessionManager(http_client)


@pytest.fixture
def fetcher(http_client: httpx.AsyncClient, session: SessionManager) -> PageFetcher:
    return PageFetcher(http_client, session, ZERO_DELAY_POLICY)
