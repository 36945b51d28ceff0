"""Constants and tuning parameters for the FilmAffinity scraper."""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Upstream site
# ---------------------------------------------------------------------------

#: Scheme + host used to absolutise relative links.
FA_BASE_URL: str = "https://www.filmaffinity.com"

#: Landing page visited to obtain a session cookie; also sent as Referer.
FA_LANDING_URL: str = f"{FA_BASE_URL}/es/main.html"

#: Host suffix every accepted list URL must carry.
FA_ALLOWED_HOST: str = "filmaffinity.com"

#: Detail-page links carry a numeric id of at least five digits.
DETAIL_HREF_RE: re.Pattern[str] = re.compile(r"/film(\d{5,})\.")

#: Valid ids accepted by the film detail endpoint.
FILM_ID_RE: re.Pattern[str] = re.compile(r"^\d{5,10}$")

# ---------------------------------------------------------------------------
# Fetch policy
# ---------------------------------------------------------------------------

#: Default per-request timeout in seconds.
DEFAULT_TIMEOUT: float = 20.0

#: Timeout for the landing-page session request.
SESSION_TIMEOUT: float = 15.0

#: Consecutive HTTP 429 retries before giving up (4s, 8s, 16s, 32s).
RATE_LIMIT_MAX_RETRIES: int = 4

#: First 429 backoff in seconds; doubles on every retry.
RATE_LIMIT_BASE_DELAY: float = 4.0

#: Upper bound of the random jitter added to every 429 backoff.
RATE_LIMIT_JITTER: float = 2.0

#: Retries on HTTP 403/503 before giving up.
BLOCKED_MAX_RETRIES: int = 2

#: Pause before retrying a 403/503, plus up to ``BLOCKED_JITTER`` seconds.
BLOCKED_DELAY: float = 8.0
BLOCKED_JITTER: float = 4.0

#: Bodies shorter than this (stripped characters) are not real pages.
MIN_BODY_LENGTH: int = 200

#: Substrings that identify an anti-bot challenge interstitial.
CHALLENGE_MARKERS: tuple[str, ...] = (
    "Just a moment",
    "cf-browser-verification",
    "cf_chl_opt",
    "challenge-platform",
)

#: Wait suggested to the user after a persistent 429.
RATE_LIMIT_RETRY_AFTER: float = 300.0

# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

#: Hard cap on list pages fetched by one refresh job.
MAX_PAGES: int = 30

#: Page numbers above this are ignored when reading the pager (years, ids).
MAX_PAGER_VALUE: int = 99

# ---------------------------------------------------------------------------
# Client identity
# ---------------------------------------------------------------------------

#: Pool of current desktop browser user-agents, one picked per request.
USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2_1) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:122.0) Gecko/20100101 Firefox/122.0",
)

#: Browser-like headers sent with every page request.
BASE_HEADERS: dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
    "Referer": FA_LANDING_URL,
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Upgrade-Insecure-Requests": "1",
    "DNT": "1",
}

# ---------------------------------------------------------------------------
# List-page selectors (priority order)
# ---------------------------------------------------------------------------

#: Container selectors for the list-item layouts FilmAffinity has used.
#: All of them are matched together so pages mixing layouts keep every item.
CONTAINER_SELECTORS: tuple[str, ...] = (
    ".user-list-film-item",
    ".fa-film",
    ".film-card",
    ".user-movie-item",
    ".movie-card",
    "li[data-movie-id]",
    "[data-movie-id]",
)

#: Title candidates inside a container.  The anchor's visible text is not a
#: candidate: it often wraps the poster alt text plus the title.
TITLE_SELECTORS: tuple[str, ...] = (
    ".mc-title a",
    ".mc-title",
    ".title-mc",
    ".movie-title",
    "h2",
    "h3",
)

RATING_SELECTORS: tuple[str, ...] = (
    ".avgrat-box",
    ".rat-avg",
    "[class*='avgrat']",
)

YEAR_SELECTORS: tuple[str, ...] = (
    ".mc-year",
    "[class*='year']",
)

#: Markup that flags a TV series independently of the item text.
SERIES_SELECTORS: tuple[str, ...] = (
    ".tv-series",
    ".type-serie",
    "[class*='serie']",
)

#: Lower-cased text fragments that mark a TV series or miniseries.
SERIES_KEYWORDS: tuple[str, ...] = (
    "serie de tv",
    "serie tv",
    "miniserie",
    "tv series",
    "miniseries",
)

#: Image attributes tried in order; lazy loaders keep the real URL in data-*.
POSTER_ATTRIBUTES: tuple[str, ...] = (
    "src",
    "data-src",
    "data-lazy-src",
    "data-original",
    "data-srcset",
    "srcset",
)

#: Links whose text is a page number.
PAGER_SELECTORS: tuple[str, ...] = (
    ".pager a",
    ".pagination a",
    "[class*='pager'] a",
    "[class*='pagination'] a",
)
