"""FilmAffinity session cookie and client identity management.

FilmAffinity serves fewer challenges to clients that carry the cookies set
by its landing page, so a cookie header is obtained once and reused until
it is older than the session TTL or explicitly invalidated after a 403/503.
Each request also picks a random browser user-agent from
:data:`~fa_viewer.scraper.config.USER_AGENTS`.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Callable

import httpx

from fa_viewer.scraper.config import FA_LANDING_URL, SESSION_TIMEOUT, USER_AGENTS

logger = logging.getLogger(__name__)


def _cookie_pairs(set_cookie_values: list[str]) -> list[str]:
    """Reduce raw ``Set-Cookie`` values to ``name=value`` pairs."""
    pairs: list[str] = []
    for raw in set_cookie_values:
        pair = raw.split(";", 1)[0].strip()
        if "=" in pair and not pair.startswith("="):
            pairs.append(pair)
    return pairs


class SessionManager:
    """Owns the process-wide session cookie and the identity pool.

    Args:
        client: Shared HTTP client used for the landing-page request.
        ttl_seconds: Age after which the cookie is renewed.
        user_agents: Identity pool to pick from.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        ttl_seconds: float = 3600.0,
        user_agents: tuple[str, ...] = USER_AGENTS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._ttl = ttl_seconds
        self._user_agents = user_agents
        self._clock = clock
        self._cookie: str = ""
        self._obtained_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def cookie(self) -> str:
        """Current ``Cookie`` header value; empty when no session is held."""
        return self._cookie

    def pick_identity(self) -> str:
        """Return one randomly selected user-agent string."""
        return random.choice(self._user_agents)

    def _is_fresh(self) -> bool:
        return bool(self._cookie) and (self._clock() - self._obtained_at) < self._ttl

    async def ensure_session(self) -> None:
        """Renew the session cookie when it is missing or expired.

        Concurrent callers share one landing-page request.  Network failures
        are logged and swallowed: requests simply proceed without a cookie.
        """
        if self._is_fresh():
            return
        async with self._lock:
            if not self._is_fresh():
                await self._renew()

    async def _renew(self) -> None:
        try:
            response = await self._client.get(
                FA_LANDING_URL,
                headers={
                    "User-Agent": self.pick_identity(),
                    "Accept-Language": "es-ES,es;q=0.9",
                },
                follow_redirects=True,
                timeout=SESSION_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            logger.warning("scraper: session request failed, continuing without cookie: %s", exc)
            return

        raw_values: list[str] = []
        for resp in [*response.history, response]:
            raw_values.extend(resp.headers.get_list("set-cookie"))
        pairs = _cookie_pairs(raw_values)
        if not pairs:
            logger.debug("scraper: landing page set no cookies (HTTP %d)", response.status_code)
            return

        self._cookie = "; ".join(dict.fromkeys(pairs))
        self._obtained_at = self._clock()
        logger.info("scraper: session renewed with %d cookies", len(pairs))

    def invalidate(self) -> None:
        """Drop the current session so the next request obtains a new one."""
        if self._cookie:
            logger.info("scraper: invalidating session cookie")
        self._cookie = ""
        self._obtained_at = 0.0
        self._client.cookies.clear()
