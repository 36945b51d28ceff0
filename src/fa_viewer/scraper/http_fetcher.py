"""Async FilmAffinity page fetcher with backoff, session rotation and
challenge detection.

Uses ``httpx`` for all HTTP requests.  FilmAffinity rate-limits aggressively
and fronts its pages with a JavaScript challenge, so every page request goes
through :meth:`PageFetcher.fetch_page`, which applies this policy:

- **HTTP 429**: exponential backoff (4s, 8s, 16s, 32s plus jitter).  The
  ceiling counts *consecutive* 429 responses only.
- **HTTP 403 / 503**: up to two retries after a long pause, invalidating
  the session cookie first so the retry presents a fresh identity.
- **Other non-2xx**: fail immediately with :class:`UpstreamHttpError`.
- **2xx**: a challenge interstitial raises :class:`UpstreamChallengeError`;
  a near-empty body raises :class:`EmptyResponseError`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import NoReturn

import httpx

from fa_viewer.api.metrics import upstream_fetches_total, upstream_retries_total
from fa_viewer.config.settings import Settings
from fa_viewer.core.exceptions import (
    EmptyResponseError,
    UpstreamChallengeError,
    UpstreamForbiddenError,
    UpstreamHttpError,
    UpstreamRateLimitedError,
    UpstreamUnavailableError,
)
from fa_viewer.scraper.config import (
    BASE_HEADERS,
    BLOCKED_DELAY,
    BLOCKED_JITTER,
    BLOCKED_MAX_RETRIES,
    CHALLENGE_MARKERS,
    DEFAULT_TIMEOUT,
    MIN_BODY_LENGTH,
    RATE_LIMIT_BASE_DELAY,
    RATE_LIMIT_JITTER,
    RATE_LIMIT_MAX_RETRIES,
    RATE_LIMIT_RETRY_AFTER,
)
from fa_viewer.scraper.session import SessionManager

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchPolicy:
    """Timing and retry parameters for :class:`PageFetcher`.

    Attributes:
        timeout: Per-request timeout in seconds.
        rate_limit_max_retries: Consecutive 429 retries before giving up.
        rate_limit_base_delay: First 429 backoff; doubles per retry.
        rate_limit_jitter: Upper bound of random seconds added to a 429 backoff.
        blocked_max_retries: Retries on 403/503 before giving up.
        blocked_delay: Fixed pause before a 403/503 retry.
        blocked_jitter: Upper bound of random seconds added to that pause.
        min_body_length: Minimum stripped body length of a real page.
    """

    timeout: float = DEFAULT_TIMEOUT
    rate_limit_max_retries: int = RATE_LIMIT_MAX_RETRIES
    rate_limit_base_delay: float = RATE_LIMIT_BASE_DELAY
    rate_limit_jitter: float = RATE_LIMIT_JITTER
    blocked_max_retries: int = BLOCKED_MAX_RETRIES
    blocked_delay: float = BLOCKED_DELAY
    blocked_jitter: float = BLOCKED_JITTER
    min_body_length: int = MIN_BODY_LENGTH

    @classmethod
    def from_settings(cls, settings: Settings) -> FetchPolicy:
        return cls(timeout=settings.request_timeout)

    def rate_limit_delay(self, retry_index: int) -> float:
        """Backoff before the ``retry_index``-th 429 retry (0-based)."""
        return self.rate_limit_base_delay * (2**retry_index) + random.uniform(
            0.0, self.rate_limit_jitter
        )

    def blocked_pause(self) -> float:
        return self.blocked_delay + random.uniform(0.0, self.blocked_jitter)


# ---------------------------------------------------------------------------
# Body checks
# ---------------------------------------------------------------------------


def _is_challenge(html: str) -> bool:
    """Return ``True`` if the body is an anti-bot challenge page."""
    return any(marker in html for marker in CHALLENGE_MARKERS)


def _is_empty(html: str, threshold: int) -> bool:
    """Return ``True`` if the stripped body is shorter than *threshold*."""
    return len(html.strip()) < threshold


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class PageFetcher:
    """Fetch FilmAffinity pages through a shared client and session.

    Args:
        client: Shared :class:`httpx.AsyncClient`.
        session: Session/identity manager consulted before every request.
        policy: Retry and timing policy.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        session: SessionManager,
        policy: FetchPolicy | None = None,
    ) -> None:
        self._client = client
        self._session = session
        self._policy = policy or FetchPolicy()

    def _headers(self) -> dict[str, str]:
        headers = dict(BASE_HEADERS)
        headers["User-Agent"] = self._session.pick_identity()
        if self._session.cookie:
            headers["Cookie"] = self._session.cookie
        return headers

    async def _get(self, url: str) -> httpx.Response:
        await self._session.ensure_session()
        try:
            return await self._client.get(
                url,
                headers=self._headers(),
                follow_redirects=True,
                timeout=self._policy.timeout,
            )
        except httpx.TimeoutException as exc:
            upstream_fetches_total.labels(outcome="unavailable").inc()
            raise UpstreamUnavailableError(
                f"Timed out fetching {url}", url=url
            ) from exc
        except httpx.RequestError as exc:
            upstream_fetches_total.labels(outcome="unavailable").inc()
            raise UpstreamUnavailableError(
                f"Network error fetching {url}: {exc}", url=url
            ) from exc

    async def fetch_page(self, url: str) -> str:
        """Return the HTML body of *url*.

        Raises:
            UpstreamRateLimitedError: HTTP 429 persisted through every backoff.
            UpstreamForbiddenError: HTTP 403 persisted after session rotation.
            UpstreamUnavailableError: HTTP 503 persisted, or a network error.
            UpstreamChallengeError: The response is a challenge interstitial.
            UpstreamHttpError: Any other non-2xx status.
            EmptyResponseError: The body is too short to be a real page.
        """
        policy = self._policy
        rate_limit_retries = 0
        blocked_retries = 0

        while True:
            response = await self._get(url)
            status = response.status_code

            # 1. Rate limited: exponential backoff, consecutive 429s only
            if status == 429:
                if rate_limit_retries >= policy.rate_limit_max_retries:
                    upstream_fetches_total.labels(outcome="rate_limited").inc()
                    raise UpstreamRateLimitedError(
                        "FilmAffinity is temporarily rate-limiting requests. "
                        "Wait a few minutes and refresh again.",
                        url=url,
                        retry_after=RATE_LIMIT_RETRY_AFTER,
                    )
                wait = policy.rate_limit_delay(rate_limit_retries)
                rate_limit_retries += 1
                upstream_retries_total.labels(reason="rate_limited").inc()
                logger.warning(
                    "scraper: HTTP 429 for %s, waiting %.1fs (retry %d/%d)",
                    url,
                    wait,
                    rate_limit_retries,
                    policy.rate_limit_max_retries,
                )
                await asyncio.sleep(wait)
                continue
            rate_limit_retries = 0

            # 2. Forbidden / unavailable: rotate the session and retry
            if status in (403, 503):
                if blocked_retries >= policy.blocked_max_retries:
                    self._raise_blocked(url, response)
                blocked_retries += 1
                self._session.invalidate()
                wait = policy.blocked_pause()
                upstream_retries_total.labels(reason="blocked").inc()
                logger.warning(
                    "scraper: HTTP %d for %s, new session in %.1fs (retry %d/%d)",
                    status,
                    url,
                    wait,
                    blocked_retries,
                    policy.blocked_max_retries,
                )
                await asyncio.sleep(wait)
                continue

            # 3. Any other error status is not retried
            if not response.is_success:
                upstream_fetches_total.labels(outcome="http_error").inc()
                logger.info("scraper: HTTP %d for %s", status, url)
                raise UpstreamHttpError(f"HTTP {status}", url=url, status_code=status)

            html = response.text

            # 4. Challenge interstitial served with a 2xx status
            if _is_challenge(html):
                upstream_fetches_total.labels(outcome="challenge").inc()
                logger.warning("scraper: challenge page returned for %s", url)
                raise UpstreamChallengeError(
                    "FilmAffinity answered with an anti-bot challenge. Try again later.",
                    url=url,
                    status_code=status,
                )

            # 5. Near-empty body
            if _is_empty(html, policy.min_body_length):
                upstream_fetches_total.labels(outcome="empty").inc()
                logger.warning(
                    "scraper: empty response for %s (body_len=%d)", url, len(html.strip())
                )
                raise EmptyResponseError(
                    f"Empty response from {url}", url=url, status_code=status
                )

            upstream_fetches_total.labels(outcome="ok").inc()
            logger.debug("scraper: fetched %s (%d chars)", url, len(html))
            return html

    @staticmethod
    def _raise_blocked(url: str, response: httpx.Response) -> NoReturn:
        status = response.status_code
        if _is_challenge(response.text):
            upstream_fetches_total.labels(outcome="challenge").inc()
            raise UpstreamChallengeError(
                "FilmAffinity answered with an anti-bot challenge. Try again later.",
                url=url,
                status_code=status,
            )
        if status == 403:
            upstream_fetches_total.labels(outcome="forbidden").inc()
            raise UpstreamForbiddenError(
                "HTTP 403: FilmAffinity refused the request. Try again later.",
                url=url,
                status_code=status,
            )
        upstream_fetches_total.labels(outcome="unavailable").inc()
        raise UpstreamUnavailableError(
            "HTTP 503: FilmAffinity is unavailable. Try again later.",
            url=url,
            status_code=status,
        )
