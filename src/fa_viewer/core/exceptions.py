"""Application-wide exception hierarchy for FA Viewer.

All custom exceptions subclass ``FaViewerError``, enabling consistent error
handling and structured logging across the application.

Hierarchy::

    FaViewerError
    ├── InputValidationError
    ├── UpstreamError                (url, status_code)
    │   ├── UpstreamRateLimitedError (retry_after: float)
    │   ├── UpstreamForbiddenError
    │   ├── UpstreamUnavailableError
    │   ├── UpstreamHttpError
    │   ├── EmptyResponseError
    │   └── UpstreamChallengeError
    ├── EnrichmentError
    └── StoreError
"""

from __future__ import annotations


class FaViewerError(Exception):
    """Base class for all FA Viewer exceptions."""


class InputValidationError(FaViewerError):
    """Raised when a caller supplies a missing or malformed parameter.

    Surfaced immediately as HTTP 400; never retried.
    """


# ---------------------------------------------------------------------------
# Upstream (FilmAffinity) exceptions
# ---------------------------------------------------------------------------


class UpstreamError(FaViewerError):
    """Raised when a FilmAffinity page cannot be fetched.

    Args:
        message: Human-readable, user-facing description of the failure.
        url: The URL that was being fetched.
        status_code: Final HTTP status, or ``None`` on network errors.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class UpstreamRateLimitedError(UpstreamError):
    """Raised when HTTP 429 persists after every backoff attempt.

    Args:
        message: Human-readable description including a wait suggestion.
        url: The URL that was being fetched.
        retry_after: Suggested seconds to wait before trying again.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        retry_after: float = 300.0,
    ) -> None:
        super().__init__(message, url=url, status_code=429)
        self.retry_after = retry_after


class UpstreamForbiddenError(UpstreamError):
    """Raised when HTTP 403 persists after session rotation."""


class UpstreamUnavailableError(UpstreamError):
    """Raised on persistent HTTP 503 or on a network-level failure."""


class UpstreamHttpError(UpstreamError):
    """Raised on any other non-2xx status.  Not retried."""


class EmptyResponseError(UpstreamError):
    """Raised when a 2xx body is too short to be a real page."""


class UpstreamChallengeError(UpstreamError):
    """Raised when the body is an anti-bot challenge interstitial."""


# ---------------------------------------------------------------------------
# Enrichment / storage exceptions
# ---------------------------------------------------------------------------


class EnrichmentError(FaViewerError):
    """Raised inside the TMDB client on unusable responses.

    Never escapes :meth:`fa_viewer.enrichment.service.Enricher.enrich`.

    Args:
        message: Description of the failure.
        status_code: HTTP status returned by TMDB, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreError(FaViewerError):
    """Raised when a storage backend cannot read or write a document."""
