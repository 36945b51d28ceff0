"""Prometheus metrics for FA Viewer.

All metrics are module-level singletons registered on the default
``REGISTRY``.

Metrics defined here:

  upstream_fetches_total{outcome}
      Counter: FilmAffinity page fetches by final outcome (ok,
      rate_limited, forbidden, unavailable, http_error, empty, challenge).

  upstream_retries_total{reason}
      Counter: retries performed by the fetcher (rate_limited, blocked).

  refresh_jobs_total{status}
      Counter: refresh jobs reaching a terminal state (done, error).

  enrichment_lookups_total{outcome}
      Counter: TMDB enrichment lookups (cache_hit, match, no_match,
      invalid_key, error).

  http_requests_total{method, path, status}
      Counter: HTTP requests handled by the FastAPI application.

Usage::

    from fa_viewer.api.metrics import refresh_jobs_total
    refresh_jobs_total.labels(status="done").inc()
"""

from __future__ import annotations

from prometheus_client import Counter

upstream_fetches_total: Counter = Counter(
    "upstream_fetches_total",
    "FilmAffinity page fetches by final outcome.",
    labelnames=["outcome"],
)

upstream_retries_total: Counter = Counter(
    "upstream_retries_total",
    "Retries performed against FilmAffinity by reason.",
    labelnames=["reason"],
)

refresh_jobs_total: Counter = Counter(
    "refresh_jobs_total",
    "List refresh jobs reaching a terminal state.",
    labelnames=["status"],
)

enrichment_lookups_total: Counter = Counter(
    "enrichment_lookups_total",
    "TMDB enrichment lookups by outcome.",
    labelnames=["outcome"],
)

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)
"""Counter incremented after every HTTP response.

Labels:
  method: HTTP method (GET, POST, …)
  path:   route template where available, raw path otherwise
  status: HTTP response status code as string (e.g. '200', '404')
"""


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string).
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST
