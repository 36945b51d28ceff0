"""Logging setup for fa-viewer.

:func:`configure_logging` installs a single stdout handler on the root
logger whose formatter runs every record, stdlib or structlog, through the
same processor chain.  Scraper, enrichment and storage code logs through
``logging.getLogger(__name__)`` with ``"scraper: ..."`` style messages; the
HTTP layer uses ``structlog.get_logger(__name__)`` with keyword events.

Records are rendered as one JSON object per line, except at ``DEBUG``
where structlog's console renderer is used.
"""

from __future__ import annotations

import logging
import re
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Set by the request middleware; copied onto every record of that request."""

_REDACTED = "[REDACTED]"

#: Event keys whose values never reach the output (lower-cased match).
_SENSITIVE_KEY_PARTS: tuple[str, ...] = (
    "api_key",
    "apikey",
    "token",
    "secret",
    "cookie",
    "authorization",
    "password",
)

#: TMDB requests carry the key in the query string; httpx logs the full URL.
_QUERY_KEY_RE = re.compile(r"(api_key=)[^&\s\"']+")

#: Third-party loggers that are too chatty outside ``DEBUG``.
_QUIET_LOGGERS: tuple[str, ...] = ("uvicorn.access", "httpx", "httpcore")


def _is_sensitive(name: Any) -> bool:
    lowered = str(name).lower()
    return any(part in lowered for part in _SENSITIVE_KEY_PARTS)


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Mask sensitive values in the record.

    Keys are checked at the top level and inside one level of ``dict``
    values, so a ``headers={...}`` field loses its ``Cookie`` entry.  String
    values have any ``api_key=`` query parameter masked.
    """
    for name, value in list(event_dict.items()):
        if _is_sensitive(name):
            event_dict[name] = _REDACTED
        elif isinstance(value, dict):
            for inner in [k for k in value if _is_sensitive(k)]:
                value[inner] = _REDACTED
        elif isinstance(value, str) and "api_key=" in value:
            event_dict[name] = _QUERY_KEY_RE.sub(rf"\1{_REDACTED}", value)
    return event_dict


def _inject_request_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    request_id = request_id_var.get()
    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def _processor_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _inject_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        # Runs after format_exc_info so URLs inside tracebacks are masked too.
        _redact_secrets,
    ]


def _stdout_handler(renderer: Processor, chain: list[Processor]) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    return handler


def configure_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging and structlog to one stdout handler.

    Safe to call repeatedly; each call replaces the root handlers.

    Args:
        log_level: Level name, case-insensitive.  Unknown names fall back
            to ``INFO``.  ``DEBUG`` also switches to console rendering and
            leaves the HTTP client loggers at their own level.
    """
    name = log_level.upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO
    debug = level == logging.DEBUG

    chain = _processor_chain()
    renderer: Processor = (
        structlog.dev.ConsoleRenderer(colors=True) if debug else structlog.processors.JSONRenderer()
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stdout_handler(renderer, chain))
    root.setLevel(level)

    quiet_level = logging.NOTSET if debug else logging.WARNING
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
