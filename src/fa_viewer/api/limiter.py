"""Shared slowapi rate-limiter singleton.

Keeping the ``Limiter`` instance in its own module lets route modules
reference it (for ``@limiter.exempt``) without importing ``main.py``.

The default limit is read from ``Settings.rate_limit`` each time a request
is checked, so tests that patch the environment see their own value.  The
``Limiter`` is attached to ``app.state`` and the ``SlowAPIMiddleware`` is
registered in ``main.create_app()``.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from fa_viewer.config.settings import get_settings


def _default_limit() -> str:
    return get_settings().rate_limit


limiter: Limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_default_limit],
)
"""Global rate-limiter instance.

Default limit: ``Settings.rate_limit`` (60 requests/minute) per IP address,
enforced globally via ``SlowAPIMiddleware``.  Liveness and metrics endpoints
are exempt.
"""
