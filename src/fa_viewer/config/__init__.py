"""Configuration package for FA Viewer.

Re-exports the settings symbols so callers can write::

    from fa_viewer.config import get_settings
"""

from __future__ import annotations

from fa_viewer.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
