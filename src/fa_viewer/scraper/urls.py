"""Source URL validation, pagination URLs and list-key derivation."""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
from typing import Literal
from urllib.parse import urlparse

from fa_viewer.core.exceptions import InputValidationError
from fa_viewer.scraper.config import FA_ALLOWED_HOST

#: Fixed length of a derived list key.
LIST_KEY_LENGTH: int = 32

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")

KeyEncoding = Literal["sha256", "base64"]


def _decode_base64_url(raw: str) -> str:
    """Decode a base64-encoded URL as older clients sent it."""
    padded = raw.strip() + "=" * (-len(raw.strip()) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.replace("+", "-").replace("/", "_"))
        return decoded.decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError) as exc:
        raise InputValidationError("Invalid url param") from exc


def resolve_list_url(raw: str | None) -> str:
    """Validate the ``url`` parameter and return the FilmAffinity list URL.

    Accepts a plain ``http(s)`` URL or its base64 encoding.

    Raises:
        InputValidationError: When the parameter is missing, undecodable or
            does not point at FilmAffinity.
    """
    if raw is None or not raw.strip():
        raise InputValidationError("Missing url param")

    candidate = raw.strip()
    if not re.match(r"^https?://", candidate, re.IGNORECASE):
        candidate = _decode_base64_url(candidate).strip()

    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        raise InputValidationError("Invalid url param")

    host = parsed.hostname.lower()
    if host != FA_ALLOWED_HOST and not host.endswith("." + FA_ALLOWED_HOST):
        raise InputValidationError("Only filmaffinity.com URLs are supported")
    return candidate


def page_url(list_url: str, page: int) -> str:
    """Return the URL of page *page* of *list_url* (page 1 is the URL itself)."""
    if page <= 1:
        return list_url
    separator = "&" if "?" in list_url else "?"
    return f"{list_url}{separator}page={page}"


def derive_list_key(list_url: str, encoding: KeyEncoding = "sha256") -> str:
    """Derive the storage key for *list_url*.

    Keys are alphanumeric and at most :data:`LIST_KEY_LENGTH` characters.
    Truncation makes collisions possible; they are accepted.

    Args:
        list_url: Validated FilmAffinity list URL.
        encoding: ``"sha256"`` (hex digest) or ``"base64"`` (reversible
            prefix, matching keys computed by older browser clients).
    """
    if encoding == "base64":
        encoded = base64.b64encode(list_url.encode("utf-8")).decode("ascii")
        return _NON_ALNUM_RE.sub("", encoded)[:LIST_KEY_LENGTH]
    return hashlib.sha256(list_url.encode("utf-8")).hexdigest()[:LIST_KEY_LENGTH]
