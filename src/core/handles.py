"""Helpers for working with Twitter/X handles."""

from __future__ import annotations

import re
from typing import Optional

PROFILE_BASE_URL = "https://x.com/"

_URL_RE = re.compile(
    r"(?:https?://)?(?:www\.|mobile\.)?(?:twitter\.com|x\.com)/([A-Za-z0-9_]{1,15})(?![A-Za-z0-9_])",
    re.IGNORECASE,
)
# X usernames are 1-15 characters.
_HANDLE_RE = re.compile(r"^@?([A-Za-z0-9_]{1,15})$")


def extract_handle(raw: str) -> Optional[str]:
    """Return the bare username from an @handle, plain name, or profile/status URL."""

    text = raw.strip()
    if not text:
        return None

    url_match = _URL_RE.match(text)
    if url_match:
        return url_match.group(1)

    handle_match = _HANDLE_RE.match(text)
    if handle_match:
        return handle_match.group(1)
    return None


def normalize_handle(handle: str) -> str:
    """Normalize a handle for use as a storage key."""

    return handle.strip().lstrip("@").lower()


def profile_url(handle: str) -> str:
    return f"{PROFILE_BASE_URL}{handle}"
