"""Project-wide constant values for image storage and delivery."""
from __future__ import annotations

from datetime import timedelta

# Folder prefixes that mark a stored reference as a canonical object key.
KNOWN_PREFIXES: tuple[str, ...] = ("blog/", "post-images/")
DEFAULT_PREFIX = "blog/"

SIGNED_URL_TTL_SECONDS = 12 * 60 * 60
REFRESH_INTERVAL = timedelta(hours=1)

# Render-failure driven fallbacks allowed after the signed attempt.
MAX_RENDER_FAILURES = 3

PROBE_TIMEOUT_SECONDS = 5.0

UNAVAILABLE_TITLE = "Image not available"
UNAVAILABLE_DETAIL = "Check storage bucket permissions"

__all__ = [
    "KNOWN_PREFIXES",
    "DEFAULT_PREFIX",
    "SIGNED_URL_TTL_SECONDS",
    "REFRESH_INTERVAL",
    "MAX_RENDER_FAILURES",
    "PROBE_TIMEOUT_SECONDS",
    "UNAVAILABLE_TITLE",
    "UNAVAILABLE_DETAIL",
]
