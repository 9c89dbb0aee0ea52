"""Candidate URL construction for canonical image paths."""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import requests
from requests import RequestException

from ..constants import PROBE_TIMEOUT_SECONDS, SIGNED_URL_TTL_SECONDS
from .storage_service import StorageBackend

logger = logging.getLogger(__name__)

# Query parameters that only exist to defeat intermediary caches.
CACHE_BUSTING_PARAMS = frozenset({"download", "_cb", "cb", "_cache"})


class ImageStrategy(str, Enum):
    SIGNED = "signed"
    DIRECT_DOWNLOAD = "direct-download"
    PUBLIC = "public"
    S3_STYLE = "s3-style"


def _with_params(url: str, params: dict[str, str]) -> str:
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key not in params]
    query.extend(params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def direct_download_url(public_url: str, *, now: float | None = None) -> str:
    """Append the download marker and a millisecond cache-busting stamp to ``public_url``.

    View and download dispositions are cached separately by the storage CDN, so
    forcing the download variant with a fresh stamp sidesteps a stale cached view.
    """

    stamp = int((time.time() if now is None else now) * 1000)
    return _with_params(public_url, {"download": "", "_cb": str(stamp)})


def s3_style_url(base_url: str, bucket: str, path: str) -> str:
    """Object URL without the ``public`` marker segment."""

    key = quote(path.strip().lstrip("/"), safe="/")
    return f"{base_url.rstrip('/')}/storage/v1/object/{bucket}/{key}"


def base_path(url: str) -> str:
    """Return ``url`` with cache-busting parameters removed."""

    parts = urlsplit(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in CACHE_BUSTING_PARAMS
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def synthesize_local(path: str, strategy: ImageStrategy, storage: StorageBackend, *, now: float | None = None) -> str:
    """Build the URL for one of the strategies that need no network round-trip."""

    if strategy is ImageStrategy.PUBLIC:
        return storage.get_public_url(path)
    if strategy is ImageStrategy.DIRECT_DOWNLOAD:
        return direct_download_url(storage.get_public_url(path), now=now)
    if strategy is ImageStrategy.S3_STYLE:
        return s3_style_url(storage.base_url, storage.bucket, path)
    raise ValueError(f"{strategy.value} URLs must be issued by the storage service")


async def synthesize(
    path: str,
    strategy: ImageStrategy,
    storage: StorageBackend,
    *,
    now: float | None = None,
) -> str:
    """Produce a candidate URL for ``path``.

    Signing delegates to the storage service with the fixed twelve hour TTL and
    may raise :class:`~blog_api.services.storage_service.SigningFailed`.
    """

    if strategy is ImageStrategy.SIGNED:
        return await storage.create_signed_url(path, SIGNED_URL_TTL_SECONDS)
    return synthesize_local(path, strategy, storage, now=now)


def _status_within(
    method: Callable[..., requests.Response],
    url: str,
    deadline: float,
    clock: Callable[[], float],
) -> int | None:
    """Issue one request with whatever is left of the shared budget; None on error or timeout."""

    remaining = deadline - clock()
    if remaining <= 0:
        return None
    try:
        response = method(url, allow_redirects=True, timeout=(remaining, remaining), stream=True)
    except RequestException as exc:
        logger.warning("Image probe %s %s failed: %s", method.__name__.upper(), url, exc)
        return None
    try:
        status_code = response.status_code
    finally:
        response.close()
    if clock() > deadline:
        logger.warning("Image probe %s %s exceeded its time budget", method.__name__.upper(), url)
        return None
    return status_code


def probe_image_url(
    url: str | None,
    *,
    timeout: float = PROBE_TIMEOUT_SECONDS,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Return True when ``url`` answers with a non-error status within ``timeout`` seconds in total.

    HEAD is tried first; a rejected HEAD falls back to a streamed GET that only
    gets the time the HEAD left over.
    """

    candidate = (url or "").strip()
    if not candidate:
        return False

    deadline = clock() + timeout
    status_code = _status_within(requests.head, candidate, deadline, clock)
    if status_code is None:
        return False
    if status_code < 400:
        return True
    status_code = _status_within(requests.get, candidate, deadline, clock)
    return status_code is not None and status_code < 400


__all__ = [
    "CACHE_BUSTING_PARAMS",
    "ImageStrategy",
    "base_path",
    "direct_download_url",
    "probe_image_url",
    "s3_style_url",
    "synthesize",
    "synthesize_local",
]
