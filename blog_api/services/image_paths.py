"""Classification of stored image references.

A post's ``image_url`` column has accumulated several shapes over time: bucket
keys with a folder prefix, bare UUID filenames, full storage URLs (public or
signed) and the occasional arbitrary link. :func:`classify` maps a raw value to
one :class:`ImageKind` and, where possible, the object key it points at. It is
pure string work and never touches the network.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urlparse

from ..constants import DEFAULT_PREFIX, KNOWN_PREFIXES

_QUOTE_CHARS = "\"'"

UUID_FILENAME_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\.[a-z0-9]+$",
    re.IGNORECASE,
)

# /storage/v1/object/public/<bucket>/<key>, .../sign/<bucket>/<key> or .../object/<bucket>/<key>
OBJECT_URL_RE = re.compile(
    r"/storage/v\d+/object/(?:(?P<marker>public|sign|authenticated)/)?(?P<bucket>[^/?#]+)/(?P<key>[^?#]+)"
)


class ImageKind(str, Enum):
    CANONICAL_PATH = "canonical-path"
    UUID_FILENAME = "uuid-filename"
    FULL_OBJECT_URL = "full-object-url"
    BARE_FILENAME = "bare-filename"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ClassifiedReference:
    """Outcome of classifying one stored reference."""

    raw: str
    kind: ImageKind
    extracted_path: str | None
    bucket: str | None = None

    @property
    def canonical_path(self) -> str | None:
        return suggest_path(self)

    @property
    def needs_fix(self) -> bool:
        return self.kind is not ImageKind.CANONICAL_PATH


def clean_reference(raw: str | None) -> str:
    """Trim whitespace and any surrounding quote characters left by double encoding."""

    value = (raw or "").strip()
    while len(value) >= 2 and value[0] in _QUOTE_CHARS and value[-1] in _QUOTE_CHARS:
        value = value[1:-1].strip()
    return value


def has_known_prefix(path: str) -> bool:
    return path.startswith(KNOWN_PREFIXES)


def _extract_object_key(value: str) -> tuple[str, str] | None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    match = OBJECT_URL_RE.search(parsed.path)
    if match is None:
        return None
    key = unquote(match.group("key")).lstrip("/")
    if not key:
        return None
    return match.group("bucket"), key


def classify(raw: str | None) -> ClassifiedReference:
    """Return the shape of ``raw``; the first matching kind wins."""

    value = clean_reference(raw)
    if not value:
        return ClassifiedReference(raw=value, kind=ImageKind.UNKNOWN, extracted_path=None)

    if has_known_prefix(value):
        return ClassifiedReference(raw=value, kind=ImageKind.CANONICAL_PATH, extracted_path=value)

    if UUID_FILENAME_RE.match(value):
        return ClassifiedReference(raw=value, kind=ImageKind.UUID_FILENAME, extracted_path=value)

    extracted = _extract_object_key(value)
    if extracted is not None:
        bucket, key = extracted
        return ClassifiedReference(raw=value, kind=ImageKind.FULL_OBJECT_URL, extracted_path=key, bucket=bucket)

    if "." in value and "/" not in value and not any(ch.isspace() for ch in value):
        return ClassifiedReference(raw=value, kind=ImageKind.BARE_FILENAME, extracted_path=value)

    return ClassifiedReference(raw=value, kind=ImageKind.UNKNOWN, extracted_path=None)


def suggest_path(reference: ClassifiedReference) -> str | None:
    """Canonical object key implied by ``reference``, prefixing the default folder when absent."""

    path = reference.extracted_path
    if not path:
        return None
    if has_known_prefix(path):
        return path
    return f"{DEFAULT_PREFIX}{path}"


__all__ = [
    "ClassifiedReference",
    "ImageKind",
    "OBJECT_URL_RE",
    "UUID_FILENAME_RE",
    "classify",
    "clean_reference",
    "has_known_prefix",
    "suggest_path",
]
