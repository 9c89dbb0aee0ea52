"""Validation helpers for credentials read from settings."""
from __future__ import annotations

from typing import Final

__all__ = ["MissingSecretError", "require_secret", "is_placeholder"]


class MissingSecretError(RuntimeError):
    """Raised when a required credential is unset or still a template value."""


_PLACEHOLDER_VALUES: Final[set[str]] = {
    "changeme",
    "change-me",
    "placeholder",
    "your-service-key",
    "your-project.supabase.co",
    "https://your-project.supabase.co",
}


def is_placeholder(value: str | None) -> bool:
    if not value:
        return True
    normalized = value.strip().lower()
    return not normalized or normalized in _PLACEHOLDER_VALUES


def require_secret(name: str, value: str | None) -> str:
    """Return the trimmed ``value`` or raise :class:`MissingSecretError` naming ``name``."""

    if is_placeholder(value):
        raise MissingSecretError(f"{name} is required and must not use placeholder defaults")
    return value.strip()
