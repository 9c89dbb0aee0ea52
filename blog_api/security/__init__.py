"""Security helpers."""
from __future__ import annotations

from .admin import require_admin_token
from .secrets import MissingSecretError, is_placeholder, require_secret

__all__ = ["MissingSecretError", "is_placeholder", "require_admin_token", "require_secret"]
