"""Shared-token guard for the admin image maintenance routes."""
from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, status

from ..config import get_settings
from .secrets import is_placeholder


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    """FastAPI dependency rejecting requests without the configured admin token."""

    expected = get_settings().admin_api_token
    if is_placeholder(expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin routes are disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token.strip(), expected.strip()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")


__all__ = ["require_admin_token"]
