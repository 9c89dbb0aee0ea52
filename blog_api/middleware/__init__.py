"""Middleware exports."""
from __future__ import annotations

from .cors import PublicApiCorsMiddleware

__all__ = ["PublicApiCorsMiddleware"]
