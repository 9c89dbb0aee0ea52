"""CORS handling for the public API consumed by other sites."""
from __future__ import annotations

from collections.abc import Sequence

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

ALLOWED_METHODS = "GET, POST, OPTIONS"
PREFLIGHT_MAX_AGE = "86400"


def pick_allowed_origin(origin: str | None, allowed: Sequence[str]) -> str:
    """Echo ``origin`` when allow-listed, otherwise answer with the canonical (first) origin."""

    candidate = (origin or "").strip().rstrip("/")
    if candidate and candidate in allowed:
        return candidate
    return allowed[0]


class PublicApiCorsMiddleware(BaseHTTPMiddleware):
    """Answer preflights and stamp ``Access-Control-Allow-Origin`` on public API responses."""

    def __init__(self, app: ASGIApp, *, allowed_origins: Sequence[str], path_prefix: str = "/api/") -> None:
        super().__init__(app)
        if not allowed_origins:
            raise ValueError("At least one allowed origin is required")
        self._allowed = tuple(allowed_origins)
        self._prefix = path_prefix

    def _headers(self, request: Request) -> dict[str, str]:
        return {
            "Access-Control-Allow-Origin": pick_allowed_origin(request.headers.get("origin"), self._allowed),
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": "Content-Type",
            "Vary": "Origin",
        }

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self._prefix):
            return await call_next(request)

        headers = self._headers(request)
        if request.method.upper() == "OPTIONS":
            headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE
            return JSONResponse({}, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response


__all__ = ["PublicApiCorsMiddleware", "pick_allowed_origin"]
