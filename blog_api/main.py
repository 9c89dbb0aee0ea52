"""Application entry point for the FastAPI backend."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import init_db
from .middleware import PublicApiCorsMiddleware
from .routers import admin_images_router, images_router, public_posts_router
from .services import StorageConfigurationError, setup_delivery, shutdown_delivery

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version

app = FastAPI(title=APP_NAME, version=API_VERSION)

app.add_middleware(PublicApiCorsMiddleware, allowed_origins=settings.allowed_origins)

app.include_router(public_posts_router)
app.include_router(images_router)
app.include_router(admin_images_router)

setup_delivery(app)


@app.exception_handler(StorageConfigurationError)
async def _storage_configuration_error(request: Request, exc: StorageConfigurationError) -> JSONResponse:
    logger.error("Storage is not configured: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=500)


@app.on_event("startup")
async def _startup() -> None:
    """Ensure database schema and delivery state are ready before serving."""

    try:
        init_db()
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Database initialisation failed")
        raise

    setup_delivery(app)
    logger.info("Serving images for %s (allowed origins: %s)", settings.canonical_origin, ", ".join(settings.allowed_origins))


@app.on_event("shutdown")
async def _shutdown() -> None:
    await shutdown_delivery(app)


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    """Report the storage bucket the backend resolves images against."""

    return {"status": "ok", "bucket": settings.storage_bucket}
