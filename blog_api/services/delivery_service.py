"""Application-scoped image delivery objects and their FastAPI providers.

One :class:`VisibilitySource`, one :class:`RefreshCoordinator` and one
:class:`ImageResolver` live on ``app.state``; routers receive them through the
dependencies below instead of reaching for module globals.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request

from .image_refresh import RefreshCoordinator, VisibilitySource
from .image_resolver import ImageResolver
from .storage_service import get_storage

logger = logging.getLogger(__name__)


def setup_delivery(app: FastAPI) -> RefreshCoordinator:
    """Create the visibility source and refresh coordinator for ``app`` if missing."""

    coordinator = getattr(app.state, "refresh_coordinator", None)
    if coordinator is None:
        visibility = VisibilitySource()
        coordinator = RefreshCoordinator(visibility)
        app.state.visibility_source = visibility
        app.state.refresh_coordinator = coordinator
        app.state.image_resolver = None
    return coordinator


def coordinator_for(app: FastAPI) -> RefreshCoordinator:
    return setup_delivery(app)


def visibility_for(app: FastAPI) -> VisibilitySource:
    setup_delivery(app)
    return app.state.visibility_source


def resolver_for(app: FastAPI) -> ImageResolver:
    """Return the app's resolver, building it on first use so storage settings are read lazily."""

    coordinator = setup_delivery(app)
    resolver = getattr(app.state, "image_resolver", None)
    if resolver is None:
        resolver = ImageResolver(get_storage(), on_signed=coordinator.note_signed_resolution)
        app.state.image_resolver = resolver
    return resolver


def get_refresh_coordinator(request: Request) -> RefreshCoordinator:
    return coordinator_for(request.app)


def get_image_resolver(request: Request) -> ImageResolver:
    return resolver_for(request.app)


async def shutdown_delivery(app: FastAPI) -> None:
    """Detach the process-wide listener and close the storage HTTP client."""

    coordinator = getattr(app.state, "refresh_coordinator", None)
    if coordinator is not None:
        coordinator.close()
    resolver = getattr(app.state, "image_resolver", None)
    closer = getattr(getattr(resolver, "storage", None), "aclose", None)
    if closer is not None:
        await closer()
    app.state.image_resolver = None
    logger.info("Image delivery shut down")


__all__ = [
    "coordinator_for",
    "get_image_resolver",
    "get_refresh_coordinator",
    "resolver_for",
    "setup_delivery",
    "shutdown_delivery",
    "visibility_for",
]
