"""Public image resolution endpoints and the refresh broadcast socket."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..schemas import RefreshImageResponse, ResolveImageRequest, ResolvedImageResponse
from ..services.delivery_service import coordinator_for, get_image_resolver, visibility_for
from ..services.image_resolver import ImageResolver, Resolution, ResolvedURL
from ..services.realtime import image_refresh_channel

router = APIRouter(tags=["images"])
logger = logging.getLogger(__name__)

_NO_CACHE = {"Cache-Control": "no-cache"}


def serialize_resolution(result: Resolution) -> ResolvedImageResponse:
    unoptimized = get_settings().allow_unoptimized_images
    if isinstance(result, ResolvedURL):
        return ResolvedImageResponse(
            url=result.url,
            strategy=result.strategy,
            issued_at=result.issued_at,
            expires_at=result.expires_at,
            unoptimized=unoptimized,
        )
    return ResolvedImageResponse(
        unresolved=True,
        unoptimized=unoptimized,
        title=result.title,
        detail=result.detail,
    )


@router.get("/api/refresh-image", response_model=RefreshImageResponse)
async def refresh_image_endpoint(
    path: str | None = Query(default=None),
    resolver: ImageResolver = Depends(get_image_resolver),
):
    """Return a fresh, directly usable URL for a stored image reference."""

    if not path or not path.strip():
        return JSONResponse({"error": "Image path is required"}, status_code=400, headers=_NO_CACHE)

    logger.info("Refreshing URL for image path %r", path)
    try:
        url = await resolver.resolve_for_delivery(path)
    except Exception:
        logger.exception("Error refreshing image URL for %r", path)
        return JSONResponse({"error": "Failed to refresh image URL"}, status_code=500, headers=_NO_CACHE)

    if not url:
        return JSONResponse(
            {"error": "Could not generate a valid image URL", "originalPath": path},
            status_code=404,
            headers=_NO_CACHE,
        )
    return JSONResponse(RefreshImageResponse(url=url).model_dump(), headers=_NO_CACHE)


@router.post("/api/images/resolve", response_model=ResolvedImageResponse)
async def resolve_image_endpoint(
    payload: ResolveImageRequest,
    resolver: ImageResolver = Depends(get_image_resolver),
) -> ResolvedImageResponse:
    """Drive the cascade for a remote consumer.

    The first call (no ``failed_strategy``) attempts a signed URL; each later call
    reports that the previous URL did not render and returns the next strategy,
    or the unavailable placeholder after the third reported failure.
    """

    result = await resolver.resolve_after_failure(
        payload.path,
        failed=payload.failed_strategy,
        failures=payload.failures,
    )
    return serialize_resolution(result)


@router.websocket("/ws/images")
async def image_refresh_socket(websocket: WebSocket) -> None:
    """Subscribe a consumer to refresh broadcasts and accept its visibility changes."""

    coordinator = coordinator_for(websocket.app)
    visibility = visibility_for(websocket.app)
    await image_refresh_channel.connect(websocket, coordinator)
    logger.info("Image socket connected from %s", websocket.client)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                continue

            message_type = str(payload.get("type") or "").lower()
            if message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif message_type == "visibility":
                visibility.emit(str(payload.get("state") or "").lower() == "visible")
    finally:
        await image_refresh_channel.disconnect(websocket)
        logger.info("Image socket disconnected from %s", websocket.client)


__all__ = ["router", "serialize_resolution"]
