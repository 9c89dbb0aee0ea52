"""WebSocket fan-out of image refresh broadcasts.

Each connected socket stands in for a remote image consumer, so besides
coordinator broadcasts it also gets its own hourly ``image_refresh_needed``
push, cancelled when the socket goes away.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import WebSocket

from .image_refresh import RefreshCoordinator

logger = logging.getLogger(__name__)

REFRESH_NEEDED_MESSAGE = {"type": "image_refresh_needed"}


@dataclass
class _Connection:
    unsubscribe: Callable[[], None]
    interval: float
    timer: asyncio.TimerHandle | None = None


class ImageRefreshChannel:
    """Tracks connected image consumers and forwards refresh pushes to them."""

    def __init__(self) -> None:
        self._connections: dict[WebSocket, _Connection] = {}
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def has_pending_timer(self, websocket: WebSocket) -> bool:
        connection = self._connections.get(websocket)
        return connection is not None and connection.timer is not None

    async def connect(self, websocket: WebSocket, coordinator: RefreshCoordinator) -> None:
        await websocket.accept()
        connection = _Connection(
            unsubscribe=coordinator.subscribe(lambda: self._push(websocket)),
            interval=coordinator.refresh_interval.total_seconds(),
        )
        self._connections[websocket] = connection
        self._schedule(websocket, connection)

    async def disconnect(self, websocket: WebSocket) -> None:
        connection = self._connections.pop(websocket, None)
        if connection is None:
            return
        if connection.timer is not None:
            connection.timer.cancel()
            connection.timer = None
        connection.unsubscribe()

    def _schedule(self, websocket: WebSocket, connection: _Connection) -> None:
        loop = asyncio.get_running_loop()
        connection.timer = loop.call_later(connection.interval, self._on_timer, websocket)

    def _on_timer(self, websocket: WebSocket) -> None:
        connection = self._connections.get(websocket)
        if connection is None:
            return
        connection.timer = None
        self._push(websocket)
        self._schedule(websocket, connection)

    def _push(self, websocket: WebSocket) -> None:
        task = asyncio.get_running_loop().create_task(self.send(websocket, REFRESH_NEEDED_MESSAGE))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except Exception:
            logger.warning("Dropping image socket %s after failed send", websocket.client)
            await self.disconnect(websocket)


image_refresh_channel = ImageRefreshChannel()


__all__ = ["REFRESH_NEEDED_MESSAGE", "ImageRefreshChannel", "image_refresh_channel"]
