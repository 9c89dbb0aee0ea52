"""Tests for the WebSocket fan-out of refresh broadcasts."""
from __future__ import annotations

import asyncio
import json
from datetime import timedelta

from blog_api.services.image_refresh import RefreshCoordinator, VisibilitySource
from blog_api.services.realtime import REFRESH_NEEDED_MESSAGE, ImageRefreshChannel


class _FakeSocket:
    client = ("127.0.0.1", 5000)

    def __init__(self, *, broken: bool = False) -> None:
        self.broken = broken
        self.accepted = False
        self.sent: list[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))


def test_broadcast_reaches_every_connection():
    async def scenario() -> None:
        channel = ImageRefreshChannel()
        coordinator = RefreshCoordinator(VisibilitySource())
        first, second = _FakeSocket(), _FakeSocket()
        await channel.connect(first, coordinator)
        await channel.connect(second, coordinator)

        coordinator.broadcast()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert first.accepted and second.accepted
        assert first.sent == [REFRESH_NEEDED_MESSAGE]
        assert second.sent == [REFRESH_NEEDED_MESSAGE]

    asyncio.run(scenario())


def test_failed_send_drops_the_connection():
    async def scenario() -> None:
        channel = ImageRefreshChannel()
        coordinator = RefreshCoordinator(VisibilitySource())
        await channel.connect(_FakeSocket(broken=True), coordinator)

        coordinator.broadcast()
        await asyncio.sleep(0.01)

        assert channel.connection_count == 0
        assert coordinator.subscriber_count == 0

    asyncio.run(scenario())


def test_disconnect_unsubscribes():
    async def scenario() -> None:
        channel = ImageRefreshChannel()
        coordinator = RefreshCoordinator(VisibilitySource())
        socket = _FakeSocket()
        await channel.connect(socket, coordinator)

        await channel.disconnect(socket)
        await channel.disconnect(socket)

        assert channel.connection_count == 0
        assert coordinator.subscriber_count == 0

    asyncio.run(scenario())


def test_each_connection_gets_an_hourly_push_until_disconnect():
    async def scenario() -> None:
        channel = ImageRefreshChannel()
        coordinator = RefreshCoordinator(VisibilitySource(), refresh_interval=timedelta(milliseconds=10))
        socket = _FakeSocket()
        await channel.connect(socket, coordinator)
        assert channel.has_pending_timer(socket)

        await asyncio.sleep(0.05)
        pushed = len(socket.sent)
        assert pushed >= 2
        assert all(message == REFRESH_NEEDED_MESSAGE for message in socket.sent)

        await channel.disconnect(socket)
        assert not channel.has_pending_timer(socket)
        await asyncio.sleep(0.03)
        assert len(socket.sent) == pushed

    asyncio.run(scenario())


def test_connection_timer_uses_the_refresh_interval():
    async def scenario() -> None:
        channel = ImageRefreshChannel()
        coordinator = RefreshCoordinator(VisibilitySource())
        socket = _FakeSocket()
        await channel.connect(socket, coordinator)

        await asyncio.sleep(0.01)

        assert socket.sent == []
        assert channel.has_pending_timer(socket)
        await channel.disconnect(socket)

    asyncio.run(scenario())
