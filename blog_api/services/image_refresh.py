"""Keeping signed image URLs fresh across long-lived sessions.

:class:`RefreshCoordinator` is constructed once per application and handed to
every image consumer. It owns the subscriber list for refresh-needed
broadcasts and the single visibility listener that fires them when a page
comes back to the foreground after more than an hour away.

:class:`ImageConsumer` is one displayed image: it drives an
:class:`~blog_api.services.image_resolver.ImageCascade`, re-signs its URL on an
hourly timer and on broadcasts, and releases its timer and subscription on
:meth:`ImageConsumer.close`.

All callbacks run on the event loop thread, so no locking is used; the
check-then-act sequences below contain no ``await``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..constants import REFRESH_INTERVAL, SIGNED_URL_TTL_SECONDS
from .image_resolver import Err, ImageResolver, Resolution, ResolvedURL
from .image_urls import ImageStrategy

logger = logging.getLogger(__name__)

Subscriber = Callable[[], None]
VisibilityListener = Callable[[bool], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RefreshState:
    last_refreshed_at: datetime
    refresh_interval: timedelta = REFRESH_INTERVAL
    signed_url_ttl_seconds: int = SIGNED_URL_TTL_SECONDS


class VisibilitySource:
    """Fan-out point for page visibility changes (``True`` when foregrounded)."""

    def __init__(self) -> None:
        self._listeners: list[VisibilityListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: VisibilityListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: VisibilityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, visible: bool) -> None:
        for listener in list(self._listeners):
            listener(visible)


class RefreshCoordinator:
    """Process-wide signed URL refresh bookkeeping and broadcast channel."""

    def __init__(
        self,
        visibility: VisibilitySource,
        *,
        clock: Callable[[], datetime] = _utcnow,
        refresh_interval: timedelta = REFRESH_INTERVAL,
    ) -> None:
        self.visibility = visibility
        self.refresh_interval = refresh_interval
        self.state: RefreshState | None = None
        self.listener_registered = False
        self._subscribers: list[Subscriber] = []
        self._clock = clock

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber`` for refresh-needed broadcasts; returns its unsubscribe callable."""

        self._subscribers.append(subscriber)
        return lambda: self.unsubscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def note_signed_resolution(self, resolved: ResolvedURL) -> None:
        """Initialise refresh state and the listener on the first signed issuance.

        Later issuances leave ``last_refreshed_at`` alone; only
        :meth:`refresh_if_stale` moves it, when it broadcasts.
        """

        if self.state is None:
            self.state = RefreshState(last_refreshed_at=resolved.issued_at, refresh_interval=self.refresh_interval)
        self.ensure_listener()

    def ensure_listener(self) -> bool:
        """Attach the visibility listener unless already attached; True when this call attached it."""

        if self.listener_registered:
            return False
        self.listener_registered = True
        self.visibility.add_listener(self._on_visibility_change)
        logger.debug("Image refresh visibility listener registered")
        return True

    def _on_visibility_change(self, visible: bool) -> None:
        if visible:
            self.refresh_if_stale()

    def refresh_if_stale(self, now: datetime | None = None) -> bool:
        """Broadcast once when more than the refresh interval has passed since the last refresh."""

        state = self.state
        if state is None:
            return False
        current = now or self._clock()
        if current - state.last_refreshed_at <= state.refresh_interval:
            return False
        logger.info(
            "Refreshing image URLs after %s away",
            current - state.last_refreshed_at,
        )
        self.broadcast()
        state.last_refreshed_at = current
        return True

    def broadcast(self) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber()
            except Exception:  # pragma: no cover - best effort logging
                logger.exception("Image refresh subscriber failed")

    def close(self) -> None:
        """Detach the visibility listener and drop every subscriber."""

        if self.listener_registered:
            self.visibility.remove_listener(self._on_visibility_change)
            self.listener_registered = False
        self._subscribers.clear()


class ImageConsumer:
    """One mounted image and everything it registered on the event loop.

    This models a consumer living in the same process as the coordinator.
    Remote consumers get the same hourly and broadcast pushes through
    ``/ws/images`` (see :mod:`blog_api.services.realtime`) and walk the cascade
    with ``POST /api/images/resolve``.
    """

    def __init__(
        self,
        raw: str | None,
        resolver: ImageResolver,
        coordinator: RefreshCoordinator,
        *,
        on_change: Callable[[Resolution], None] | None = None,
    ) -> None:
        self.cascade = resolver.cascade(raw)
        self.coordinator = coordinator
        self.refresh_count = 0
        self.closed = False
        self._on_change = on_change
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def current(self) -> Resolution:
        return self.cascade.current_resolution()

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    async def mount(self) -> Resolution:
        self._unsubscribe = self.coordinator.subscribe(self._on_refresh_needed)
        result = await self.cascade.start()
        if self.closed:
            return result
        if isinstance(result, ResolvedURL) and result.strategy is ImageStrategy.SIGNED:
            self._schedule_refresh()
        self._notify(result)
        return result

    def report_render_failure(self) -> Resolution:
        result = self.cascade.report_render_failure()
        if not (isinstance(result, ResolvedURL) and result.strategy is ImageStrategy.SIGNED):
            self._cancel_timer()
        self._notify(result)
        return result

    async def refresh(self) -> Resolution:
        """Re-sign the current URL; a failure keeps the stale URL until the next cycle."""

        self.refresh_count += 1
        outcome = await self.cascade.refresh()
        if self.closed:
            return self.current
        if isinstance(outcome, Err):
            logger.info("Keeping stale image URL for %r: %s", self.cascade.reference.raw, outcome.reason)
        else:
            self._notify(outcome.value)
        if self.cascade.current is not None and self.cascade.current.strategy is ImageStrategy.SIGNED:
            self._schedule_refresh()
        return self.current

    def close(self) -> None:
        """Cancel the pending timer and refresh task and leave the broadcast channel."""

        self.closed = True
        self._cancel_timer()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _notify(self, result: Resolution) -> None:
        if self._on_change is not None:
            self._on_change(result)

    def _schedule_refresh(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        delay = self.coordinator.refresh_interval.total_seconds()
        self._timer = loop.call_later(delay, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self._start_refresh()

    def _start_refresh(self) -> None:
        if self.closed:
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self.refresh())

    def _on_refresh_needed(self) -> None:
        if self.cascade.current is None or self.cascade.current.strategy is not ImageStrategy.SIGNED:
            return
        self._cancel_timer()
        self._start_refresh()


__all__ = [
    "ImageConsumer",
    "RefreshCoordinator",
    "RefreshState",
    "VisibilitySource",
]
