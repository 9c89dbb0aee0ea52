"""Resolution cascade turning a stored image reference into a renderable URL.

Order of strategies for a classified reference::

    SIGNED -> DIRECT_DOWNLOAD -> PUBLIC -> S3_STYLE -> UNRESOLVED

Only the signed attempt performs a network call. Every later step is driven by
a render-failure report from whoever displays the image; the resolver never
probes reachability on its own. References that cannot be classified are handed
back unchanged as a best-effort public URL.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Generic, TypeVar, Union

from ..constants import MAX_RENDER_FAILURES, SIGNED_URL_TTL_SECONDS, UNAVAILABLE_DETAIL, UNAVAILABLE_TITLE
from .image_paths import ClassifiedReference, ImageKind, classify
from .image_urls import ImageStrategy, synthesize, synthesize_local
from .storage_service import StorageBackend, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    reason: str


Result = Union[Ok[T], Err]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ResolvedURL:
    """A URL handed to a rendering consumer; ``expires_at`` is None for non-expiring strategies."""

    url: str
    strategy: ImageStrategy
    issued_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or _utcnow()) >= self.expires_at


class _Unresolvable:
    """Terminal sentinel returned once every strategy is exhausted."""

    _instance: "_Unresolvable | None" = None

    title = UNAVAILABLE_TITLE
    detail = UNAVAILABLE_DETAIL

    def __new__(cls) -> "_Unresolvable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = _Unresolvable()

Resolution = Union[ResolvedURL, _Unresolvable]


class CascadeStage(str, Enum):
    START = "start"
    SIGNED = "signed"
    DIRECT_DOWNLOAD = "direct-download"
    PUBLIC = "public"
    S3_STYLE = "s3-style"
    PASSTHROUGH = "passthrough"
    UNRESOLVED = "unresolved"


class CascadeEvent(str, Enum):
    CLASSIFIED_KNOWN = "classified-known"
    CLASSIFIED_UNKNOWN = "classified-unknown"
    SIGNING_SUCCEEDED = "signing-succeeded"
    SIGNING_FAILED = "signing-failed"
    RENDER_FAILED = "render-failed"


_TRANSITIONS: dict[tuple[CascadeStage, CascadeEvent], CascadeStage] = {
    (CascadeStage.START, CascadeEvent.CLASSIFIED_KNOWN): CascadeStage.SIGNED,
    (CascadeStage.START, CascadeEvent.CLASSIFIED_UNKNOWN): CascadeStage.PASSTHROUGH,
    (CascadeStage.SIGNED, CascadeEvent.SIGNING_SUCCEEDED): CascadeStage.SIGNED,
    (CascadeStage.SIGNED, CascadeEvent.SIGNING_FAILED): CascadeStage.DIRECT_DOWNLOAD,
    (CascadeStage.SIGNED, CascadeEvent.RENDER_FAILED): CascadeStage.DIRECT_DOWNLOAD,
    (CascadeStage.DIRECT_DOWNLOAD, CascadeEvent.RENDER_FAILED): CascadeStage.PUBLIC,
    (CascadeStage.PUBLIC, CascadeEvent.RENDER_FAILED): CascadeStage.S3_STYLE,
    (CascadeStage.S3_STYLE, CascadeEvent.RENDER_FAILED): CascadeStage.UNRESOLVED,
    (CascadeStage.PASSTHROUGH, CascadeEvent.RENDER_FAILED): CascadeStage.UNRESOLVED,
}


def next_stage(stage: CascadeStage, event: CascadeEvent) -> CascadeStage:
    """Total transition function; events that do not apply to ``stage`` leave it unchanged."""

    return _TRANSITIONS.get((stage, event), stage)


STAGE_STRATEGIES: dict[CascadeStage, ImageStrategy] = {
    CascadeStage.SIGNED: ImageStrategy.SIGNED,
    CascadeStage.DIRECT_DOWNLOAD: ImageStrategy.DIRECT_DOWNLOAD,
    CascadeStage.PUBLIC: ImageStrategy.PUBLIC,
    CascadeStage.S3_STYLE: ImageStrategy.S3_STYLE,
}


def stage_for_strategy(strategy: ImageStrategy) -> CascadeStage:
    for stage, candidate in STAGE_STRATEGIES.items():
        if candidate is strategy:
            return stage
    raise ValueError(f"Unknown strategy {strategy!r}")


class ImageCascade:
    """State of one image's walk through the cascade.

    ``render_failures`` counts failure reports; once it reaches
    ``MAX_RENDER_FAILURES`` the cascade is unresolved regardless of stage.
    """

    def __init__(
        self,
        raw: str | None,
        storage: StorageBackend,
        *,
        clock: Callable[[], datetime] = _utcnow,
        on_signed: Callable[[ResolvedURL], None] | None = None,
    ) -> None:
        self.reference: ClassifiedReference = classify(raw)
        self.storage = storage
        self.stage = CascadeStage.START
        self.render_failures = 0
        self.network_attempts = 0
        self.current: ResolvedURL | None = None
        self._clock = clock
        self._on_signed = on_signed

    @property
    def path(self) -> str | None:
        return self.reference.canonical_path

    @property
    def is_unresolved(self) -> bool:
        return self.stage is CascadeStage.UNRESOLVED

    def current_resolution(self) -> Resolution:
        if self.stage is CascadeStage.UNRESOLVED or self.current is None:
            return UNRESOLVED
        return self.current

    def _advance(self, event: CascadeEvent) -> CascadeStage:
        self.stage = next_stage(self.stage, event)
        return self.stage

    def _give_up(self) -> Resolution:
        self.stage = CascadeStage.UNRESOLVED
        self.current = None
        logger.warning(
            "Image unresolved after %d render failures (raw=%r, path=%r)",
            self.render_failures,
            self.reference.raw,
            self.path,
        )
        return UNRESOLVED

    async def _sign(self) -> Result[ResolvedURL]:
        path = self.path
        if path is None:
            return Err("reference has no object path")
        self.network_attempts += 1
        try:
            url = await synthesize(path, ImageStrategy.SIGNED, self.storage)
        except StorageError as exc:
            logger.warning(
                "Signing failed (raw=%r, strategy=%s, path=%r): %s",
                self.reference.raw,
                ImageStrategy.SIGNED.value,
                path,
                exc,
            )
            return Err(str(exc))
        issued_at = self._clock()
        return Ok(
            ResolvedURL(
                url=url,
                strategy=ImageStrategy.SIGNED,
                issued_at=issued_at,
                expires_at=issued_at + timedelta(seconds=SIGNED_URL_TTL_SECONDS),
            )
        )

    def _local(self, stage: CascadeStage) -> ResolvedURL:
        strategy = STAGE_STRATEGIES[stage]
        issued_at = self._clock()
        url = synthesize_local(self.path or "", strategy, self.storage, now=issued_at.timestamp())
        return ResolvedURL(url=url, strategy=strategy, issued_at=issued_at)

    def _enter(self, stage: CascadeStage) -> Resolution:
        if stage is CascadeStage.UNRESOLVED:
            return self._give_up()
        self.current = self._local(stage)
        logger.info(
            "Image falling back to %s (raw=%r, path=%r, failures=%d)",
            self.current.strategy.value,
            self.reference.raw,
            self.path,
            self.render_failures,
        )
        return self.current

    async def start(self) -> Resolution:
        """Classify and attempt the signed strategy once."""

        if self.stage is not CascadeStage.START:
            return self.current_resolution()

        if self.reference.kind is ImageKind.UNKNOWN:
            self._advance(CascadeEvent.CLASSIFIED_UNKNOWN)
            if not self.reference.raw:
                self.stage = CascadeStage.UNRESOLVED
                return UNRESOLVED
            logger.debug("Unclassifiable image reference %r passed through unchanged", self.reference.raw)
            self.current = ResolvedURL(url=self.reference.raw, strategy=ImageStrategy.PUBLIC, issued_at=self._clock())
            return self.current

        self._advance(CascadeEvent.CLASSIFIED_KNOWN)
        signed = await self._sign()
        if isinstance(signed, Ok):
            self._advance(CascadeEvent.SIGNING_SUCCEEDED)
            self.current = signed.value
            if self._on_signed is not None:
                self._on_signed(signed.value)
            return self.current

        return self._enter(self._advance(CascadeEvent.SIGNING_FAILED))

    def report_render_failure(self) -> Resolution:
        """Record that the current URL did not load and move to the next strategy."""

        if self.stage is CascadeStage.UNRESOLVED:
            return UNRESOLVED
        if self.stage is CascadeStage.START:
            raise RuntimeError("Cascade has not been started")

        self.render_failures += 1
        logger.info(
            "Render failure %d for %r at strategy %s",
            self.render_failures,
            self.reference.raw,
            self.current.strategy.value if self.current else None,
        )
        if self.render_failures >= MAX_RENDER_FAILURES:
            return self._give_up()
        return self._enter(self._advance(CascadeEvent.RENDER_FAILED))

    async def refresh(self) -> Result[ResolvedURL]:
        """Reissue the signed URL; on failure the current URL is left in place."""

        if self.stage is not CascadeStage.SIGNED:
            return Err(f"cascade is at {self.stage.value}, nothing to refresh")
        signed = await self._sign()
        if isinstance(signed, Ok):
            self.current = signed.value
            if self._on_signed is not None:
                self._on_signed(signed.value)
        return signed

    def resume(self, failed: ImageStrategy, render_failures: int) -> Resolution:
        """Continue a cascade whose previous URL, issued with ``failed``, did not render.

        Used when the consumer is remote and the cascade state lives with it.
        No network call is made.
        """

        self.stage = stage_for_strategy(failed)
        self.render_failures = max(0, render_failures)
        if self.reference.kind is ImageKind.UNKNOWN:
            self.stage = CascadeStage.PASSTHROUGH
        self.current = ResolvedURL(url=self.reference.raw, strategy=failed, issued_at=self._clock())
        return self.report_render_failure()


class ImageResolver:
    """Entry point owning the storage collaborator and the signed-resolution hook."""

    def __init__(
        self,
        storage: StorageBackend,
        *,
        clock: Callable[[], datetime] = _utcnow,
        on_signed: Callable[[ResolvedURL], None] | None = None,
    ) -> None:
        self.storage = storage
        self._clock = clock
        self._on_signed = on_signed

    def cascade(self, raw: str | None) -> ImageCascade:
        return ImageCascade(raw, self.storage, clock=self._clock, on_signed=self._on_signed)

    async def resolve(self, raw: str | None) -> Resolution:
        return await self.cascade(raw).start()

    async def resolve_after_failure(
        self,
        raw: str | None,
        *,
        failed: ImageStrategy | None,
        failures: int = 0,
    ) -> Resolution:
        """Resolution for a remote consumer reporting how far its cascade has gone."""

        if failures >= MAX_RENDER_FAILURES:
            return UNRESOLVED
        cascade = self.cascade(raw)
        if failed is None:
            return await cascade.start()
        return cascade.resume(failed, failures)

    async def resolve_for_delivery(self, raw: str | None) -> str | None:
        """URL to embed in API payloads, or None when nothing usable can be produced."""

        result = await self.resolve(raw)
        if isinstance(result, ResolvedURL):
            return result.url
        return None


__all__ = [
    "CascadeEvent",
    "CascadeStage",
    "Err",
    "ImageCascade",
    "ImageResolver",
    "Ok",
    "Resolution",
    "ResolvedURL",
    "Result",
    "STAGE_STRATEGIES",
    "UNRESOLVED",
    "next_stage",
    "stage_for_strategy",
]
