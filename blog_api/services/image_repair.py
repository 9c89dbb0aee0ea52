"""Batch analysis and normalisation of stored post image references."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from .image_paths import ImageKind, classify
from .post_service import ImageReferenceWriteError, select_image_references, update_image_reference

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImageReferenceReport:
    """Classification of one post's stored image reference."""

    post_id: UUID
    title: str
    original: str
    kind: ImageKind
    extracted_path: str | None
    suggested_path: str | None

    @property
    def needs_fix(self) -> bool:
        return self.kind is not ImageKind.CANONICAL_PATH

    def as_dict(self) -> dict[str, Any]:
        return {
            "post_id": self.post_id,
            "title": self.title,
            "original": self.original,
            "kind": self.kind.value,
            "extracted_path": self.extracted_path,
            "suggested_path": self.suggested_path,
            "needs_fix": self.needs_fix,
        }


@dataclass(frozen=True, slots=True)
class FixOutcome:
    post_id: UUID
    path: str
    ok: bool
    error: str | None = None


@dataclass
class FixSummary:
    """Totals reported after a fix-all run."""

    attempted: int = 0
    fixed: int = 0
    skipped: int = 0
    failures: list[FixOutcome] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


def analyze_reference(post_id: UUID, title: str, raw: str) -> ImageReferenceReport:
    reference = classify(raw)
    return ImageReferenceReport(
        post_id=post_id,
        title=title,
        original=raw,
        kind=reference.kind,
        extracted_path=reference.extracted_path,
        suggested_path=reference.canonical_path,
    )


def analyze_image_references(db: Session) -> list[ImageReferenceReport]:
    """Classify the stored image reference of every post that has one."""

    return [analyze_reference(row.id, row.title, row.image_url) for row in select_image_references(db)]


def fix_image_reference(db: Session, post_id: UUID, path: str) -> FixOutcome:
    """Persist ``path`` as the post's image reference, reporting rather than raising on failure."""

    try:
        update_image_reference(db, post_id, path)
    except ImageReferenceWriteError as exc:
        logger.warning("Could not rewrite image reference for post %s to %r: %s", post_id, path, exc)
        return FixOutcome(post_id=post_id, path=path, ok=False, error=str(exc))
    logger.info("Rewrote image reference for post %s to %r", post_id, path)
    return FixOutcome(post_id=post_id, path=path, ok=True)


def fix_all_image_references(
    db: Session,
    reports: Iterable[ImageReferenceReport] | None = None,
) -> FixSummary:
    """Rewrite every flagged reference that has a suggested path.

    Each post is written independently; a failed write is counted and the batch
    carries on. Flagged references without a suggestion are only counted as
    skipped.
    """

    if reports is None:
        reports = analyze_image_references(db)

    summary = FixSummary()
    for report in reports:
        if not report.needs_fix:
            continue
        if not report.suggested_path:
            summary.skipped += 1
            continue
        summary.attempted += 1
        outcome = fix_image_reference(db, report.post_id, report.suggested_path)
        if outcome.ok:
            summary.fixed += 1
        else:
            summary.failures.append(outcome)

    logger.info(
        "Image reference fix-all finished (attempted=%d, fixed=%d, failed=%d, skipped=%d)",
        summary.attempted,
        summary.fixed,
        summary.failed,
        summary.skipped,
    )
    return summary


__all__ = [
    "FixOutcome",
    "FixSummary",
    "ImageReferenceReport",
    "analyze_image_references",
    "analyze_reference",
    "fix_all_image_references",
    "fix_image_reference",
]
