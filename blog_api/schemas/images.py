"""Pydantic schemas for image resolution, upload and repair endpoints."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from ..services.image_urls import ImageStrategy


class RefreshImageResponse(BaseModel):
    url: str


class ResolveImageRequest(BaseModel):
    """A remote consumer's cascade position.

    ``failed_strategy`` is the strategy whose URL just failed to render (omit on
    first load); ``failures`` counts render failures reported before this one.
    """

    path: str = Field(..., min_length=1, max_length=2048)
    failed_strategy: ImageStrategy | None = None
    failures: int = Field(default=0, ge=0)


class ResolvedImageResponse(BaseModel):
    unresolved: bool = False
    url: str | None = None
    strategy: ImageStrategy | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None
    unoptimized: bool = False
    title: str | None = None
    detail: str | None = None


class ImageReferenceReportResponse(BaseModel):
    post_id: UUID
    title: str
    original: str
    kind: str
    extracted_path: str | None = None
    suggested_path: str | None = None
    needs_fix: bool


class ImageAnalysisResponse(BaseModel):
    items: list[ImageReferenceReportResponse]
    total: int
    needs_fix: int


class ImageFixRequest(BaseModel):
    path: str | None = Field(default=None, max_length=1024)


class ImageFixFailure(BaseModel):
    post_id: UUID
    path: str
    error: str | None = None


class ImageFixSummaryResponse(BaseModel):
    attempted: int
    fixed: int
    failed: int
    skipped: int
    failures: list[ImageFixFailure] = Field(default_factory=list)


class ImageFixResponse(BaseModel):
    post_id: UUID
    path: str
    report: ImageReferenceReportResponse


class ImageUploadResponse(BaseModel):
    path: str
    content_type: str
    size: int
    resolution: ResolvedImageResponse


class ImageProbeResponse(BaseModel):
    url: str
    reachable: bool


class BucketCheckResponse(BaseModel):
    bucket: str
    accessible: bool
    error: str | None = None


__all__ = [
    "BucketCheckResponse",
    "ImageAnalysisResponse",
    "ImageFixFailure",
    "ImageFixRequest",
    "ImageFixResponse",
    "ImageFixSummaryResponse",
    "ImageProbeResponse",
    "ImageReferenceReportResponse",
    "ImageUploadResponse",
    "RefreshImageResponse",
    "ResolveImageRequest",
    "ResolvedImageResponse",
]
