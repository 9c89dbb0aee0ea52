"""Convenience exports for schema layer."""
from .comments import CommentCreate, CommentListResponse, CommentResponse
from .images import (
    BucketCheckResponse,
    ImageAnalysisResponse,
    ImageFixRequest,
    ImageFixResponse,
    ImageFixSummaryResponse,
    ImageProbeResponse,
    ImageReferenceReportResponse,
    ImageUploadResponse,
    RefreshImageResponse,
    ResolveImageRequest,
    ResolvedImageResponse,
)
from .posts import (
    PaginationResponse,
    PublicPostDetailResponse,
    PublicPostListResponse,
    PublicPostResponse,
    TagResponse,
)

__all__ = [
    "BucketCheckResponse",
    "CommentCreate",
    "CommentListResponse",
    "CommentResponse",
    "ImageAnalysisResponse",
    "ImageFixRequest",
    "ImageFixResponse",
    "ImageFixSummaryResponse",
    "ImageProbeResponse",
    "ImageReferenceReportResponse",
    "ImageUploadResponse",
    "PaginationResponse",
    "PublicPostDetailResponse",
    "PublicPostListResponse",
    "PublicPostResponse",
    "RefreshImageResponse",
    "ResolveImageRequest",
    "ResolvedImageResponse",
    "TagResponse",
]
