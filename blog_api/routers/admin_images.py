"""Admin maintenance endpoints for stored post images."""
from __future__ import annotations

import logging
import uuid
from pathlib import PurePosixPath

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..config import get_settings
from ..constants import DEFAULT_PREFIX
from ..database import get_session
from ..models import Post
from ..schemas import (
    BucketCheckResponse,
    ImageAnalysisResponse,
    ImageFixRequest,
    ImageFixResponse,
    ImageFixSummaryResponse,
    ImageProbeResponse,
    ImageReferenceReportResponse,
    ImageUploadResponse,
)
from ..security import require_admin_token
from ..services import (
    StorageError,
    StorageUploadError,
    analyze_image_references,
    classify,
    fix_all_image_references,
    fix_image_reference,
    get_image_resolver,
    probe_image_url,
)
from ..services.image_repair import analyze_reference
from ..services.image_resolver import ImageResolver
from .images import serialize_resolution

router = APIRouter(
    prefix="/admin/images",
    tags=["admin-images"],
    dependencies=[Depends(require_admin_token)],
)
logger = logging.getLogger(__name__)


def _upload_extension(filename: str, content_type: str) -> str:
    suffix = PurePosixPath(filename).suffix.lstrip(".").lower()
    if suffix:
        return suffix
    subtype = content_type.partition("/")[2].split(";")[0].strip().lower()
    if subtype == "jpeg":
        return "jpg"
    return subtype or "bin"


@router.get("/analysis", response_model=ImageAnalysisResponse)
def analyze_images_endpoint(db: Session = Depends(get_session)) -> ImageAnalysisResponse:
    """Classify every stored post image reference."""

    reports = analyze_image_references(db)
    return ImageAnalysisResponse(
        items=[ImageReferenceReportResponse(**report.as_dict()) for report in reports],
        total=len(reports),
        needs_fix=sum(1 for report in reports if report.needs_fix),
    )


@router.post("/fix", response_model=ImageFixSummaryResponse)
def fix_all_images_endpoint(db: Session = Depends(get_session)) -> ImageFixSummaryResponse:
    summary = fix_all_image_references(db)
    return ImageFixSummaryResponse(
        attempted=summary.attempted,
        fixed=summary.fixed,
        failed=summary.failed,
        skipped=summary.skipped,
        failures=[
            {"post_id": outcome.post_id, "path": outcome.path, "error": outcome.error}
            for outcome in summary.failures
        ],
    )


@router.post("/{post_id}/fix", response_model=ImageFixResponse)
def fix_image_endpoint(
    post_id: uuid.UUID,
    payload: ImageFixRequest | None = Body(default=None),
    db: Session = Depends(get_session),
) -> ImageFixResponse:
    """Rewrite one post's image reference to an explicit or suggested canonical path."""

    post = db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    path = (payload.path or "").strip() if payload is not None else ""
    if not path:
        path = classify(post.image_url).canonical_path or ""
    if not path:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No canonical path could be derived for this post's image",
        )

    outcome = fix_image_reference(db, post_id, path)
    if not outcome.ok:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=outcome.error)

    report = analyze_reference(post.id, post.title, path)
    return ImageFixResponse(
        post_id=post.id,
        path=path,
        report=ImageReferenceReportResponse(**report.as_dict()),
    )


@router.post("/upload", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image_endpoint(
    file: UploadFile = File(...),
    resolver: ImageResolver = Depends(get_image_resolver),
) -> ImageUploadResponse:
    """Store an image under a fresh canonical key and return its first resolution."""

    content_type = (file.content_type or "").strip().lower()
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only image uploads are accepted",
        )

    limit = get_settings().max_upload_bytes
    data = await file.read()
    if len(data) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds the {limit // (1024 * 1024)} MB upload limit",
        )

    path = f"{DEFAULT_PREFIX}{uuid.uuid4()}.{_upload_extension(file.filename or '', content_type)}"
    try:
        await resolver.storage.upload(path, data, content_type=content_type)
    except StorageUploadError as exc:
        logger.warning("Image upload to %s failed: %s", path, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    logger.info("Uploaded image %s (%d bytes)", path, len(data))
    resolution = await resolver.resolve(path)
    return ImageUploadResponse(
        path=path,
        content_type=content_type,
        size=len(data),
        resolution=serialize_resolution(resolution),
    )


@router.get("/probe", response_model=ImageProbeResponse)
async def probe_image_endpoint(url: str = Query(..., min_length=1, max_length=2048)) -> ImageProbeResponse:
    reachable = await run_in_threadpool(probe_image_url, url)
    return ImageProbeResponse(url=url, reachable=reachable)


@router.get("/bucket", response_model=BucketCheckResponse)
async def bucket_check_endpoint(resolver: ImageResolver = Depends(get_image_resolver)) -> BucketCheckResponse:
    """List at most one object under the default prefix to confirm the bucket answers."""

    storage = resolver.storage
    try:
        await storage.list(DEFAULT_PREFIX.rstrip("/"), limit=1)
    except StorageError as exc:
        logger.warning("Bucket %s is not accessible: %s", storage.bucket, exc)
        return BucketCheckResponse(bucket=storage.bucket, accessible=False, error=str(exc))
    return BucketCheckResponse(bucket=storage.bucket, accessible=True)


__all__ = ["router"]
