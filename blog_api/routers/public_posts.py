"""Read-only post API for external sites embedding blog content."""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_session
from ..models import Post
from ..schemas import (
    CommentCreate,
    CommentListResponse,
    CommentResponse,
    PaginationResponse,
    PublicPostDetailResponse,
    PublicPostListResponse,
    PublicPostResponse,
    TagResponse,
)
from ..services import (
    build_excerpt,
    create_comment,
    flatten_tags,
    get_image_resolver,
    get_published_post,
    list_approved_comments,
    list_published_posts,
)
from ..services.image_resolver import ImageResolver

router = APIRouter(prefix="/api/public-posts", tags=["public-posts"])
logger = logging.getLogger(__name__)

_PUBLIC_CACHE = {"Cache-Control": "public, max-age=60"}


async def _serialize_post(post: Post, resolver: ImageResolver) -> PublicPostResponse:
    image_url = await resolver.resolve_for_delivery(post.image_url) if post.image_url else None
    return PublicPostResponse(
        id=post.id,
        title=post.title,
        slug=post.slug,
        content=post.content or "",
        excerpt=post.excerpt or build_excerpt(post.content),
        image_url=image_url,
        created_at=post.created_at,
        updated_at=post.updated_at,
        tags=[TagResponse(**tag) for tag in flatten_tags(post)],
    )


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.get("", response_model=PublicPostListResponse)
async def list_public_posts_endpoint(
    limit: int | None = Query(default=None, ge=1),
    page: int = Query(default=1),
    search: str | None = Query(default=None, max_length=200),
    db: Session = Depends(get_session),
    resolver: ImageResolver = Depends(get_image_resolver),
):
    try:
        result = list_published_posts(
            db,
            limit=limit or get_settings().default_page_size,
            page=page,
            search=search,
        )
    except SQLAlchemyError:
        logger.exception("Error fetching public posts")
        return _error("Failed to fetch posts", status.HTTP_500_INTERNAL_SERVER_ERROR)

    posts = await asyncio.gather(*(_serialize_post(post, resolver) for post in result.posts))
    body = PublicPostListResponse(
        posts=list(posts),
        pagination=PaginationResponse(
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        ),
    )
    return JSONResponse(body.model_dump(mode="json", by_alias=True), headers=_PUBLIC_CACHE)


@router.get("/{slug}", response_model=PublicPostDetailResponse)
async def get_public_post_endpoint(
    slug: str,
    db: Session = Depends(get_session),
    resolver: ImageResolver = Depends(get_image_resolver),
):
    try:
        post = get_published_post(db, slug)
    except SQLAlchemyError:
        logger.exception("Error fetching post with slug %s", slug)
        return _error("Failed to fetch post", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if post is None:
        return _error("Post not found", status.HTTP_404_NOT_FOUND)

    body = PublicPostDetailResponse(post=await _serialize_post(post, resolver))
    return JSONResponse(body.model_dump(mode="json", by_alias=True), headers=_PUBLIC_CACHE)


@router.get("/{slug}/comments", response_model=CommentListResponse)
async def list_comments_endpoint(slug: str, db: Session = Depends(get_session)):
    post = get_published_post(db, slug)
    if post is None:
        return _error("Post not found", status.HTTP_404_NOT_FOUND)
    comments = list_approved_comments(db, post_id=post.id)
    return CommentListResponse(items=[CommentResponse.model_validate(comment) for comment in comments])


@router.post("/{slug}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment_endpoint(slug: str, payload: CommentCreate, db: Session = Depends(get_session)):
    post = get_published_post(db, slug)
    if post is None:
        return _error("Post not found", status.HTTP_404_NOT_FOUND)
    try:
        comment = create_comment(db, post=post, name=payload.name, email=payload.email, content=payload.content)
    except SQLAlchemyError:
        logger.exception("Failed to store comment on %s", slug)
        return _error("Failed to submit comment", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return CommentResponse.model_validate(comment)


__all__ = ["router"]
