"""Pydantic schemas for the public post API."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str


class PublicPostResponse(BaseModel):
    """Published post with a directly usable ``image_url`` and flattened tags."""

    id: UUID
    title: str
    slug: str
    content: str
    excerpt: str = ""
    image_url: str | None = None
    created_at: datetime
    updated_at: datetime
    tags: list[TagResponse] = Field(default_factory=list)


class PaginationResponse(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int = Field(serialization_alias="totalPages")


class PublicPostListResponse(BaseModel):
    posts: list[PublicPostResponse]
    pagination: PaginationResponse


class PublicPostDetailResponse(BaseModel):
    post: PublicPostResponse


__all__ = [
    "PaginationResponse",
    "PublicPostDetailResponse",
    "PublicPostListResponse",
    "PublicPostResponse",
    "TagResponse",
]
