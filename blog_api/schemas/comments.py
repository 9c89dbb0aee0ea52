"""Pydantic schemas for reader comments."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CommentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    # email is never echoed back to readers
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    name: str
    content: str
    approved: bool
    created_at: datetime


class CommentListResponse(BaseModel):
    items: list[CommentResponse]


__all__ = ["CommentCreate", "CommentListResponse", "CommentResponse"]
