"""Queries over published posts, their comments and stored image references."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..models import Comment, Post

EXCERPT_LENGTH = 160
MAX_PAGE_SIZE = 50

_MARKDOWN_MARKERS = re.compile(r"#|==|\*\*|__|\*|_|`|>")
_WHITESPACE = re.compile(r"\s+")


class ImageReferenceWriteError(RuntimeError):
    """Raised when a post's image reference could not be persisted."""


@dataclass(frozen=True, slots=True)
class ImageReferenceRow:
    id: UUID
    title: str
    image_url: str


@dataclass(frozen=True, slots=True)
class PostPage:
    posts: list[Post]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def build_excerpt(content: str | None, *, length: int = EXCERPT_LENGTH) -> str:
    """Plain-text preview of markdown ``content``."""

    if not content:
        return ""
    text = _WHITESPACE.sub(" ", content)
    text = _MARKDOWN_MARKERS.sub("", text).strip()
    if len(content) > length:
        return text[:length] + "..."
    return text[:length]


def flatten_tags(post: Post) -> list[dict[str, Any]]:
    return [{"id": tag.id, "name": tag.name, "slug": tag.slug} for tag in post.tags or []]


def _published_filter(search: str | None):
    conditions = [Post.published.is_(True)]
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        conditions.append(or_(Post.title.ilike(pattern), Post.content.ilike(pattern)))
    return conditions


def list_published_posts(
    db: Session,
    *,
    limit: int = 6,
    page: int = 1,
    search: str | None = None,
) -> PostPage:
    """Return one page of published posts, newest first."""

    limit = max(1, min(limit, MAX_PAGE_SIZE))
    page = max(1, page)
    conditions = _published_filter(search)

    total = db.scalar(select(func.count(Post.id)).where(*conditions)) or 0
    statement = (
        select(Post)
        .where(*conditions)
        .options(selectinload(Post.tags))
        .order_by(Post.newest_first())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    posts = list(db.scalars(statement).all())
    return PostPage(posts=posts, total=int(total), page=page, limit=limit)


def get_published_post(db: Session, slug: str) -> Post | None:
    statement = (
        select(Post)
        .where(Post.slug == slug, Post.published.is_(True))
        .options(selectinload(Post.tags))
    )
    return db.scalars(statement).first()


def list_approved_comments(db: Session, *, post_id: UUID) -> list[Comment]:
    statement = (
        select(Comment)
        .where(Comment.post_id == post_id, Comment.approved.is_(True))
        .order_by(Comment.oldest_first())
    )
    return list(db.scalars(statement).all())


def create_comment(db: Session, *, post: Post, name: str, email: str, content: str) -> Comment:
    """Store a reader comment; it stays hidden until approved."""

    comment = Comment(post_id=post.id, name=name.strip(), email=email.strip(), content=content.strip(), approved=False)
    db.add(comment)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(comment)
    return comment


def select_image_references(db: Session) -> list[ImageReferenceRow]:
    """Every post that stores an image reference, newest first."""

    statement = (
        select(Post.id, Post.title, Post.image_url)
        .where(Post.image_url.is_not(None), Post.image_url != "")
        .order_by(Post.newest_first())
    )
    return [ImageReferenceRow(id=row.id, title=row.title, image_url=row.image_url) for row in db.execute(statement)]


def update_image_reference(db: Session, post_id: UUID, new_path: str) -> Post:
    """Overwrite a post's stored image reference with ``new_path``."""

    post = db.get(Post, post_id)
    if post is None:
        raise ImageReferenceWriteError(f"Post {post_id} not found")
    post.image_url = new_path
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise ImageReferenceWriteError(f"Failed to update image for post {post_id}") from exc
    return post


__all__ = [
    "EXCERPT_LENGTH",
    "ImageReferenceRow",
    "ImageReferenceWriteError",
    "PostPage",
    "build_excerpt",
    "create_comment",
    "flatten_tags",
    "get_published_post",
    "list_approved_comments",
    "list_published_posts",
    "select_image_references",
    "update_image_reference",
]
