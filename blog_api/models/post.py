"""SQLAlchemy ORM models for blog posts and their tags."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String, Table, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from blog_api.database import Base

from .base import CreatedAtMixin, TimestampMixin

posts_tags = Table(
    "posts_tags",
    Base.metadata,
    Column("post_id", UUID(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", UUID(as_uuid=True), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Post(TimestampMixin, Base):
    __tablename__ = "posts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    content = Column(Text, nullable=False, default="")
    excerpt = Column(Text, nullable=True)
    # Stored image reference; any of the shapes understood by services.image_paths.
    image_url = Column(String(1024), nullable=True)
    published = Column(Boolean, nullable=False, default=False, index=True)
    author_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    author = relationship("Profile", back_populates="posts")
    tags = relationship("Tag", secondary=posts_tags, back_populates="posts", order_by="Tag.name")
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")


class Tag(CreatedAtMixin, Base):
    __tablename__ = "tags"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(64), nullable=False)
    slug = Column(String(64), nullable=False, unique=True)

    posts = relationship("Post", secondary=posts_tags, back_populates="tags")


__all__ = ["Post", "Tag", "posts_tags"]
