"""SQLAlchemy ORM model for reader comments."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from blog_api.database import Base

from .base import TimestampMixin


class Comment(TimestampMixin, Base):
    __tablename__ = "comments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(UUID(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    approved = Column(Boolean, nullable=False, default=False)

    post = relationship("Post", back_populates="comments")


__all__ = ["Comment"]
