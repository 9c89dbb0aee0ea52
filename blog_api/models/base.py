"""Timestamp mixins for blog records."""
from __future__ import annotations

from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func


class CreatedAtMixin:
    """Insert time only; used by rows that are never edited in place, such as tags."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @classmethod
    def newest_first(cls):
        return cls.created_at.desc()

    @classmethod
    def oldest_first(cls):
        return cls.created_at.asc()


class TimestampMixin(CreatedAtMixin):
    """Insert and last-edit times for posts and comments."""

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


__all__ = ["CreatedAtMixin", "TimestampMixin"]
