"""Convenience exports for ORM models."""
from .comment import Comment
from .post import Post, Tag, posts_tags
from .profile import Profile

__all__ = [
    "Comment",
    "Post",
    "Profile",
    "Tag",
    "posts_tags",
]
