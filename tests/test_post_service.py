"""Unit tests for post helpers that need no database."""
from __future__ import annotations

import pytest

from blog_api.models import Comment, Post, Tag
from blog_api.services.post_service import PostPage, build_excerpt


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        (None, ""),
        ("", ""),
        ("Short *and* sweet", "Short and sweet"),
        ("## Title\n\n`code` __under__", "Title code under"),
    ],
)
def test_build_excerpt_strips_markdown(content, expected):
    assert build_excerpt(content) == expected


def test_build_excerpt_truncates_long_content():
    excerpt = build_excerpt("word " * 100)

    assert excerpt.endswith("...")
    assert len(excerpt) == 163


@pytest.mark.parametrize(("total", "limit", "pages"), [(0, 6, 0), (6, 6, 1), (7, 6, 2), (13, 6, 3)])
def test_total_pages(total, limit, pages):
    assert PostPage(posts=[], total=total, page=1, limit=limit).total_pages == pages


def test_tags_only_track_creation_time():
    assert "created_at" in Tag.__table__.c
    assert "updated_at" not in Tag.__table__.c
    assert {"created_at", "updated_at"} <= set(Post.__table__.c.keys())


def test_ordering_helpers_sort_on_creation_time():
    assert str(Post.newest_first()) == "posts.created_at DESC"
    assert str(Comment.oldest_first()) == "comments.created_at ASC"
