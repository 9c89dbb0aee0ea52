"""Integration tests for image reference analysis and batch repair."""
from __future__ import annotations

from typing import Iterator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import delete

from blog_api.database import Base, SessionLocal, engine
from blog_api.models import Comment, Post, Tag, posts_tags
from blog_api.services import image_repair
from blog_api.services.image_paths import ImageKind
from blog_api.services.image_repair import (
    analyze_image_references,
    fix_all_image_references,
    fix_image_reference,
)
from blog_api.services.post_service import ImageReferenceWriteError

UUID_NAME = "123e4567-e89b-12d3-a456-426614174000.jpg"


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(posts_tags))
        session.execute(delete(Comment))
        session.execute(delete(Post))
        session.execute(delete(Tag))
        session.commit()
    yield


def _create_post(image_url: str | None, *, title: str | None = None) -> UUID:
    with SessionLocal() as session:
        post = Post(
            title=title or f"Post {uuid4().hex[:6]}",
            slug=f"post-{uuid4().hex[:8]}",
            content="Body",
            image_url=image_url,
            published=True,
        )
        session.add(post)
        session.commit()
        return post.id


def _stored_image(post_id: UUID) -> str | None:
    with SessionLocal() as session:
        return session.get(Post, post_id).image_url


def test_analysis_classifies_every_stored_reference():
    canonical = _create_post("blog/ok.png")
    uuid_post = _create_post(UUID_NAME)
    url_post = _create_post("https://abc.supabase.co/storage/v1/object/public/blog-images/blog/u.png?token=1")
    _create_post(None)
    _create_post("")

    with SessionLocal() as session:
        reports = {report.post_id: report for report in analyze_image_references(session)}

    assert set(reports) == {canonical, uuid_post, url_post}
    assert reports[canonical].kind is ImageKind.CANONICAL_PATH
    assert not reports[canonical].needs_fix
    assert reports[uuid_post].suggested_path == f"blog/{UUID_NAME}"
    assert reports[url_post].suggested_path == "blog/u.png"
    assert reports[url_post].as_dict()["kind"] == "full-object-url"


def test_fix_all_writes_each_flagged_reference():
    canonical = _create_post("blog/ok.png")
    uuid_post = _create_post(UUID_NAME)
    bare_post = _create_post('"cover.webp"')
    unknown_post = _create_post("https://cdn.example.com/pic.png")

    with SessionLocal() as session:
        summary = fix_all_image_references(session)

    assert summary.attempted == 2
    assert summary.fixed == 2
    assert summary.failed == 0
    assert summary.skipped == 1
    assert _stored_image(canonical) == "blog/ok.png"
    assert _stored_image(uuid_post) == f"blog/{UUID_NAME}"
    assert _stored_image(bare_post) == "blog/cover.webp"
    assert _stored_image(unknown_post) == "https://cdn.example.com/pic.png"


def test_fix_all_counts_individual_failures_and_continues(monkeypatch):
    first = _create_post("one.png")
    second = _create_post("two.png")
    real_update = image_repair.update_image_reference

    def flaky_update(db, post_id, new_path):
        if post_id == first:
            raise ImageReferenceWriteError("permission denied")
        return real_update(db, post_id, new_path)

    monkeypatch.setattr(image_repair, "update_image_reference", flaky_update)

    with SessionLocal() as session:
        summary = fix_all_image_references(session)

    assert summary.attempted == 2
    assert summary.fixed == 1
    assert summary.failed == 1
    assert summary.failures[0].post_id == first
    assert summary.failures[0].error == "permission denied"
    assert _stored_image(first) == "one.png"
    assert _stored_image(second) == "blog/two.png"


def test_fix_single_reference_reports_missing_post():
    with SessionLocal() as session:
        outcome = fix_image_reference(session, uuid4(), "blog/x.png")

    assert not outcome.ok
    assert "not found" in outcome.error


def test_fix_single_reference_overwrites_value():
    post_id = _create_post("legacy.png")

    with SessionLocal() as session:
        outcome = fix_image_reference(session, post_id, "post-images/legacy.png")

    assert outcome.ok
    assert _stored_image(post_id) == "post-images/legacy.png"
