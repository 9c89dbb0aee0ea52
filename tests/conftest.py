"""Shared fixtures: test configuration and an in-memory storage collaborator."""
from __future__ import annotations

import os
from typing import Callable

import pytest

# Application settings are cached on first import, so configure them before any test module loads blog_api.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_blog_api.db")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ.setdefault("SITE_URL", "https://joeatteen.com")
os.environ.setdefault("CORS_ALLOWED_ORIGINS", "http://localhost:3000")

from blog_api.services.storage_service import (  # noqa: E402
    SigningFailed,
    StorageError,
    StorageObject,
    StorageUploadError,
)

STORAGE_BASE = "https://storage.test"


class FakeStorage:
    """Records calls and answers like the hosted storage service."""

    bucket = "blog-images"
    base_url = STORAGE_BASE

    def __init__(self, *, fail_signing: bool = False, fail_listing: bool = False, fail_upload: bool = False) -> None:
        self.fail_signing = fail_signing
        self.fail_listing = fail_listing
        self.fail_upload = fail_upload
        self.sign_calls: list[tuple[str, int]] = []
        self.list_calls: list[tuple[str, int | None]] = []
        self.uploads: dict[str, tuple[bytes, str]] = {}

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        self.sign_calls.append((path, ttl_seconds))
        if self.fail_signing:
            raise SigningFailed(path, "object not found")
        return f"{self.base_url}/storage/v1/object/sign/{self.bucket}/{path}?token=tok-{len(self.sign_calls)}"

    async def list(self, prefix: str = "", limit: int | None = None) -> list[StorageObject]:
        self.list_calls.append((prefix, limit))
        if self.fail_listing:
            raise StorageError(f"Unable to list bucket {self.bucket}")
        return [StorageObject(name=name, id=None) for name in list(self.uploads)[:limit]]

    async def upload(self, path: str, data: bytes, *, content_type: str) -> None:
        if self.fail_upload:
            raise StorageUploadError("Upload to object storage failed")
        self.uploads[path] = (data, content_type)


@pytest.fixture
def make_storage() -> Callable[..., FakeStorage]:
    return FakeStorage


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()
