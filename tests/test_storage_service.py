"""Tests for the storage collaborator's REST calls and configuration loading."""
from __future__ import annotations

import asyncio
import json
from typing import Iterator

import httpx
import pytest

from blog_api.config import get_settings
from blog_api.services import storage_service
from blog_api.services.storage_service import (
    SigningFailed,
    StorageConfig,
    StorageConfigurationError,
    StorageError,
    SupabaseStorage,
    load_storage_config,
)

CONFIG = StorageConfig(base_url="https://abc.supabase.co", service_key="service-key", bucket="blog-images")


def _storage(handler) -> SupabaseStorage:
    client = httpx.AsyncClient(base_url=CONFIG.base_url, transport=httpx.MockTransport(handler))
    return SupabaseStorage(CONFIG, http_client=client)


@pytest.fixture(autouse=True)
def _reset_storage_cache() -> Iterator[None]:
    load_storage_config.cache_clear()
    storage_service.get_storage.cache_clear()
    yield
    load_storage_config.cache_clear()
    storage_service.get_storage.cache_clear()


def test_public_url_is_built_locally():
    storage = SupabaseStorage(CONFIG)

    assert storage.get_public_url("blog/a b.png") == (
        "https://abc.supabase.co/storage/v1/object/public/blog-images/blog/a%20b.png"
    )
    assert CONFIG.s3_endpoint == "https://abc.supabase.co/storage/v1/s3"


def test_create_signed_url_posts_ttl_and_expands_relative_url():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"signedURL": "/object/sign/blog-images/blog/a.png?token=abc"})

    url = asyncio.run(_storage(handler).create_signed_url("blog/a.png", 43200))

    assert url == "https://abc.supabase.co/storage/v1/object/sign/blog-images/blog/a.png?token=abc"
    assert seen["path"] == "/storage/v1/object/sign/blog-images/blog/a.png"
    assert seen["body"] == {"expiresIn": 43200}
    assert seen["auth"] == "Bearer service-key"


def test_create_signed_url_raises_signing_failed_on_error_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "Object not found"})

    with pytest.raises(SigningFailed) as excinfo:
        asyncio.run(_storage(handler).create_signed_url("blog/missing.png", 43200))

    assert excinfo.value.path == "blog/missing.png"
    assert "400" in str(excinfo.value)


def test_create_signed_url_requires_url_in_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    with pytest.raises(SigningFailed):
        asyncio.run(_storage(handler).create_signed_url("blog/a.png", 60))


def test_create_signed_url_wraps_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(SigningFailed):
        asyncio.run(_storage(handler).create_signed_url("blog/a.png", 60))


def test_list_sends_prefix_and_limit():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"name": "a.png", "id": "1"}])

    objects = asyncio.run(_storage(handler).list("blog", limit=1))

    assert [item.name for item in objects] == ["a.png"]
    assert seen["path"] == "/storage/v1/object/list/blog-images"
    assert seen["body"] == {"prefix": "blog", "offset": 0, "limit": 1}


def test_list_failure_raises_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": "forbidden"})

    with pytest.raises(StorageError):
        asyncio.run(_storage(handler).list("blog"))


def test_config_requires_url_and_service_key(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "supabase_url", None)
    monkeypatch.setattr(settings, "supabase_service_key", None)

    with pytest.raises(StorageConfigurationError) as excinfo:
        load_storage_config()

    assert "SUPABASE_SERVICE_KEY" in str(excinfo.value)
    assert "SUPABASE_URL" in str(excinfo.value)


def test_config_rejects_placeholder_values(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "supabase_url", "https://your-project.supabase.co")
    monkeypatch.setattr(settings, "supabase_service_key", "real-key")

    with pytest.raises(StorageConfigurationError):
        load_storage_config()


def test_config_normalises_base_url(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "supabase_url", "https://abc.supabase.co/")
    monkeypatch.setattr(settings, "supabase_service_key", "real-key")
    monkeypatch.setattr(settings, "storage_bucket", "blog-images")

    config = load_storage_config()

    assert config.base_url == "https://abc.supabase.co"
    assert config.bucket == "blog-images"


def test_upload_without_s3_credentials_is_a_configuration_error():
    storage = SupabaseStorage(CONFIG)

    with pytest.raises(StorageConfigurationError):
        asyncio.run(storage.upload("blog/a.png", b"data", content_type="image/png"))
