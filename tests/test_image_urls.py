"""Tests for candidate URL synthesis and the reachability probe."""
from __future__ import annotations

import asyncio

import pytest
import requests

from blog_api.constants import SIGNED_URL_TTL_SECONDS
from blog_api.services import image_urls
from blog_api.services.image_urls import (
    ImageStrategy,
    base_path,
    direct_download_url,
    probe_image_url,
    s3_style_url,
    synthesize,
    synthesize_local,
)


def test_direct_download_url_adds_marker_and_millisecond_stamp():
    url = direct_download_url("https://storage.test/storage/v1/object/public/blog-images/blog/a.png", now=1.5)

    assert url == "https://storage.test/storage/v1/object/public/blog-images/blog/a.png?download=&_cb=1500"


def test_direct_download_url_replaces_existing_stamp():
    url = direct_download_url("https://storage.test/a.png?_cb=1&w=200", now=2)

    assert url == "https://storage.test/a.png?w=200&download=&_cb=2000"


def test_s3_style_url_skips_public_marker():
    url = s3_style_url("https://storage.test/", "blog-images", "/blog/a b.png")

    assert url == "https://storage.test/storage/v1/object/blog-images/blog/a%20b.png"


def test_base_path_removes_cache_busting_params():
    url = "https://storage.test/a.png?download=&_cb=5&cb=1&_cache=x&width=300"

    assert base_path(url) == "https://storage.test/a.png?width=300"
    assert base_path(direct_download_url("https://storage.test/a.png", now=3)) == "https://storage.test/a.png"


def test_synthesize_local_strategies(fake_storage):
    public = synthesize_local("blog/a.png", ImageStrategy.PUBLIC, fake_storage)
    direct = synthesize_local("blog/a.png", ImageStrategy.DIRECT_DOWNLOAD, fake_storage, now=1)
    s3 = synthesize_local("blog/a.png", ImageStrategy.S3_STYLE, fake_storage)

    assert public == "https://storage.test/storage/v1/object/public/blog-images/blog/a.png"
    assert direct == public + "?download=&_cb=1000"
    assert s3 == "https://storage.test/storage/v1/object/blog-images/blog/a.png"


def test_synthesize_local_refuses_signed(fake_storage):
    with pytest.raises(ValueError):
        synthesize_local("blog/a.png", ImageStrategy.SIGNED, fake_storage)


def test_synthesize_signed_uses_twelve_hour_ttl(fake_storage):
    url = asyncio.run(synthesize("blog/a.png", ImageStrategy.SIGNED, fake_storage))

    assert "token=" in url
    assert fake_storage.sign_calls == [("blog/a.png", SIGNED_URL_TTL_SECONDS)]
    assert SIGNED_URL_TTL_SECONDS == 43200


class _Response:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_probe_accepts_successful_head(monkeypatch):
    seen = {}

    def head(url, **kwargs):
        seen.update(kwargs)
        return _Response(200)

    monkeypatch.setattr(image_urls.requests, "head", head)

    assert probe_image_url("https://storage.test/a.png", clock=lambda: 100.0)
    assert seen["timeout"] == (5.0, 5.0)


def test_probe_falls_back_to_get_when_head_rejected(monkeypatch):
    def head(url, **kwargs):
        return _Response(405)

    def get(url, **kwargs):
        return _Response(200)

    monkeypatch.setattr(image_urls.requests, "head", head)
    monkeypatch.setattr(image_urls.requests, "get", get)

    assert probe_image_url("https://storage.test/a.png")


def test_probe_reports_timeout_as_unreachable(monkeypatch):
    def head(url, **kwargs):
        raise requests.Timeout("timed out")

    monkeypatch.setattr(image_urls.requests, "head", head)

    assert not probe_image_url("https://storage.test/a.png", timeout=0.01)


@pytest.mark.parametrize("url", [None, "", "   "])
def test_probe_rejects_blank_urls(url):
    assert not probe_image_url(url)


class _SlowServer:
    """Fake HEAD/GET pair that spends virtual time, bounded by the timeout it is handed."""

    def __init__(self, *, head_delay: float, get_delay: float, head_status: int = 405) -> None:
        self.now = 0.0
        self.head_delay = head_delay
        self.get_delay = get_delay
        self.head_status = head_status
        self.get_timeouts: list[tuple[float, float]] = []

    def clock(self) -> float:
        return self.now

    def _spend(self, delay: float, timeout: tuple[float, float]) -> None:
        if delay > timeout[1]:
            self.now += timeout[1]
            raise requests.Timeout("read timed out")
        self.now += delay

    def head(self, url, **kwargs):
        self._spend(self.head_delay, kwargs["timeout"])
        return _Response(self.head_status)

    def get(self, url, **kwargs):
        self.get_timeouts.append(kwargs["timeout"])
        self._spend(self.get_delay, kwargs["timeout"])
        return _Response(200)


def _install(monkeypatch, server: _SlowServer) -> None:
    monkeypatch.setattr(image_urls.requests, "head", server.head)
    monkeypatch.setattr(image_urls.requests, "get", server.get)


def test_slow_head_leaves_get_only_the_remaining_time(monkeypatch):
    server = _SlowServer(head_delay=4.0, get_delay=4.0)
    _install(monkeypatch, server)

    reachable = probe_image_url("https://storage.test/a.png", clock=server.clock)

    assert not reachable
    assert server.get_timeouts == [(1.0, 1.0)]
    assert server.now <= 5.0


def test_head_then_get_within_five_seconds_is_reachable(monkeypatch):
    server = _SlowServer(head_delay=1.0, get_delay=2.0)
    _install(monkeypatch, server)

    assert probe_image_url("https://storage.test/a.png", clock=server.clock)
    assert server.now == 3.0


def test_get_is_skipped_once_the_time_is_spent(monkeypatch):
    server = _SlowServer(head_delay=5.0, get_delay=0.1)
    _install(monkeypatch, server)

    assert not probe_image_url("https://storage.test/a.png", clock=server.clock)
    assert server.get_timeouts == []
