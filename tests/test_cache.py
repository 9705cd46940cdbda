from __future__ import annotations

import requests

from page_pipeline.cache import HttpTagInvalidator, NullInvalidator, PUBLISHED_PAGES_TAG, build_invalidator
from page_pipeline.config import load_config


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_build_invalidator_without_url_is_null(monkeypatch):
    monkeypatch.delenv("CACHE_INVALIDATION_URL", raising=False)

    assert isinstance(build_invalidator(load_config()), NullInvalidator)


def test_build_invalidator_with_url(monkeypatch):
    monkeypatch.setenv("CACHE_INVALIDATION_URL", "https://site.example.com/api/revalidate")
    monkeypatch.setenv("CACHE_INVALIDATION_TOKEN", "secret")

    invalidator = build_invalidator(load_config())

    assert isinstance(invalidator, HttpTagInvalidator)
    assert invalidator.session.headers["Authorization"] == "Bearer secret"


def test_http_invalidator_posts_tag_in_background(monkeypatch):
    invalidator = HttpTagInvalidator("https://site.example.com/api/revalidate")
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return FakeResponse(200)

    monkeypatch.setattr(invalidator.session, "post", fake_post)

    invalidator.invalidate_tag(PUBLISHED_PAGES_TAG).join(timeout=5)

    assert calls == [("https://site.example.com/api/revalidate", {"tags": ["published-pages"]})]


def test_http_invalidator_failures_stay_in_background(monkeypatch):
    invalidator = HttpTagInvalidator("https://site.example.com/api/revalidate")
    monkeypatch.setattr(invalidator.session, "post", lambda url, json=None, timeout=None: FakeResponse(500))
    monkeypatch.setattr(HttpTagInvalidator.post_tags.retry, "sleep", lambda seconds: None)

    worker = invalidator.invalidate_tag(PUBLISHED_PAGES_TAG)
    worker.join(timeout=5)

    assert not worker.is_alive()
