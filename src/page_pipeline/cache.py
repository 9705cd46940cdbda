"""Downstream HTTP cache invalidation by tag."""
from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Protocol

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Config

logger = logging.getLogger(__name__)

PUBLISHED_PAGES_TAG = "published-pages"


class CacheInvalidator(Protocol):
    def invalidate_tag(self, tag: str) -> None:
        ...


class NullInvalidator:
    def __init__(self) -> None:
        self.tags: list[str] = []

    def invalidate_tag(self, tag: str) -> None:
        self.tags.append(tag)


class HttpTagInvalidator:
    """POSTs ``{"tags": [...]}`` to a revalidation endpoint on a background thread.

    Failures are logged and never reach the caller.
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: int = 10,
        user_agent: str = "page-pipeline/0.1",
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "User-Agent": user_agent})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(requests.RequestException),
        reraise=True,
    )
    def post_tags(self, tags: Iterable[str]) -> None:
        resp = self.session.post(self.url, json={"tags": list(tags)}, timeout=self.timeout)
        resp.raise_for_status()

    def _invalidate(self, tag: str) -> None:
        try:
            self.post_tags([tag])
        except requests.RequestException as exc:
            logger.warning("Cache invalidation for tag %s failed: %s", tag, exc)
            return
        logger.info("Invalidated cache tag %s", tag)

    def invalidate_tag(self, tag: str) -> threading.Thread:
        worker = threading.Thread(target=self._invalidate, args=(tag,), name="cache-invalidate", daemon=True)
        worker.start()
        return worker


def build_invalidator(config: Config) -> CacheInvalidator:
    if not config.cache_invalidation_url:
        return NullInvalidator()
    return HttpTagInvalidator(
        config.cache_invalidation_url,
        token=config.cache_invalidation_token,
        timeout=config.http_timeout,
        user_agent=config.http_user_agent,
    )
