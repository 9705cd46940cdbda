from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    database_url: str
    db_statement_timeout_ms: int
    site_base_url: str
    page_ttl_hours: int
    object_store_backend: str
    object_store_dir: str
    object_store_bucket: Optional[str]
    object_store_endpoint_url: Optional[str]
    object_store_region: Optional[str]
    store_timeout_seconds: float
    store_breaker_max_failures: int
    store_breaker_reset_seconds: float
    static_cache_control: str
    published_cache_control: str
    publish_max_workers: int
    cache_invalidation_url: Optional[str]
    cache_invalidation_token: Optional[str]
    http_timeout: int
    http_user_agent: str
    mutation_api_key: Optional[str]
    mutation_localhost_bypass: bool


def load_config() -> Config:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set")

    return Config(
        database_url=database_url,
        db_statement_timeout_ms=int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "15000")),
        site_base_url=os.getenv("SITE_BASE_URL", "http://localhost:8000").rstrip("/"),
        page_ttl_hours=max(int(os.getenv("PAGE_TTL_HOURS", "168")), 1),
        object_store_backend=os.getenv("OBJECT_STORE_BACKEND", "filesystem").strip().lower(),
        object_store_dir=os.getenv("OBJECT_STORE_DIR", "./published"),
        object_store_bucket=(os.getenv("OBJECT_STORE_BUCKET") or "").strip() or None,
        object_store_endpoint_url=(os.getenv("OBJECT_STORE_ENDPOINT_URL") or "").strip() or None,
        object_store_region=(os.getenv("OBJECT_STORE_REGION") or "").strip() or None,
        store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "10")),
        store_breaker_max_failures=max(int(os.getenv("STORE_BREAKER_MAX_FAILURES", "3")), 1),
        store_breaker_reset_seconds=float(os.getenv("STORE_BREAKER_RESET_SECONDS", "60")),
        static_cache_control=os.getenv(
            "STATIC_CACHE_CONTROL", "public, max-age=86400, s-maxage=31536000"
        ),
        published_cache_control=os.getenv("PUBLISHED_CACHE_CONTROL", "public, max-age=300"),
        publish_max_workers=max(int(os.getenv("PUBLISH_MAX_WORKERS", "6")), 1),
        cache_invalidation_url=(os.getenv("CACHE_INVALIDATION_URL") or "").strip() or None,
        cache_invalidation_token=(os.getenv("CACHE_INVALIDATION_TOKEN") or "").strip() or None,
        http_timeout=int(os.getenv("HTTP_TIMEOUT", "10")),
        http_user_agent=os.getenv("HTTP_USER_AGENT", "page-pipeline/0.1"),
        mutation_api_key=(os.getenv("MUTATION_API_KEY") or "").strip() or None,
        mutation_localhost_bypass=_env_bool("MUTATION_LOCALHOST_BYPASS", "true"),
    )
