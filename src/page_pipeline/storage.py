"""Object store for published HTML documents.

Keys are relative paths such as ``us/wa/seattle/joes-pizza/special-promotion-1a2b3c4d/direct/index.html``.
Each object carries its content type, cache control and, for expiring pages, an expiry timestamp
that readers compare against their own clock.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from .config import Config

logger = logging.getLogger(__name__)

EXPIRES_AT_METADATA_KEY = "expires-at"
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass(frozen=True)
class StoredObject:
    key: str
    body: str
    content_type: str
    cache_control: str
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class ObjectStore(Protocol):
    def put(
        self,
        key: str,
        body: str,
        content_type: str,
        cache_control: str,
        expires_at: Optional[datetime] = None,
    ) -> None:
        ...

    def get(self, key: str) -> Optional[StoredObject]:
        ...

    def delete(self, key: str) -> None:
        ...


def _format_expiry(expires_at: Optional[datetime]) -> Optional[str]:
    if expires_at is None:
        return None
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at.astimezone(timezone.utc).isoformat()


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring malformed object expiry %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FilesystemObjectStore:
    """Objects as files under ``root``, with a ``.meta.json`` sidecar per object."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key.lstrip("/")).resolve()
        if not path.is_relative_to(self.root):
            raise ValueError(f"Object key escapes the store root: {key}")
        return path

    @staticmethod
    def _meta_path(path: Path) -> Path:
        return path.with_name(path.name + ".meta.json")

    def put(self, key, body, content_type, cache_control, expires_at=None) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        meta = {
            "content_type": content_type,
            "cache_control": cache_control,
            "expires_at": _format_expiry(expires_at),
        }
        # Body first so a reader never sees metadata for a missing file.
        path.write_text(body, encoding="utf-8")
        self._meta_path(path).write_text(json.dumps(meta, indent=2), encoding="utf-8")

    def get(self, key) -> Optional[StoredObject]:
        path = self._path(key)
        if not path.is_file():
            return None
        meta_path = self._meta_path(path)
        meta = json.loads(meta_path.read_text(encoding="utf-8")) if meta_path.is_file() else {}
        return StoredObject(
            key=key,
            body=path.read_text(encoding="utf-8"),
            content_type=meta.get("content_type") or "text/html; charset=utf-8",
            cache_control=meta.get("cache_control") or "",
            expires_at=_parse_expiry(meta.get("expires_at")),
        )

    def delete(self, key) -> None:
        path = self._path(key)
        path.unlink(missing_ok=True)
        self._meta_path(path).unlink(missing_ok=True)


class S3ObjectStore:
    """S3 or any S3-compatible endpoint (R2, MinIO)."""

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None,
        timeout_seconds: float = 10.0,
        client=None,
    ):
        if not bucket_name:
            raise ValueError("OBJECT_STORE_BUCKET is required for the s3 object store backend")
        self.bucket_name = bucket_name
        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region_name,
            config=BotoConfig(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 1},
            ),
        )

    def put(self, key, body, content_type, cache_control, expires_at=None) -> None:
        metadata = {}
        expiry = _format_expiry(expires_at)
        if expiry:
            metadata[EXPIRES_AT_METADATA_KEY] = expiry
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType=content_type,
            CacheControl=cache_control,
            Metadata=metadata,
        )

    def get(self, key) -> Optional[StoredObject]:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise
        body = response["Body"].read().decode("utf-8")
        metadata = response.get("Metadata") or {}
        return StoredObject(
            key=key,
            body=body,
            content_type=response.get("ContentType") or "text/html; charset=utf-8",
            cache_control=response.get("CacheControl") or "",
            expires_at=_parse_expiry(metadata.get(EXPIRES_AT_METADATA_KEY)),
        )

    def delete(self, key) -> None:
        self.client.delete_object(Bucket=self.bucket_name, Key=key)


class InMemoryObjectStore:
    """Process-local store for tests and local previews."""

    def __init__(self) -> None:
        self.objects: Dict[str, StoredObject] = {}
        self._lock = threading.Lock()

    def put(self, key, body, content_type, cache_control, expires_at=None) -> None:
        stored = StoredObject(
            key=key,
            body=body,
            content_type=content_type,
            cache_control=cache_control,
            expires_at=_parse_expiry(_format_expiry(expires_at)),
        )
        with self._lock:
            self.objects[key] = stored

    def get(self, key) -> Optional[StoredObject]:
        with self._lock:
            return self.objects.get(key)

    def delete(self, key) -> None:
        with self._lock:
            self.objects.pop(key, None)


def build_object_store(config: Config) -> ObjectStore:
    backend = config.object_store_backend
    if backend == "s3":
        return S3ObjectStore(
            config.object_store_bucket or "",
            endpoint_url=config.object_store_endpoint_url,
            region_name=config.object_store_region,
            timeout_seconds=config.store_timeout_seconds,
        )
    if backend == "memory":
        return InMemoryObjectStore()
    if backend == "filesystem":
        return FilesystemObjectStore(config.object_store_dir)
    raise ValueError(f"Unknown OBJECT_STORE_BACKEND: {backend}")
