from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from page_pipeline.storage import FilesystemObjectStore, InMemoryObjectStore, S3ObjectStore, StoredObject

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def test_filesystem_store_round_trips_metadata(tmp_path):
    store = FilesystemObjectStore(tmp_path)
    expiry = NOW + timedelta(days=1)

    store.put("us/wa/page/index.html", "<p>hi</p>", "text/html; charset=utf-8", "public, max-age=60", expires_at=expiry)
    stored = store.get("us/wa/page/index.html")

    assert stored.body == "<p>hi</p>"
    assert stored.cache_control == "public, max-age=60"
    assert stored.expires_at == expiry
    assert (tmp_path / "us/wa/page/index.html.meta.json").is_file()


def test_filesystem_store_missing_and_delete(tmp_path):
    store = FilesystemObjectStore(tmp_path)

    assert store.get("nope/index.html") is None
    store.put("a/index.html", "x", "text/html", "no-store")
    store.delete("a/index.html")
    store.delete("a/index.html")
    assert store.get("a/index.html") is None


def test_filesystem_store_rejects_escaping_keys(tmp_path):
    store = FilesystemObjectStore(tmp_path / "root")

    with pytest.raises(ValueError):
        store.put("../outside.html", "x", "text/html", "no-store")


def test_stored_object_expiry():
    stored = StoredObject("k", "b", "text/html", "", expires_at=NOW)

    assert stored.is_expired(NOW)
    assert not stored.is_expired(NOW - timedelta(seconds=1))
    assert not StoredObject("k", "b", "text/html", "").is_expired(NOW)


def test_in_memory_store_normalises_naive_expiry():
    store = InMemoryObjectStore()
    store.put("k", "b", "text/html", "", expires_at=datetime(2026, 10, 19, 15, 0))

    assert store.get("k").expires_at == NOW


def _s3_store():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )
    return S3ObjectStore("pages", client=client), Stubber(client)


def test_s3_store_put_sends_expiry_metadata():
    store, stubber = _s3_store()
    stubber.add_response(
        "put_object",
        {},
        {
            "Bucket": "pages",
            "Key": "a/index.html",
            "Body": b"<p>hi</p>",
            "ContentType": "text/html; charset=utf-8",
            "CacheControl": "no-store",
            "Metadata": {"expires-at": NOW.isoformat()},
        },
    )
    with stubber:
        store.put("a/index.html", "<p>hi</p>", "text/html; charset=utf-8", "no-store", expires_at=NOW)
    stubber.assert_no_pending_responses()


def test_s3_store_get_reads_metadata():
    store, stubber = _s3_store()
    body = b"<p>hi</p>"
    stubber.add_response(
        "get_object",
        {
            "Body": StreamingBody(io.BytesIO(body), len(body)),
            "ContentType": "text/html; charset=utf-8",
            "CacheControl": "public, max-age=60",
            "Metadata": {"expires-at": NOW.isoformat()},
        },
        {"Bucket": "pages", "Key": "a/index.html"},
    )
    with stubber:
        stored = store.get("a/index.html")

    assert stored.body == "<p>hi</p>"
    assert stored.expires_at == NOW


def test_s3_store_missing_key_is_none():
    store, stubber = _s3_store()
    stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
    with stubber:
        assert store.get("a/index.html") is None


def test_s3_store_requires_bucket():
    with pytest.raises(ValueError):
        S3ObjectStore("", client=object())
