from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from page_pipeline.cache import PUBLISHED_PAGES_TAG
from page_pipeline.errors import PartialBatchFailure, ValidationError, raise_for_failures
from page_pipeline.models import GeneratedPage, JobRun, Update
from page_pipeline.paths import storage_key
from page_pipeline.storage import InMemoryObjectStore
from page_pipeline.workers.generate_pages import generate_for_update
from page_pipeline.workers.publish_pages import delete_pages, publish_pages

FIXED_NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


class FailingStore(InMemoryObjectStore):
    """Refuses writes for one intent."""

    def __init__(self, failing_segment: str) -> None:
        super().__init__()
        self.failing_segment = failing_segment

    def put(self, key, body, content_type, cache_control, expires_at=None):
        if f"/{self.failing_segment}/" in key:
            raise OSError("bucket unavailable")
        super().put(key, body, content_type, cache_control, expires_at)


@pytest.fixture
def generated(update) -> dict:
    return generate_for_update(update.id, now=FIXED_NOW)


def test_publish_batch_writes_every_page(db_session: Session, generated, store, invalidator):
    result = publish_pages(batch_id=generated["batchId"], store=store, invalidator=invalidator, now=FIXED_NOW)

    assert result["success"] is True
    assert result["partial"] is False
    assert len(result["publishedPages"]) == 6
    assert invalidator.tags == [PUBLISHED_PAGES_TAG]

    db_session.expire_all()
    pages = db_session.execute(select(GeneratedPage)).scalars().all()
    for page in pages:
        assert page.published is True
        assert page.published_at is not None
        stored = store.get(storage_key(page.file_path))
        assert stored.body.startswith("<!DOCTYPE html>")
        assert stored.content_type == "text/html; charset=utf-8"
        assert stored.expires_at == page.expires_at
    assert db_session.get(Update, pages[0].update_id).status == "published"

    job = db_session.execute(select(JobRun).where(JobRun.job_name == "publish_pages")).scalars().one()
    assert job.status == "success"
    assert job.processed_count == 6


def test_publish_reports_urls_in_request_order(generated, store, invalidator):
    ids = [page["id"] for page in generated["pages"]][:3]

    result = publish_pages(list(reversed(ids)), store=store, invalidator=invalidator, now=FIXED_NOW)

    assert [item["id"] for item in result["publishedPages"]] == list(reversed(ids))
    assert all(item["url"].startswith("https://pages.example.com/us/wa/seattle/joes-pizza/") for item in result["publishedPages"])


def test_publish_is_idempotent(db_session: Session, generated, store, invalidator):
    page_id = generated["pages"][0]["id"]

    first = publish_pages([page_id], store=store, invalidator=invalidator, now=FIXED_NOW)
    second = publish_pages([page_id], store=store, invalidator=invalidator, now=FIXED_NOW)

    assert first["success"] and second["success"]
    assert len(store.objects) == 1
    db_session.expire_all()
    assert db_session.execute(select(GeneratedPage).where(GeneratedPage.published.is_(True))).scalars().all()[0].id == uuid.UUID(page_id)


def test_publish_partial_failure_keeps_other_pages(db_session: Session, generated, invalidator):
    store = FailingStore("competitive")

    result = publish_pages(batch_id=generated["batchId"], store=store, invalidator=invalidator, now=FIXED_NOW)

    assert result["success"] is False
    assert result["partial"] is True
    assert len(result["publishedPages"]) == 5
    assert len(result["errors"]) == 1
    error = result["errors"][0]
    assert error["kind"] == "store"
    assert error["retryable"] is True

    db_session.expire_all()
    failed = db_session.get(GeneratedPage, uuid.UUID(error["id"]))
    assert failed.intent_type == "competitive"
    assert failed.published is False

    with pytest.raises(PartialBatchFailure) as excinfo:
        raise_for_failures(result, "publishedPages", "Publish")
    assert excinfo.value.message == "Publish: 5 succeeded, 1 failed"


def test_publish_missing_page_is_an_item_error(generated, store, invalidator):
    missing = str(uuid.uuid4())

    result = publish_pages([generated["pages"][0]["id"], missing], store=store, invalidator=invalidator, now=FIXED_NOW)

    assert len(result["publishedPages"]) == 1
    assert result["errors"] == [
        {"id": missing, "error": f"Page {missing} not found", "kind": "not_found", "retryable": False}
    ]


def test_publish_refuses_a_second_live_page_at_the_same_path(db_session: Session, generated, store, invalidator):
    page_id = uuid.UUID(generated["pages"][0]["id"])
    publish_pages([page_id], store=store, invalidator=invalidator, now=FIXED_NOW)

    db_session.expire_all()
    original = db_session.get(GeneratedPage, page_id)
    intruder = GeneratedPage(
        business_id=original.business_id,
        update_id=original.update_id,
        file_path=original.file_path,
        title=original.title,
        slug=original.slug + "-copy",
        intent_type="copy",
        page_data=original.page_data,
        generation_batch_id=uuid.uuid4(),
        created_at=FIXED_NOW,
        expires_at=original.expires_at,
    )
    db_session.add(intruder)
    db_session.commit()

    result = publish_pages([intruder.id], store=store, invalidator=invalidator, now=FIXED_NOW)

    assert result["publishedPages"] == []
    assert result["errors"][0]["kind"] == "validation"
    assert "already live" in result["errors"][0]["error"]


def test_publish_without_targets_is_rejected(store, invalidator):
    with pytest.raises(ValidationError):
        publish_pages([], None, store=store, invalidator=invalidator)


def test_publish_with_malformed_id_is_rejected(store, invalidator):
    with pytest.raises(ValidationError):
        publish_pages(["not-a-uuid"], store=store, invalidator=invalidator)


def test_publish_nothing_skips_invalidation(store, invalidator):
    result = publish_pages([str(uuid.uuid4())], store=store, invalidator=invalidator)

    assert result["publishedPages"] == []
    assert result["partial"] is False
    assert invalidator.tags == []


def test_delete_removes_rows_and_objects(db_session: Session, generated, store, invalidator):
    publish_pages(batch_id=generated["batchId"], store=store, invalidator=invalidator, now=FIXED_NOW)
    invalidator.tags.clear()

    result = delete_pages(batch_id=generated["batchId"], store=store, invalidator=invalidator)

    assert result["success"] is True
    assert len(result["deleted"]) == 6
    assert store.objects == {}
    db_session.expire_all()
    assert db_session.execute(select(GeneratedPage)).scalars().all() == []
    assert invalidator.tags == [PUBLISHED_PAGES_TAG]


def test_delete_is_idempotent_for_missing_pages(generated, store, invalidator):
    page_id = generated["pages"][0]["id"]

    delete_pages([page_id], store=store, invalidator=invalidator)
    result = delete_pages([page_id], store=store, invalidator=invalidator)

    assert result["success"] is True
    assert result["deleted"] == [page_id]
    assert invalidator.tags == []
