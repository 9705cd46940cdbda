from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from page_pipeline.codec import decompress
from page_pipeline.errors import NotFoundError, ValidationError
from page_pipeline.models import GeneratedPage, JobRun, Update
from page_pipeline.workers.generate_pages import generate_for_update
from page_pipeline.workers.publish_pages import publish_pages

FIXED_NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def _pages(db_session: Session, update_id) -> list[GeneratedPage]:
    db_session.expire_all()
    return list(
        db_session.execute(
            select(GeneratedPage).where(GeneratedPage.update_id == update_id).order_by(GeneratedPage.intent_type)
        ).scalars()
    )


def test_generate_creates_six_drafts_and_marks_update_ready(db_session: Session, update):
    result = generate_for_update(str(update.id), now=FIXED_NOW)

    assert result["totalPages"] == 6
    assert result["errors"] == []
    assert {page["intent_type"] for page in result["pages"]} == {
        "direct",
        "local",
        "category",
        "branded-local",
        "service-urgent",
        "competitive",
    }
    pages = _pages(db_session, update.id)
    assert len(pages) == 6
    assert {str(page.generation_batch_id) for page in pages} == {result["batchId"]}
    assert all(not page.published and not page.expired for page in pages)
    assert all(page.expires_at == FIXED_NOW + timedelta(hours=168) for page in pages)

    row = db_session.get(Update, update.id)
    assert row.status == "ready-for-preview"
    assert row.processing_time_ms is not None

    job = db_session.execute(select(JobRun).where(JobRun.job_name == "generate_pages")).scalars().one()
    assert job.status == "success"
    assert job.processed_count == 6


def test_generate_applies_trigger_overrides(db_session: Session, update):
    expiry = FIXED_NOW + timedelta(hours=12)

    generate_for_update(
        update.id,
        content_text="Closed until Dec 26 for renovations.",
        temporal_info={"expiresAt": expiry.isoformat(), "dealTerms": "While supplies last", "updateCategory": "closure"},
        special_hours="Closed all week",
        intents=["direct"],
        now=FIXED_NOW,
    )

    (page,) = _pages(db_session, update.id)
    assert "/closed-until-dec-26-" in page.file_path
    assert page.expires_at == expiry
    assert page.page_variant == "direct-closure"
    data = decompress(page.page_data)
    assert data.update.deal_terms == "While supplies last"
    assert data.update.special_hours_today == {"text": "Closed all week"}

    row = db_session.get(Update, update.id)
    assert row.content_text == "Closed until Dec 26 for renovations."
    assert row.update_category == "closure"


def test_regenerate_replaces_drafts(db_session: Session, update):
    first = generate_for_update(update.id, intents=["direct", "local"], now=FIXED_NOW)
    second = generate_for_update(update.id, intents=["direct"], now=FIXED_NOW)

    pages = _pages(db_session, update.id)
    assert {page.intent_type for page in pages} == {"direct", "local"}
    direct = next(page for page in pages if page.intent_type == "direct")
    assert str(direct.generation_batch_id) == second["batchId"]
    assert second["batchId"] != first["batchId"]


def test_regenerate_leaves_published_intents_alone(db_session: Session, make_business, store, invalidator):
    business = make_business(slug="second-shop")
    update = Update(business_id=business.id, content_text="Weekend special on pies.")
    db_session.add(update)
    db_session.commit()

    first = generate_for_update(update.id, intents=["direct", "local"], now=FIXED_NOW)
    direct_id = next(page["id"] for page in first["pages"] if page["intent_type"] == "direct")
    publish_pages([direct_id], store=store, invalidator=invalidator, now=FIXED_NOW)

    # Publishing moved the update to a terminal status, so reset it to allow another run.
    db_session.expire_all()
    db_session.get(Update, update.id).status = "ready-for-preview"
    db_session.commit()

    result = generate_for_update(update.id, intents=["direct", "local"], now=FIXED_NOW)

    assert [page["intent_type"] for page in result["pages"]] == ["local"]
    assert result["errors"][0]["intent"] == "direct"
    assert str(_pages(db_session, update.id)[0].id) == direct_id


def test_unknown_intents_are_reported(db_session: Session, update):
    result = generate_for_update(update.id, intents=["direct", "voice"], now=FIXED_NOW)

    assert result["totalPages"] == 1
    assert result["errors"] == [{"intent": "voice", "error": "Unknown intent type: voice", "kind": "validation"}]


def test_only_unknown_intents_fail_the_update(db_session: Session, update):
    result = generate_for_update(update.id, intents=["voice"], now=FIXED_NOW)

    assert result["totalPages"] == 0
    db_session.expire_all()
    row = db_session.get(Update, update.id)
    assert row.status == "failed"
    assert row.error_message == "No pages were generated"


def test_validation_happens_before_any_write(db_session: Session, make_business, make_update):
    business = make_business(slug="incomplete", primary_category=None)
    update = make_update(business)

    with pytest.raises(ValidationError, match="primary_category"):
        generate_for_update(update.id, now=FIXED_NOW)

    db_session.expire_all()
    assert db_session.get(Update, update.id).status == "draft"
    assert db_session.execute(select(func.count(GeneratedPage.id))).scalar() == 0
    assert db_session.execute(select(func.count(JobRun.id))).scalar() == 0


def test_blank_content_override_is_rejected(db_session: Session, update):
    with pytest.raises(ValidationError):
        generate_for_update(update.id, content_text="   ", now=FIXED_NOW)


def test_unknown_update_category_is_rejected(update):
    with pytest.raises(ValidationError):
        generate_for_update(update.id, temporal_info={"updateCategory": "party"}, now=FIXED_NOW)


def test_invalid_expiry_is_rejected(update):
    with pytest.raises(ValidationError):
        generate_for_update(update.id, temporal_info={"expiresAt": "next tuesday"}, now=FIXED_NOW)


def test_missing_update_is_not_found():
    with pytest.raises(NotFoundError):
        generate_for_update(uuid.uuid4(), now=FIXED_NOW)


def test_business_mismatch_is_rejected(update):
    with pytest.raises(ValidationError):
        generate_for_update(update.id, business_id=uuid.uuid4(), now=FIXED_NOW)


def test_terminal_updates_cannot_be_regenerated(db_session: Session, make_update, business):
    update = make_update(business, status="published")

    with pytest.raises(ValidationError):
        generate_for_update(update.id, now=FIXED_NOW)
