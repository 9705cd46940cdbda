from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select

from .. import db
from ..config import load_config
from ..errors import NotFoundError, ValidationError, translate_error
from ..generator import generate, validate_inputs
from ..jobs import track_job
from ..models import TERMINAL_UPDATE_STATUSES, UPDATE_CATEGORIES, Business, GeneratedPage, Update
from ..page_data import BusinessData, UpdateData
from ..pages import parse_uuid, serialize_page

logger = logging.getLogger(__name__)

JOB_NAME = "generate_pages"


def _parse_expiry(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"Invalid temporalInfo.expiresAt: {value!r}") from exc


def _overrides(
    content_text: Optional[str],
    temporal_info: Optional[dict],
    special_hours: Any,
) -> dict:
    """Column values the trigger asks to change on the update before generating."""
    values: dict[str, Any] = {}
    if content_text is not None:
        values["content_text"] = content_text
    info = temporal_info or {}
    if "dealTerms" in info:
        values["deal_terms"] = info["dealTerms"] or None
    if info.get("expiresAt"):
        values["expires_at"] = _parse_expiry(info["expiresAt"])
    if info.get("updateCategory"):
        category = info["updateCategory"]
        if category not in UPDATE_CATEGORIES:
            raise ValidationError(f"Unknown update category: {category}")
        values["update_category"] = category
    if special_hours:
        values["special_hours_today"] = special_hours if isinstance(special_hours, dict) else {"text": str(special_hours)}
    return values


def _load(session, update_id, business_id) -> tuple[Update, Business]:
    update = session.get(Update, update_id)
    if update is None:
        raise NotFoundError(f"Update {update_id} not found")
    if business_id is not None and update.business_id != business_id:
        raise ValidationError(f"Update {update_id} does not belong to business {business_id}")
    business = session.get(Business, update.business_id)
    if business is None:
        raise NotFoundError(f"Business {update.business_id} not found")
    return update, business


def _mark_failed(update_id, message: str, processing_time_ms: int) -> None:
    with db.session_scope() as session:
        update = session.get(Update, update_id)
        if update is None or update.status in TERMINAL_UPDATE_STATUSES:
            return
        update.status = "failed"
        update.error_message = message[:2000]
        update.processing_time_ms = processing_time_ms


def generate_for_update(
    update_id: Any,
    business_id: Any = None,
    content_text: Optional[str] = None,
    temporal_info: Optional[dict] = None,
    special_hours: Any = None,
    intents: Optional[Iterable[str]] = None,
    *,
    now: Optional[datetime] = None,
) -> dict:
    """Generate draft pages for one update and store them for preview.

    Draft rows from an earlier run for the same intents are replaced. An intent that already has a
    published page is left alone and reported in ``errors``.
    """
    config = load_config()
    started = time.monotonic()
    update_uuid = parse_uuid(update_id, "updateId")
    business_uuid = parse_uuid(business_id, "businessId") if business_id else None
    overrides = _overrides(content_text, temporal_info, special_hours)

    with db.session_scope() as session:
        update, business = _load(session, update_uuid, business_uuid)
        if update.status in TERMINAL_UPDATE_STATUSES:
            raise ValidationError(f"Update {update_uuid} is {update.status} and cannot be regenerated")
        candidate = UpdateData.from_record(update)
        if "content_text" in overrides:
            candidate.content_text = overrides["content_text"]
        validate_inputs(candidate, BusinessData.from_record(business))
        update.status = "processing"
        update.error_message = None

    with track_job(JOB_NAME, scope=str(update_uuid)) as tracker:
        try:
            with db.session_scope() as session:
                update, business = _load(session, update_uuid, business_uuid)
                for column, value in overrides.items():
                    setattr(update, column, value)

                result = generate(update, business, intents, now=now, ttl_hours=config.page_ttl_hours)
                errors = list(result.errors)

                existing = session.execute(
                    select(GeneratedPage).where(GeneratedPage.update_id == update.id)
                ).scalars().all()
                by_intent = {page.intent_type: page for page in existing}

                drafts = []
                for draft in result.pages:
                    previous = by_intent.get(draft.intent_type)
                    if previous is not None and previous.published:
                        errors.append(
                            {
                                "intent": draft.intent_type,
                                "error": f"A published page already exists for intent {draft.intent_type}",
                                "kind": "validation",
                            }
                        )
                        continue
                    if previous is not None:
                        session.delete(previous)
                    drafts.append(draft)
                session.flush()

                rows = []
                for draft in drafts:
                    row = GeneratedPage(business_id=business.id, update_id=update.id, **draft.row_values())
                    session.add(row)
                    rows.append(row)
                session.flush()

                processing_time_ms = int((time.monotonic() - started) * 1000)
                update.processing_time_ms = processing_time_ms
                if rows:
                    update.status = "ready-for-preview"
                else:
                    update.status = "failed"
                    update.error_message = "No pages were generated"
                pages = [serialize_page(row) for row in rows]
        except Exception as exc:
            error = translate_error(exc)
            logger.warning("Page generation for update %s failed: %s", update_uuid, error.message)
            _mark_failed(update_uuid, error.message, int((time.monotonic() - started) * 1000))
            if error is exc:
                raise
            raise error from exc

        tracker.processed_count = len(pages)
        tracker.details = {"batch_id": str(result.batch_id), "errors": len(errors)}

    logger.info("Generated %s page(s) for update %s in batch %s", len(pages), update_uuid, result.batch_id)
    return {
        "pages": pages,
        "batchId": str(result.batch_id),
        "totalPages": len(pages),
        "processingTimeMs": processing_time_ms,
        "errors": errors,
    }
