"""Retires generated pages once their expiry passes.

Expiration flips flags and rewrites expiry metadata. It never deletes rows or stored objects.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..config import load_config
from ..errors import NotFoundError, PipelineError, ValidationError, translate_error
from ..jobs import track_job
from ..models import GeneratedPage
from ..pages import parse_uuid, serialize_page
from ..paths import storage_key
from ..resilience import store_scope
from ..storage import ObjectStore

logger = logging.getLogger(__name__)

JOB_NAME = "expire_pages"
UPCOMING_WINDOW = timedelta(hours=1)
MAX_EXTEND_HOURS = 24 * 365 * 10
ACTIONS = ("expire-all", "expire-single", "extend", "check-upcoming")


def normalize_action(action: Any) -> str:
    """Canonical hyphenated action name; underscores are accepted as aliases."""
    if not isinstance(action, str):
        raise ValidationError(f"Unknown expiration action: {action!r}. Expected one of {', '.join(ACTIONS)}")
    normalized = action.strip().lower().replace("_", "-")
    if normalized not in ACTIONS:
        raise ValidationError(f"Unknown expiration action: {action}. Expected one of {', '.join(ACTIONS)}")
    return normalized


def _expired_item(page_id: Any, file_path: str, title: str, expires_at: Optional[datetime]) -> dict:
    return {
        "id": str(page_id),
        "filePath": file_path,
        "title": title,
        "expiresAt": expires_at.isoformat() if expires_at else None,
    }


def expire_all(now: Optional[datetime] = None) -> dict:
    """Mark every page whose expiry has passed as expired, in one conditional UPDATE.

    Concurrent sweeps are safe: a row already flipped by another sweep no longer matches
    ``expired = false`` and is not reported twice.
    """
    moment = now or db.utc_now()
    try:
        with track_job(JOB_NAME) as tracker:
            with db.session_scope() as session:
                rows = session.execute(
                    update(GeneratedPage)
                    .where(GeneratedPage.expires_at <= moment)
                    .where(GeneratedPage.expired.is_(False))
                    .values(expired=True, updated_at=moment)
                    .returning(
                        GeneratedPage.id,
                        GeneratedPage.file_path,
                        GeneratedPage.title,
                        GeneratedPage.expires_at,
                    )
                    .execution_options(synchronize_session=False)
                ).all()
            tracker.processed_count = len(rows)
    except SQLAlchemyError as exc:
        logger.exception("Expiration sweep failed")
        raise translate_error(exc) from exc

    expired_pages = [_expired_item(row.id, row.file_path, row.title, row.expires_at) for row in rows]
    logger.info("Expired %s page(s)", len(expired_pages))
    return {
        "success": True,
        "message": f"Expired {len(expired_pages)} page(s)",
        "expiredCount": len(expired_pages),
        "expiredPages": expired_pages,
    }


def _restamp_object(store: Optional[ObjectStore], file_path: str, expires_at: Optional[datetime]) -> bool:
    """Rewrite a published page's stored object with a new expiry.

    Returns False when the store could not be updated; the row change stands either way.
    """
    key = storage_key(file_path)
    try:
        with store_scope(store, load_config()) as target:
            stored = target.get(key)
            if stored is None:
                return True
            target.put(key, stored.body, stored.content_type, stored.cache_control, expires_at=expires_at)
    except PipelineError as exc:
        logger.warning("Could not restamp stored object %s: %s", key, exc.message)
        return False
    return True


def expire_single(page_id: Any, *, store: Optional[ObjectStore] = None, now: Optional[datetime] = None) -> dict:
    """Expire one page immediately, whatever its expires_at says."""
    page_uuid = parse_uuid(page_id, "pageId")
    moment = now or db.utc_now()
    with db.session_scope() as session:
        page = session.get(GeneratedPage, page_uuid)
        if page is None:
            raise NotFoundError(f"Page {page_uuid} not found")
        page.expired = True
        page.updated_at = moment
        session.flush()
        payload = serialize_page(page)
        item = _expired_item(page.id, page.file_path, page.title, page.expires_at)

    restamped = _restamp_object(store, payload["file_path"], moment) if payload["published"] else True
    logger.info("Expired page %s", page_uuid)
    return {
        "success": True,
        "message": f"Expired page {page_uuid}",
        "expiredCount": 1,
        "expiredPages": [item],
        "objectRestamped": restamped,
        "page": payload,
    }


def _parse_hours(hours: Any) -> float:
    if isinstance(hours, bool):
        raise ValidationError(f"hours must be a number, got {hours!r}")
    try:
        hours_value = float(hours)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"hours must be a number, got {hours!r}") from exc
    if not math.isfinite(hours_value):
        raise ValidationError("hours must be a finite number")
    if hours_value <= 0:
        raise ValidationError("hours must be greater than zero")
    if hours_value > MAX_EXTEND_HOURS:
        raise ValidationError(f"hours must be at most {MAX_EXTEND_HOURS}")
    return hours_value


def extend(page_id: Any, hours: Any, *, store: Optional[ObjectStore] = None, now: Optional[datetime] = None) -> dict:
    """Push a page's expiry to ``now + hours`` and bring it back if it had expired."""
    hours_value = _parse_hours(hours)
    page_uuid = parse_uuid(page_id, "pageId")
    moment = now or db.utc_now()
    new_expiry = moment + timedelta(hours=hours_value)
    with db.session_scope() as session:
        page = session.get(GeneratedPage, page_uuid)
        if page is None:
            raise NotFoundError(f"Page {page_uuid} not found")
        page.expires_at = new_expiry
        page.expired = False
        page.updated_at = moment
        session.flush()
        payload = serialize_page(page)

    restamped = _restamp_object(store, payload["file_path"], new_expiry) if payload["published"] else True
    logger.info("Extended page %s to %s", page_uuid, new_expiry.isoformat())
    return {
        "success": True,
        "message": f"Extended page {page_uuid} by {hours_value:g} hour(s)",
        "objectRestamped": restamped,
        "page": payload,
    }


def check_upcoming(now: Optional[datetime] = None) -> dict:
    moment = now or db.utc_now()
    with db.session_scope() as session:
        pages = session.execute(
            select(GeneratedPage)
            .where(GeneratedPage.expired.is_(False))
            .where(GeneratedPage.expires_at > moment)
            .where(GeneratedPage.expires_at <= moment + UPCOMING_WINDOW)
            .order_by(GeneratedPage.expires_at)
        ).scalars().all()
        items = [_expired_item(page.id, page.file_path, page.title, page.expires_at) for page in pages]
    return {
        "success": True,
        "message": f"{len(items)} page(s) expire within the next hour",
        "expiredCount": len(items),
        "expiredPages": items,
    }


def run_expiration(
    action: str,
    page_id: Any = None,
    hours: Any = None,
    *,
    store: Optional[ObjectStore] = None,
    now: Optional[datetime] = None,
) -> dict:
    action = normalize_action(action)
    if action == "expire-all":
        return expire_all(now=now)
    if action == "check-upcoming":
        return check_upcoming(now=now)
    if not page_id:
        raise ValidationError(f"pageId is required for {action}")
    if action == "expire-single":
        return expire_single(page_id, store=store, now=now)
    if hours is None:
        raise ValidationError("hours is required for extend")
    return extend(page_id, hours, store=store, now=now)
