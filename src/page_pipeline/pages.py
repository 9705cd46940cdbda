from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import ValidationError
from .models import GeneratedPage


def parse_uuid(value: Any, field_name: str = "id") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {field_name}: {value!r}") from exc


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_page(page: GeneratedPage, include_data: bool = False) -> dict:
    payload = {
        "id": str(page.id),
        "business_id": str(page.business_id),
        "update_id": str(page.update_id),
        "file_path": page.file_path,
        "title": page.title,
        "slug": page.slug,
        "intent_type": page.intent_type,
        "page_variant": page.page_variant,
        "rendered_size_kb": page.rendered_size_kb,
        "generation_batch_id": str(page.generation_batch_id),
        "created_at": _iso(page.created_at),
        "expires_at": _iso(page.expires_at),
        "published": page.published,
        "published_at": _iso(page.published_at),
        "expired": page.expired,
    }
    if include_data:
        payload["page_data"] = page.page_data
    return payload


def batch_page_ids(session: Session, batch_id: Any) -> list[uuid.UUID]:
    batch_uuid = parse_uuid(batch_id, "batchId")
    stmt = (
        select(GeneratedPage.id)
        .where(GeneratedPage.generation_batch_id == batch_uuid)
        .order_by(GeneratedPage.created_at, GeneratedPage.intent_type)
    )
    return list(session.execute(stmt).scalars().all())


def collect_page_ids(session: Session, page_ids: Optional[Iterable[Any]], batch_id: Any = None) -> list[uuid.UUID]:
    """Explicit ids plus every page of ``batch_id``, de-duplicated, in first-seen order."""
    ids = [parse_uuid(value, "pageId") for value in page_ids or []]
    if batch_id:
        ids.extend(batch_page_ids(session, batch_id))
    return list(dict.fromkeys(ids))


def live_page_for_path(session: Session, file_path: str, now: datetime) -> Optional[GeneratedPage]:
    stmt = (
        select(GeneratedPage)
        .where(GeneratedPage.file_path == file_path)
        .where(GeneratedPage.published.is_(True))
        .where(GeneratedPage.expired.is_(False))
        .where((GeneratedPage.expires_at.is_(None)) | (GeneratedPage.expires_at > now))
        .limit(1)
    )
    return session.execute(stmt).scalars().first()
