from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import select

from .. import db
from ..cache import PUBLISHED_PAGES_TAG, CacheInvalidator, build_invalidator
from ..codec import decompress
from ..config import Config, load_config
from ..errors import NotFoundError, ValidationError, error_item
from ..jobs import track_job
from ..models import TERMINAL_UPDATE_STATUSES, GeneratedPage, Update
from ..pages import collect_page_ids
from ..paths import storage_key
from ..rendering.intents import render
from ..resilience import store_scope
from ..storage import ObjectStore

logger = logging.getLogger(__name__)

PUBLISH_JOB_NAME = "publish_pages"
DELETE_JOB_NAME = "delete_pages"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


def _resolve_ids(page_ids: Optional[Iterable[Any]], batch_id: Any) -> list[uuid.UUID]:
    if not page_ids and not batch_id:
        raise ValidationError("pageIds or batchId is required")
    with db.session_scope() as session:
        return collect_page_ids(session, page_ids, batch_id)


def _run_concurrently(
    ids: list[uuid.UUID],
    worker: Callable[[uuid.UUID], Optional[dict]],
    max_workers: int,
) -> tuple[list[dict], list[dict]]:
    """Run ``worker`` per id on a thread pool; failures become error items, never abort the batch."""
    done: dict[uuid.UUID, dict] = {}
    failed: dict[uuid.UUID, dict] = {}
    if not ids:
        return [], []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(ids))) as executor:
        futures = {executor.submit(worker, page_id): page_id for page_id in ids}
        for future in as_completed(futures):
            page_id = futures[future]
            try:
                done[page_id] = future.result()
            except Exception as exc:
                logger.warning("Page %s failed: %s", page_id, exc)
                failed[page_id] = error_item(page_id, exc)
    return (
        [done[page_id] for page_id in ids if page_id in done],
        [failed[page_id] for page_id in ids if page_id in failed],
    )


def _publish_one(page_id: uuid.UUID, store: ObjectStore, config: Config, now: Optional[datetime]) -> dict:
    with db.session_scope() as session:
        page = session.get(GeneratedPage, page_id)
        if page is None:
            raise NotFoundError(f"Page {page_id} not found")

        conflict = session.execute(
            select(GeneratedPage.id)
            .where(GeneratedPage.file_path == page.file_path)
            .where(GeneratedPage.published.is_(True))
            .where(GeneratedPage.expired.is_(False))
            .where(GeneratedPage.id != page.id)
            .limit(1)
        ).scalar()
        if conflict is not None:
            raise ValidationError(f"Page {conflict} is already live at {page.file_path}")

        html = render(page.intent_type, decompress(page.page_data), now=now, site_url=config.site_base_url)
        store.put(
            storage_key(page.file_path),
            html,
            HTML_CONTENT_TYPE,
            config.static_cache_control,
            expires_at=page.expires_at,
        )

        published_at = db.utc_now()
        page.published = True
        page.published_at = published_at
        update = session.get(Update, page.update_id)
        if update is not None and update.status not in TERMINAL_UPDATE_STATUSES:
            update.status = "published"
        return {
            "id": str(page.id),
            "url": f"{config.site_base_url}{page.file_path}",
            "publishedAt": published_at.isoformat(),
        }


def publish_pages(
    page_ids: Optional[Iterable[Any]] = None,
    batch_id: Any = None,
    *,
    store: Optional[ObjectStore] = None,
    invalidator: Optional[CacheInvalidator] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Render and store every page in ``page_ids`` (plus the pages of ``batch_id``).

    Pages are handled independently; one failing page never stops the others. Publishing an
    already-published page rewrites its object and refreshes ``published_at``.
    """
    config = load_config()
    ids = _resolve_ids(page_ids, batch_id)
    invalidator = invalidator or build_invalidator(config)

    with store_scope(store, config) as target, track_job(
        PUBLISH_JOB_NAME, scope=str(batch_id) if batch_id else None
    ) as tracker:
        published, errors = _run_concurrently(
            ids,
            lambda page_id: _publish_one(page_id, target, config, now),
            config.publish_max_workers,
        )
        tracker.processed_count = len(published)
        tracker.details = {"requested": len(ids), "errors": len(errors)}

    if published:
        invalidator.invalidate_tag(PUBLISHED_PAGES_TAG)
    logger.info("Published %s of %s page(s)", len(published), len(ids))
    return {
        "success": not errors,
        "partial": bool(published and errors),
        "publishedPages": published,
        "errors": errors,
    }


def _delete_one(page_id: uuid.UUID, store: ObjectStore) -> dict:
    with db.session_scope() as session:
        page = session.get(GeneratedPage, page_id)
        if page is None:
            return {"id": str(page_id), "existed": False, "wasPublished": False}
        was_published = page.published
        store.delete(storage_key(page.file_path))
        session.delete(page)
        return {"id": str(page_id), "existed": True, "wasPublished": was_published}


def delete_pages(
    page_ids: Optional[Iterable[Any]] = None,
    batch_id: Any = None,
    *,
    store: Optional[ObjectStore] = None,
    invalidator: Optional[CacheInvalidator] = None,
) -> dict:
    """Remove stored objects and rows. Ids that no longer exist count as deleted."""
    config = load_config()
    ids = _resolve_ids(page_ids, batch_id)
    invalidator = invalidator or build_invalidator(config)

    with store_scope(store, config) as target, track_job(
        DELETE_JOB_NAME, scope=str(batch_id) if batch_id else None
    ) as tracker:
        deleted, errors = _run_concurrently(
            ids,
            lambda page_id: _delete_one(page_id, target),
            config.publish_max_workers,
        )
        tracker.processed_count = len(deleted)
        tracker.details = {"requested": len(ids), "errors": len(errors)}

    if any(item["wasPublished"] for item in deleted):
        invalidator.invalidate_tag(PUBLISHED_PAGES_TAG)
    logger.info("Deleted %s of %s page(s)", len(deleted), len(ids))
    return {
        "success": not errors,
        "partial": bool(deleted and errors),
        "deleted": [item["id"] for item in deleted],
        "errors": errors,
    }
