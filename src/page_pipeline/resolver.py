"""Read path for served pages.

A request path is tried against, in order: the object store, the published page rows, a live
render of the business profile, and finally a minimal not-found page. A failure in any tier is
logged and the next tier is tried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import desc, or_, select

from . import db
from .codec import decompress
from .config import Config, load_config
from .generator import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH, truncate
from .models import Business, Update
from .page_data import BusinessData, IntentData, PageData, SeoData, UpdateData
from .pages import live_page_for_path
from .paths import business_base_path, business_slug_from_path, normalize_path, storage_key
from .rendering.helpers import category_display, location_label
from .rendering.intents import render
from .rendering.profile import render_business_profile, render_fallback
from .resilience import store_scope
from .storage import ObjectStore

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
STATIC = "static"
PUBLISHED = "published"
LIVE = "live"
FALLBACK = "fallback"


@dataclass
class Resolution:
    html: str
    found: bool
    source: str
    status_code: int = 200
    headers: dict = field(default_factory=dict)


def _from_store(path: str, store: ObjectStore, config: Config, now: datetime) -> Optional[Resolution]:
    stored = store.get(storage_key(path))
    if stored is None or stored.is_expired(now):
        return None
    return Resolution(
        html=stored.body,
        found=True,
        source=STATIC,
        headers={"Content-Type": stored.content_type, "Cache-Control": config.static_cache_control},
    )


def _from_published(path: str, config: Config, now: datetime) -> Optional[Resolution]:
    with db.session_scope() as session:
        page = live_page_for_path(session, path, now)
        if page is None:
            return None
        intent_type, compact = page.intent_type, page.page_data
    html = render(intent_type, decompress(compact), now=now, site_url=config.site_base_url)
    return Resolution(
        html=html,
        found=True,
        source=PUBLISHED,
        headers={"Content-Type": HTML_CONTENT_TYPE, "Cache-Control": config.published_cache_control},
    )


def profile_page_data(business: Business, latest: Optional[Update] = None) -> PageData:
    business_data = BusinessData.from_record(business)
    if business_data.country is None:
        business_data.country = "US"
    category = category_display(business_data.primary_category)
    location = location_label(business_data)
    title = f"{business_data.name} | {category} in {location}" if location else f"{business_data.name} | {category}"
    description = business_data.description or f"{business_data.name} is a {category.lower()} business in {location}."
    base_path = business_base_path(
        business_data.country, business_data.address_state or "", business_data.address_city or "", business.slug
    )
    return PageData(
        business=business_data,
        update=UpdateData.from_record(latest) if latest is not None else None,
        seo=SeoData(
            title=truncate(title, TITLE_MAX_LENGTH),
            description=truncate(description, DESCRIPTION_MAX_LENGTH),
        ),
        intent=IntentData(type="business", file_path=base_path, slug=business.slug),
    )


def _from_live(path: str, config: Config, now: datetime) -> Optional[Resolution]:
    slug = business_slug_from_path(path)
    if not slug:
        return None
    with db.session_scope() as session:
        business = session.execute(select(Business).where(Business.slug == slug)).scalars().first()
        if business is None:
            return None
        latest = session.execute(
            select(Update)
            .where(Update.business_id == business.id)
            .where(Update.status == "published")
            .where(or_(Update.expires_at.is_(None), Update.expires_at > now))
            .order_by(desc(Update.created_at))
            .limit(1)
        ).scalars().first()
        page_data = profile_page_data(business, latest)
    return Resolution(
        html=render_business_profile(page_data, now=now, site_url=config.site_base_url),
        found=True,
        source=LIVE,
        headers={"Content-Type": HTML_CONTENT_TYPE, "Cache-Control": config.published_cache_control},
    )


def resolve(
    path: str,
    *,
    store: Optional[ObjectStore] = None,
    now: Optional[datetime] = None,
    config: Optional[Config] = None,
) -> Resolution:
    config = config or load_config()
    moment = now or db.utc_now()
    normalized = normalize_path(path)

    try:
        with store_scope(store, config) as target:
            resolution = _from_store(normalized, target, config, moment)
        if resolution is not None:
            return resolution
    except Exception as exc:
        logger.warning("Static lookup for %s failed, falling through: %s", normalized, exc)

    for tier, lookup in ((PUBLISHED, _from_published), (LIVE, _from_live)):
        try:
            resolution = lookup(normalized, config, moment)
        except Exception as exc:
            logger.warning("%s lookup for %s failed, falling through: %s", tier.capitalize(), normalized, exc)
            continue
        if resolution is not None:
            return resolution

    return Resolution(
        html=render_fallback(normalized, site_url=config.site_base_url),
        found=False,
        source=FALLBACK,
        status_code=404,
        headers={"Content-Type": HTML_CONTENT_TYPE, "Cache-Control": "no-store"},
    )
