"""Turns one update into per-intent draft pages.

Nothing here touches the database or the object store: ``generate`` returns row values for the
caller to persist (see ``workers.generate_pages``).
"""
from __future__ import annotations

import json
import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from .codec import compress
from .errors import ValidationError
from .page_data import ALL_INTENTS, BusinessData, IntentData, PageData, SeoData, UpdateData
from .paths import business_base_path, page_file_path, semantic_slug, slugify
from .rendering.helpers import category_display

TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 160
DEFAULT_TTL_HOURS = 168
REQUIRED_BUSINESS_FIELDS = ("name", "address_city", "address_state", "primary_category")

_SENTENCE_END = re.compile(r"(?<=[.!?])\s")


@dataclass
class PageDraft:
    intent_type: str
    file_path: str
    slug: str
    title: str
    page_variant: str
    page_data: dict
    rendered_size_kb: int
    created_at: datetime
    expires_at: datetime
    generation_batch_id: uuid.UUID

    def row_values(self) -> dict:
        return {
            "intent_type": self.intent_type,
            "file_path": self.file_path,
            "slug": self.slug,
            "title": self.title,
            "page_variant": self.page_variant,
            "page_data": self.page_data,
            "rendered_size_kb": self.rendered_size_kb,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "generation_batch_id": self.generation_batch_id,
            "published": False,
            "published_at": None,
            "expired": False,
        }


@dataclass
class GenerationResult:
    pages: list[PageDraft] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    batch_id: uuid.UUID = field(default_factory=uuid.uuid4)


def truncate(text: str, limit: int) -> str:
    """Cut on a word boundary and mark the cut with an ellipsis."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    cut = text[: limit - 3]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(" ,;:-") + "..."


def headline(content: str) -> str:
    first = _SENTENCE_END.split(content.strip(), maxsplit=1)[0]
    return first.rstrip(".!? ") or content.strip()


def seo_title(intent: str, business: BusinessData, content: str) -> str:
    name = business.name or ""
    city = business.address_city or ""
    state = business.address_state or ""
    category = category_display(business.primary_category)
    lead = headline(content)
    templates = {
        "direct": f"{lead} - {name}",
        "local": f"{category} in {city}, {state}: {lead}",
        "category": f"{category} Update: {lead}",
        "branded-local": f"{name} {city}: {lead}",
        "service-urgent": f"Available Now in {city}: {lead}",
        "competitive": f"Top {category} in {city} - {name}",
    }
    return truncate(templates[intent], TITLE_MAX_LENGTH)


def seo_description(intent: str, business: BusinessData, content: str) -> str:
    name = business.name or ""
    city = business.address_city or ""
    state = business.address_state or ""
    category = category_display(business.primary_category).lower()
    call = f" Call {business.phone}." if business.phone else ""
    templates = {
        "direct": f"{name} in {city}, {state}: {content}",
        "local": f"Looking for {category} near you in {city}? {name}: {content}",
        "category": f"Professional {category} from {name} in {city}. {content}",
        "branded-local": f"{name} in {city}, {state}. {content}",
        "service-urgent": f"Act now: {content} {name}, {city}.{call}",
        "competitive": f"Why {name} leads {category} in {city}: {content}",
    }
    return truncate(templates[intent], DESCRIPTION_MAX_LENGTH)


def estimate_rendered_size(page_data: PageData) -> int:
    """Rough HTML size in KB: base document, update text, business payload, FAQs."""
    content = page_data.update.content_text if page_data.update else ""
    business_json = json.dumps(page_data.business.model_dump(mode="json", exclude_none=True))
    faq_size = len(page_data.faqs or []) * 0.5
    return math.ceil(2 + len(content or "") / 1024 + len(business_json) / 1024 + faq_size)


def validate_inputs(update_data: UpdateData, business_data: BusinessData) -> None:
    missing = [name for name in REQUIRED_BUSINESS_FIELDS if not getattr(business_data, name)]
    if missing:
        raise ValidationError(f"Business is missing required fields: {', '.join(missing)}")
    if not (update_data.content_text or "").strip():
        raise ValidationError("Update content text is required")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate(
    update: Any,
    business: Any,
    intents: Optional[Iterable[str]] = None,
    *,
    batch_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
    ttl_hours: int = DEFAULT_TTL_HOURS,
) -> GenerationResult:
    """Build one draft page per requested intent.

    ``update`` and ``business`` are read by attribute, so ORM rows and plain objects both work.
    Invalid input raises ``ValidationError`` before anything is built; an unknown intent is
    reported in ``errors`` and the remaining intents still produce pages.
    """
    business_data = BusinessData.from_record(business)
    update_data = UpdateData.from_record(update)
    validate_inputs(update_data, business_data)
    update_id = getattr(update, "id", None)
    if update_id is None:
        raise ValidationError("Update id is required")

    created_at = _as_utc(now or datetime.now(timezone.utc))
    update_expiry = getattr(update, "expires_at", None)
    expires_at = _as_utc(update_expiry) if update_expiry else created_at + timedelta(hours=ttl_hours)
    # Pages created after the update's own expiry would violate expires_at >= created_at.
    expires_at = max(expires_at, created_at)

    update_data.expires_at = expires_at.isoformat()
    if not update_data.created_at:
        update_data.created_at = created_at.isoformat()

    business_slug = getattr(business, "slug", None) or slugify(business_data.name)
    base_path = business_base_path(
        business_data.country, business_data.address_state, business_data.address_city, business_slug
    )
    update_slug = semantic_slug(update_data.content_text)
    update_category = update_data.update_category or "general"

    result = GenerationResult(batch_id=batch_id or uuid.uuid4())
    requested = list(intents) if intents is not None else list(ALL_INTENTS)
    for intent in dict.fromkeys(str(getattr(item, "value", item)) for item in requested):
        if intent not in ALL_INTENTS:
            result.errors.append({"intent": intent, "error": f"Unknown intent type: {intent}", "kind": "validation"})
            continue
        file_path, slug = page_file_path(base_path, update_slug, update_id, intent)
        page_variant = f"{intent}-{update_category}"
        page_data = PageData(
            business=business_data,
            update=update_data,
            seo=SeoData(
                title=seo_title(intent, business_data, update_data.content_text),
                description=seo_description(intent, business_data, update_data.content_text),
            ),
            intent=IntentData(type=intent, file_path=file_path, slug=slug, page_variant=page_variant),
        )
        result.pages.append(
            PageDraft(
                intent_type=intent,
                file_path=file_path,
                slug=slug,
                title=page_data.seo.title,
                page_variant=page_variant,
                page_data=compress(page_data),
                rendered_size_kb=estimate_rendered_size(page_data),
                created_at=created_at,
                expires_at=expires_at,
                generation_batch_id=result.batch_id,
            )
        )
    return result
