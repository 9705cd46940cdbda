from __future__ import annotations

import re
import uuid
from typing import Optional

INDEX_DOCUMENT = "index.html"
RESERVED_KEYS = {
    "/sitemap.xml": "sitemap/index.html",
    "/robots.txt": "robots/index.html",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_CLOSED_UNTIL = re.compile(r"clos(ed|ing).*?until\s+(\w+\s+\d+)", re.IGNORECASE)


def slugify(text: Optional[str], max_length: int = 50) -> str:
    if not text:
        return "item"
    slug = _NON_ALNUM.sub("-", text.lower()).strip("-")[:max_length].strip("-")
    return slug or "item"


def semantic_slug(content: str) -> str:
    """Short readable slug describing what an update is about."""
    lowered = content.lower()
    if ("closed" in lowered or "closing" in lowered) and "until" in lowered:
        match = _CLOSED_UNTIL.search(lowered)
        if match:
            return slugify(f"closed-until-{match.group(2)}")
        return "temporarily-closed"
    if "special" in lowered or "promotion" in lowered:
        return "special-promotion"
    if "event" in lowered:
        return "upcoming-event"
    if "hours" in lowered:
        return "hours-update"
    if "menu" in lowered:
        return "menu-update"
    return slugify(" ".join(content.split()[:4]))


def normalize_path(path: str) -> str:
    cleaned = "/" + (path or "").strip().lstrip("/")
    if len(cleaned) > 1:
        cleaned = cleaned.rstrip("/")
    return cleaned


def storage_key(path: str) -> str:
    """Object store key for a served path: ``<path>/index.html`` minus the leading slash."""
    normalized = normalize_path(path)
    if normalized in RESERVED_KEYS:
        return RESERVED_KEYS[normalized]
    stem = normalized.strip("/")
    return f"{stem}/{INDEX_DOCUMENT}" if stem else INDEX_DOCUMENT


def business_base_path(country: Optional[str], state: str, city: str, business_slug: str) -> str:
    return "/" + "/".join(
        [
            slugify(country or "us", max_length=8),
            slugify(state, max_length=16),
            slugify(city),
            business_slug,
        ]
    )


def page_file_path(base_path: str, update_slug: str, update_id: uuid.UUID, intent: str) -> tuple[str, str]:
    """Deterministic (file_path, slug) for one intent of one update.

    The short update id keeps two updates with the same semantic slug apart, and the trailing
    intent segment keeps the six variants of one update apart.
    """
    short_id = update_id.hex[:8]
    page_slug = f"{update_slug}-{short_id}"
    return f"{base_path}/{page_slug}/{intent}", f"{page_slug}-{intent}"


def business_slug_from_path(path: str) -> Optional[str]:
    """Routing slug of the business a path belongs to.

    ``/{country}/{state}/{city}/{business}/...`` yields the fourth segment; a single-segment path
    is treated as a bare business slug.
    """
    segments = [segment for segment in normalize_path(path).split("/") if segment]
    if len(segments) >= 4:
        return segments[3]
    if len(segments) == 1 and "." not in segments[0]:
        return segments[0]
    return None
