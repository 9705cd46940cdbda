from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from xml.sax.saxutils import escape

from sqlalchemy import or_, select

from .. import db
from ..config import load_config
from ..jobs import track_job
from ..models import GeneratedPage
from ..paths import storage_key
from ..resilience import store_scope
from ..storage import ObjectStore

logger = logging.getLogger(__name__)

JOB_NAME = "rebuild_sitemap"
SITEMAP_PATH = "/sitemap.xml"
ROBOTS_PATH = "/robots.txt"
SITEMAP_CACHE_CONTROL = "public, max-age=3600"


def _profile_path(file_path: str) -> Optional[str]:
    segments = [segment for segment in file_path.split("/") if segment]
    if len(segments) < 4:
        return None
    return "/" + "/".join(segments[:4])


def build_sitemap(site_url: str, entries: list[tuple[str, Optional[datetime]]]) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for path, modified in entries:
        lines.append("  <url>")
        lines.append(f"    <loc>{escape(site_url + path)}</loc>")
        if modified is not None:
            lines.append(f"    <lastmod>{modified.date().isoformat()}</lastmod>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def build_robots(site_url: str) -> str:
    return f"User-agent: *\nAllow: /\nDisallow: /api/\n\nSitemap: {site_url}{SITEMAP_PATH}\n"


def rebuild_sitemap(*, store: Optional[ObjectStore] = None, now: Optional[datetime] = None) -> dict:
    """Write sitemap.xml and robots.txt for every live page and the profiles they belong to."""
    config = load_config()
    moment = now or db.utc_now()

    with store_scope(store, config) as target, track_job(JOB_NAME) as tracker:
        with db.session_scope() as session:
            rows = session.execute(
                select(GeneratedPage.file_path, GeneratedPage.published_at)
                .where(GeneratedPage.published.is_(True))
                .where(GeneratedPage.expired.is_(False))
                .where(or_(GeneratedPage.expires_at.is_(None), GeneratedPage.expires_at > moment))
                .order_by(GeneratedPage.file_path)
            ).all()

        entries: dict[str, Optional[datetime]] = {}
        for file_path, published_at in rows:
            entries[file_path] = published_at
            profile = _profile_path(file_path)
            if profile is not None:
                current = entries.get(profile)
                if current is None or (published_at is not None and published_at > current):
                    entries[profile] = published_at

        ordered = sorted(entries.items())
        target.put(
            storage_key(SITEMAP_PATH),
            build_sitemap(config.site_base_url, ordered),
            "application/xml; charset=utf-8",
            SITEMAP_CACHE_CONTROL,
        )
        target.put(
            storage_key(ROBOTS_PATH),
            build_robots(config.site_base_url),
            "text/plain; charset=utf-8",
            SITEMAP_CACHE_CONTROL,
        )
        tracker.processed_count = len(ordered)

    logger.info("Rebuilt sitemap with %s url(s)", len(ordered))
    return {
        "success": True,
        "urlCount": len(ordered),
        "sitemapKey": storage_key(SITEMAP_PATH),
        "robotsKey": storage_key(ROBOTS_PATH),
    }
