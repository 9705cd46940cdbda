"""Business profile page and the template-free fallback page."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..page_data import PageData
from .helpers import (
    attr,
    category_display,
    esc,
    format_date,
    join_lines,
    location_label,
    make_context,
    render_availability_status,
    render_business_contact,
    render_business_details,
    render_faq_section,
    render_if,
    render_meta_tags,
    render_open_graph_tags,
    render_speakable_content,
)
from .schema import all_schema_markup
from .voice import render_speakable_markup


def render_business_profile(
    data: PageData,
    now: Optional[datetime] = None,
    site_url: Optional[str] = None,
) -> str:
    """Profile page rendered on demand when no stored or published page matches a path.

    ``data.update`` is optional; when present, the update is shown as the latest news.
    """
    ctx = make_context(now, site_url)
    business = data.business
    category = category_display(business.primary_category)
    location = location_label(business)
    tagline = f"{category} in {location}" if location else category
    update = data.update
    latest = ""
    if update is not None and update.content_text:
        latest = join_lines(
            [
                '<section class="latest-update">',
                "  <h2>Latest Update</h2>",
                f"  <p>{esc(update.content_text)}</p>",
                render_if(
                    format_date(update.created_at),
                    lambda: f"  <p><strong>Posted:</strong> {esc(format_date(update.created_at))}</p>",
                ),
                "</section>",
            ]
        )
    return join_lines(
        [
            "<!DOCTYPE html>",
            '<html lang="en" itemscope itemtype="https://schema.org/LocalBusiness">',
            "<head>",
            render_meta_tags(data, ctx),
            render_open_graph_tags(data, ctx),
            all_schema_markup(data, ctx),
            "</head>",
            '<body class="business-profile">',
            render_speakable_content(data, ctx),
            '<header class="business-header">',
            f"  <h1>{esc(business.name)}</h1>",
            f'  <p class="tagline">{esc(tagline)}</p>',
            render_if(
                business.established_year,
                lambda: f'  <p class="established">Serving the community since {esc(business.established_year)}</p>',
            ),
            "</header>",
            render_availability_status(data, ctx),
            render_if(
                business.description,
                lambda: join_lines(
                    [
                        '<section class="about">',
                        f"  <h2>About {esc(business.name)}</h2>",
                        f"  <p>{esc(business.description)}</p>",
                        "</section>",
                    ]
                ),
            ),
            latest,
            render_business_contact(data),
            render_business_details(data),
            render_faq_section(data),
            render_speakable_markup(data, ctx),
            "</body>",
            "</html>",
        ]
    )


def render_fallback(path: str, site_url: Optional[str] = None) -> str:
    """Minimal page served when nothing else resolves a path."""
    home = (site_url or "").rstrip("/") + "/"
    return join_lines(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '<meta charset="UTF-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1">',
            '<meta name="robots" content="noindex">',
            "<title>Page Not Found</title>",
            "</head>",
            "<body>",
            "<h1>Page Not Found</h1>",
            f"<p>Nothing is published at <code>{esc(path)}</code> right now.</p>",
            f'<p><a href="{attr(home)}">Back to the home page</a></p>',
            "</body>",
            "</html>",
        ]
    )
