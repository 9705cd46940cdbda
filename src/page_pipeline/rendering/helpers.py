"""Shared building blocks for every page template.

All helpers take the page data plus a :class:`RenderContext` and return HTML fragments. Optional
fields that are missing produce an empty string, never the text ``None``.
"""
from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from ..page_data import BusinessData, PageData, UpdateData
from ..paths import business_base_path, slugify

DEFAULT_CLOSING_TIME = "10:00 PM"
SITE_NAME = "Local Pages"

CATEGORY_DISPLAY = {
    "food-dining": "Restaurant & Dining",
    "shopping": "Retail & Shopping",
    "beauty-grooming": "Beauty & Grooming",
    "health-medical": "Healthcare & Medical",
    "repairs-services": "Repair Services",
    "professional-services": "Professional Services",
    "activities-entertainment": "Entertainment & Activities",
    "education-training": "Education & Training",
    "creative-digital": "Creative & Digital Services",
    "transportation-delivery": "Transportation & Delivery",
}

CLOSED_OVERRIDES = {"temporarily_closed", "closed_emergency"}
_WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass(frozen=True)
class RenderContext:
    now: datetime
    site_url: str

    def absolute(self, path: str) -> str:
        return f"{self.site_url}{path if path.startswith('/') else '/' + path}"

    def page_url(self, data: PageData) -> str:
        if data.intent is not None:
            return self.absolute(data.intent.file_path)
        return self.absolute(business_path(data))


def make_context(now: Optional[datetime] = None, site_url: Optional[str] = None) -> RenderContext:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return RenderContext(now=moment, site_url=(site_url or "http://localhost:8000").rstrip("/"))


# ----- escaping -----

def esc(value: Any) -> str:
    """Escape for an HTML text node."""
    if value is None:
        return ""
    return html.escape(str(value), quote=False)


def attr(value: Any) -> str:
    """Escape for a double-quoted HTML attribute."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def render_if(value: Any, render: Callable[[], str]) -> str:
    return render() if value else ""


def join_lines(parts: Iterable[str]) -> str:
    return "\n".join(part for part in parts if part)


# ----- field access -----

def update_of(data: PageData) -> UpdateData:
    return data.update or UpdateData()


def content_text(data: PageData) -> str:
    return update_of(data).content_text or ""


def item_label(item: Any) -> str:
    """Awards and certifications are stored either as strings or as ``{"name": ...}`` objects."""
    if isinstance(item, dict):
        return str(item.get("name") or "")
    return "" if item is None else str(item)


def item_field(item: Any, key: str) -> Optional[Any]:
    if isinstance(item, dict):
        return item.get(key) or None
    return None


def text_list(values: Optional[list[Any]]) -> list[str]:
    return [str(value) for value in values or [] if value not in (None, "")]


def category_display(category: Optional[str]) -> str:
    if not category:
        return "Local Business"
    if category in CATEGORY_DISPLAY:
        return CATEGORY_DISPLAY[category]
    return category.replace("-", " ").replace("_", " ").title()


def location_label(business: BusinessData) -> str:
    return ", ".join(part for part in (business.address_city, business.address_state) if part)


def business_path(data: PageData) -> str:
    """Served path of the business profile the page belongs to."""
    if data.intent is not None:
        segments = [segment for segment in data.intent.file_path.split("/") if segment]
        if len(segments) >= 4:
            return "/" + "/".join(segments[:4])
    business = data.business
    return business_base_path(
        business.country,
        business.address_state or "",
        business.address_city or "",
        slugify(business.name),
    )


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: Optional[str]) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return ""
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def format_datetime(value: Optional[str]) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return ""
    return f"{format_date(value)} {parsed:%H:%M} UTC"


# ----- status -----

def _today_hours(business: BusinessData, now: datetime) -> Optional[dict]:
    hours = business.structured_hours or {}
    today = hours.get(_WEEKDAY_KEYS[now.weekday()])
    return today if isinstance(today, dict) else None


def _minutes(value: str) -> Optional[int]:
    try:
        hour, minute = value.split(":")[:2]
        return int(hour) * 60 + int(minute)
    except (AttributeError, ValueError):
        return None


def is_open_now(data: PageData, now: datetime) -> bool:
    business = data.business
    if business.status_override in CLOSED_OVERRIDES:
        return False
    today = _today_hours(business, now)
    if today and today.get("open") and today.get("close"):
        opens = _minutes(str(today["open"]))
        closes = _minutes(str(today["close"]))
        if opens is not None and closes is not None:
            current = now.hour * 60 + now.minute
            return opens <= current <= closes
    # No usable hours for today: assume open.
    return True


def closing_time(data: PageData, now: datetime) -> str:
    today = _today_hours(data.business, now)
    if today and today.get("close"):
        return str(today["close"])
    return DEFAULT_CLOSING_TIME


def urgency_level(data: PageData, now: datetime) -> str:
    expires_at = parse_timestamp(update_of(data).expires_at)
    if expires_at is not None:
        hours_left = (expires_at - now).total_seconds() / 3600
        if hours_left <= 6:
            return "high"
        if hours_left <= 24:
            return "medium"
    return "low"


# ----- voice / summary text -----

def voice_summary(data: PageData, now: datetime, max_words: int = 40) -> str:
    business = data.business
    words = [
        business.name or "",
        "is open now" if is_open_now(data, now) else "is currently closed",
    ]
    if location_label(business):
        words += ["in", location_label(business)]
    text = content_text(data)
    if text:
        words += ["-", text if len(text) < 100 else text[:97].rstrip() + "..."]
    if business.phone:
        words += ["Call", business.phone]
    summary_words = " ".join(word for word in words if word).split(" ")
    if len(summary_words) > max_words:
        return " ".join(summary_words[:max_words]) + "..."
    return " ".join(summary_words)


def summary_bullets(data: PageData, now: datetime) -> list[str]:
    business = data.business
    update = update_of(data)
    bullets = []
    if update.content_text:
        bullets.append(f"What: {update.content_text[:100]}")
    bullets.append(f"Who: {business.name or ''}")
    if location_label(business):
        bullets.append(f"Where: {location_label(business)}")
    if business.phone:
        bullets.append(f"Contact: {business.phone}")
    if format_date(update.expires_at):
        bullets.append(f"Valid Until: {format_date(update.expires_at)}")
    if urgency_level(data, now) == "high":
        bullets.append("Limited Time Offer")
    return bullets


def all_faqs(data: PageData) -> list[dict]:
    """Business, update, and page-level FAQs merged, keeping only complete question/answer pairs."""
    merged = [
        *(data.business.business_faqs or []),
        *(update_of(data).update_faqs or []),
        *(data.faqs or []),
    ]
    return [faq for faq in merged if isinstance(faq, dict) and faq.get("question") and faq.get("answer")]


# ----- head -----

def render_meta_tags(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    update = update_of(data)
    intent_type = data.intent.type if data.intent is not None else "business"
    coordinates = ""
    if business.latitude is not None and business.longitude is not None:
        coordinates = join_lines(
            [
                f'<meta name="geo.position" content="{attr(business.latitude)};{attr(business.longitude)}">',
                f'<meta name="ICBM" content="{attr(business.latitude)}, {attr(business.longitude)}">',
            ]
        )
    languages = text_list(business.languages_spoken)
    return join_lines(
        [
            '<meta charset="UTF-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1">',
            f"<title>{esc(data.seo.title)}</title>",
            f'<meta name="description" content="{attr(data.seo.description)}">',
            '<meta name="robots" content="index, follow, max-image-preview:large, max-snippet:-1">',
            render_if(
                business.address_state,
                lambda: f'<meta name="geo.region" content="{attr(business.country or "US")}-{attr(business.address_state)}">',
            ),
            render_if(
                business.address_city,
                lambda: f'<meta name="geo.placename" content="{attr(business.address_city)}">',
            ),
            coordinates,
            render_if(
                update.created_at,
                lambda: f'<meta name="article:published_time" content="{attr(update.created_at)}">',
            ),
            f'<meta name="page-intent" content="{attr(intent_type)}">',
            '<meta name="voice-search-optimized" content="true">',
            f'<meta name="content-variant" content="{attr(intent_type)}-optimized">',
            render_if(
                business.primary_category,
                lambda: f'<meta name="local-business-category" content="{attr(business.primary_category)}">',
            ),
            render_if(
                languages,
                lambda: f'<meta name="languages-spoken" content="{attr(", ".join(languages))}">',
            ),
            f'<meta name="business-status" content="{"open-now" if is_open_now(data, ctx.now) else "closed"}">',
        ]
    )


def render_open_graph_tags(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    page_url = ctx.page_url(data)
    image_alt = " - ".join(part for part in (business.name, location_label(business)) if part)
    return join_lines(
        [
            '<meta property="og:type" content="website">',
            f'<meta property="og:title" content="{attr(data.seo.title)}">',
            f'<meta property="og:description" content="{attr(data.seo.description)}">',
            f'<meta property="og:url" content="{attr(page_url)}">',
            f'<meta property="og:image:alt" content="{attr(image_alt)}">',
            f'<meta property="og:site_name" content="{SITE_NAME}">',
            '<meta property="og:locale" content="en_US">',
            render_if(
                business.address_city,
                lambda: f'<meta property="business:contact_data:locality" content="{attr(business.address_city)}">',
            ),
            render_if(
                business.address_state,
                lambda: f'<meta property="business:contact_data:region" content="{attr(business.address_state)}">',
            ),
            f'<meta property="business:contact_data:country_name" content="{attr(business.country or "US")}">',
            '<meta name="twitter:card" content="summary_large_image">',
            f'<meta name="twitter:title" content="{attr(data.seo.title)}">',
            f'<meta name="twitter:description" content="{attr(data.seo.description)}">',
            f'<link rel="canonical" href="{attr(page_url)}">',
        ]
    )


# ----- body sections -----

def render_speakable_content(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    open_status = "open now" if is_open_now(data, ctx.now) else "currently closed"
    text = content_text(data)
    where = f" in {location_label(business)}" if location_label(business) else ""
    quick = f"{business.name or ''} is {open_status}{where}."
    if text:
        quick += f" {text[:80]}{'...' if len(text) > 80 else ''}"
    urgent = ""
    if urgency_level(data, ctx.now) == "high":
        action = f"Call {business.phone} now." if business.phone else "Contact immediately."
        urgent = join_lines(
            [
                '<div class="urgent-info speakable" id="urgent-info">',
                f"  <p>Time sensitive: This offer expires soon. {esc(action)}</p>",
                "</div>",
            ]
        )
    return join_lines(
        [
            '<div class="voice-summary speakable" id="voice-summary" aria-label="Voice Assistant Summary">',
            f"  <p>{esc(voice_summary(data, ctx.now))}</p>",
            "</div>",
            '<div class="quick-answer speakable" id="quick-answer">',
            f"  <p>{esc(quick)}</p>",
            "</div>",
            urgent,
        ]
    )


def render_availability_status(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    update = update_of(data)
    is_open = is_open_now(data, ctx.now)
    urgency = urgency_level(data, ctx.now)
    override_text = {
        "closed_emergency": ("TEMPORARILY CLOSED - Emergency", "Please check back later or call for updates"),
        "closed_holiday": ("CLOSED - Holiday Hours", "Closed for the holiday"),
        "temporarily_closed": ("TEMPORARILY CLOSED", "We'll be back soon"),
    }
    if business.status_override in override_text:
        status_text, action_text = override_text[business.status_override]
    elif is_open:
        status_text, action_text = f"OPEN NOW until {closing_time(data, ctx.now)}", "Visit or call now"
    else:
        status_text, action_text = "CLOSED", "Opens tomorrow"

    timer = ""
    if urgency == "high" and format_datetime(update.expires_at):
        timer = join_lines(
            [
                f'  <div class="urgency-timer" data-expires="{attr(update.expires_at)}">',
                f"    Offer expires: <span>{esc(format_datetime(update.expires_at))}</span>",
                "  </div>",
            ]
        )
    return join_lines(
        [
            f'<div class="availability-status {"open" if is_open else "closed"} urgency-{urgency}">',
            '  <div class="status-indicator">',
            f'    <span class="status-text">{esc(status_text)}</span>',
            f'    <span class="action-text">{esc(action_text)}</span>',
            "  </div>",
            render_if(
                business.phone,
                lambda: f'  <div class="contact-now"><a href="tel:{attr(business.phone)}" class="phone-cta">{esc(business.phone)}</a></div>',
            ),
            timer,
            "</div>",
        ]
    )


def render_update_block(data: PageData, css_class: str, heading: str, posted_label: str, until_label: str, note: str = "") -> str:
    update = update_of(data)
    return join_lines(
        [
            f'<section class="{attr(css_class)}">',
            f"  <h2>{esc(heading)}</h2>",
            '  <div class="update-content speakable">',
            f"    <p>{esc(update.content_text)}</p>",
            render_if(note, lambda: f'    <p class="location-context">{esc(note)}</p>'),
            render_if(update.deal_terms, lambda: f'    <p class="deal-terms"><strong>Terms:</strong> {esc(update.deal_terms)}</p>'),
            "  </div>",
            '  <div class="update-meta">',
            render_if(
                format_date(update.created_at),
                lambda: f"    <p><strong>{esc(posted_label)}:</strong> {esc(format_date(update.created_at))}</p>",
            ),
            render_if(
                format_date(update.expires_at),
                lambda: f"    <p><strong>{esc(until_label)}:</strong> {esc(format_date(update.expires_at))}</p>",
            ),
            "  </div>",
            "</section>",
        ]
    )


def render_ai_context_block(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    update = update_of(data)
    keywords = [
        value
        for value in [business.name, business.address_city, business.primary_category]
        + text_list(business.services)
        + text_list(business.specialties)
        if value
    ][:10]
    status = f"Open until {closing_time(data, ctx.now)}" if is_open_now(data, ctx.now) else "Closed"
    return join_lines(
        [
            '<section class="ai-context" aria-label="Structured Information">',
            "  <h2>In Summary</h2>",
            '  <ul class="summary-bullets">',
            *[f"    <li>{esc(bullet)}</li>" for bullet in summary_bullets(data, ctx.now)],
            "  </ul>",
            '  <div class="structured-data-preview">',
            "    <h3>Key Information</h3>",
            "    <dl>",
            f"      <dt>Business Type:</dt><dd>{esc(category_display(business.primary_category))}</dd>",
            render_if(location_label(business), lambda: f"      <dt>Location:</dt><dd>{esc(location_label(business))}</dd>"),
            render_if(business.phone, lambda: f"      <dt>Contact:</dt><dd>{esc(business.phone)}</dd>"),
            f"      <dt>Current Status:</dt><dd>{esc(status)}</dd>",
            render_if(
                format_date(update.expires_at),
                lambda: f"      <dt>Offer Valid Until:</dt><dd>{esc(format_date(update.expires_at))}</dd>",
            ),
            "    </dl>",
            "  </div>",
            f'  <div class="keywords" data-ai-keywords="{attr(", ".join(keywords))}"></div>',
            "</section>",
        ]
    )


def render_business_contact(data: PageData) -> str:
    business = data.business
    address = " ".join(
        part
        for part in (
            business.address_street,
            f"{location_label(business)}" if location_label(business) else None,
            business.zip_code,
        )
        if part
    )
    lines = [
        render_if(business.phone, lambda: f'<p>Phone: <a href="tel:{attr(business.phone)}">{esc(business.phone)}</a></p>'),
        render_if(business.address_street, lambda: f"<p>Address: {esc(address)}</p>"),
        render_if(business.email, lambda: f'<p>Email: <a href="mailto:{attr(business.email)}">{esc(business.email)}</a></p>'),
        render_if(
            business.website,
            lambda: f'<p>Website: <a href="{attr(business.website)}" rel="noopener">{esc(business.website)}</a></p>',
        ),
    ]
    if not any(lines):
        return ""
    return join_lines(['<section class="business-contact">', "  <h2>Business Contact</h2>", *lines, "</section>"])


def render_business_details(data: PageData) -> str:
    business = data.business
    services = text_list(business.services)
    specialties = text_list(business.specialties)
    payments = text_list(business.payment_methods)
    accessibility = text_list(business.accessibility_features)
    lines = [
        render_if(business.description, lambda: f"<p>Description: {esc(business.description)}</p>"),
        render_if(services, lambda: f"<p>Services: {esc(', '.join(services))}</p>"),
        render_if(specialties, lambda: f"<p>Specialties: {esc(', '.join(specialties))}</p>"),
        render_if(business.hours, lambda: f"<p>Hours: {esc(business.hours)}</p>"),
        render_if(business.price_positioning, lambda: f"<p>Price Range: {esc(business.price_positioning)}</p>"),
        render_if(payments, lambda: f"<p>Payment Methods: {esc(', '.join(payments))}</p>"),
        render_if(accessibility, lambda: f"<p>Accessibility: {esc(', '.join(accessibility))}</p>"),
        render_if(business.parking_info, lambda: f"<p>Parking: {esc(business.parking_info)}</p>"),
    ]
    if not any(lines):
        return ""
    return join_lines(['<section class="business-details">', "  <h2>Business Details</h2>", *lines, "</section>"])


def render_faq_section(data: PageData) -> str:
    faqs = all_faqs(data)
    if not faqs:
        return ""
    business = data.business
    items = []
    for faq in faqs:
        triggers = text_list(faq.get("voiceSearchTriggers"))
        items.append(
            join_lines(
                [
                    '  <div class="faq-item" itemscope itemprop="mainEntity" itemtype="https://schema.org/Question">',
                    f'    <h3 itemprop="name">{esc(faq["question"])}</h3>',
                    '    <div itemscope itemprop="acceptedAnswer" itemtype="https://schema.org/Answer">',
                    f'      <p itemprop="text">{esc(faq["answer"])}</p>',
                    "    </div>",
                    render_if(triggers, lambda: f'    <meta name="voice-triggers" content="{attr(", ".join(triggers))}">'),
                    "  </div>",
                ]
            )
        )
    where = f" in {business.address_city}" if business.address_city else ""
    return join_lines(
        [
            '<section class="ai-optimized-faq" itemscope itemtype="https://schema.org/FAQPage">',
            "  <h2>Frequently Asked Questions</h2>",
            '  <div class="voice-summary" aria-label="Quick FAQ Summary">',
            f"    <p>Common questions about {esc(business.name)}{esc(where)}. "
            f"{len(faqs)} frequently asked questions answered.</p>",
            "  </div>",
            *items,
            "</section>",
        ]
    )


def render_item_list(title: str, css_class: str, items: list[Any], detail_key: Optional[str] = None, detail_label: str = "") -> str:
    rows = []
    for item in items:
        label = item_label(item)
        if not label:
            continue
        detail = item_field(item, detail_key) if detail_key else None
        year = item_field(item, "year")
        suffix = ""
        if year:
            suffix += f" ({esc(year)})"
        if detail:
            suffix += f" - {esc(detail_label)}{esc(detail)}"
        rows.append(f"    <li><strong>{esc(label)}</strong>{suffix}</li>")
    if not rows:
        return ""
    return join_lines(
        [f'<section class="{attr(css_class)}">', f"  <h2>{esc(title)}</h2>", "  <ul>", *rows, "  </ul>", "</section>"]
    )
