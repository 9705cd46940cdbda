"""Answers phrased for voice assistants, plus the trigger phrases each intent targets."""
from __future__ import annotations

import re

from ..page_data import PageData
from .helpers import (
    RenderContext,
    category_display,
    closing_time,
    content_text,
    esc,
    is_open_now,
    join_lines,
    location_label,
    text_list,
)

_DIGITS = re.compile(r"\D")


def format_phone_number(phone: str | None, country_code: str | None = "+1") -> str:
    if not phone:
        return ""
    digits = _DIGITS.sub("", phone)
    code = country_code or "+1"
    if code == "+1" and len(digits) == 10:
        return f"+1 ({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return f"{code} {digits}"


def format_phone_for_voice(phone: str) -> str:
    """Digits grouped the way a person reads a number aloud: 206 555 0142."""
    digits = _DIGITS.sub("", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"{digits[:3]} {digits[3:6]} {digits[6:]}"
    return phone


def _where(data: PageData) -> str:
    location = location_label(data.business)
    return f" in {location}" if location else ""


def hours_response(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    name = business.name or ""
    if business.status_override == "closed_emergency":
        return f"{name} is temporarily closed due to an emergency. Please check back later."
    if business.status_override == "closed_holiday":
        return f"{name} is closed today for a holiday. Regular hours will resume tomorrow."
    if business.status_override == "temporarily_closed":
        return f"{name} is temporarily closed. Please call {business.phone or 'them'} for updates."
    if is_open_now(data, ctx.now):
        return f"{name} is open now until {closing_time(data, ctx.now)}. They're located{_where(data)}."
    response = f"{name} is currently closed. They're located{_where(data)}."
    if business.phone:
        response += f" You can call {business.phone} for hours."
    return response


def location_response(data: PageData) -> str:
    business = data.business
    response = f"{business.name or ''} is located"
    if business.address_street:
        response += f" at {business.address_street}"
    response += f"{_where(data)}."
    details = business.service_area_details or {}
    primary_city = details.get("primary_city")
    if primary_city and primary_city != business.address_city:
        response += f" They also serve the {primary_city} area."
    if business.phone:
        response += f" You can call them at {format_phone_for_voice(business.phone)}."
    return response


def services_response(data: PageData) -> str:
    business = data.business
    category = category_display(business.primary_category).lower()
    response = f"{business.name or ''} is a {category} business"
    services = text_list(business.services)[:3]
    if services:
        response += f" offering {', '.join(services)}"
    specialties = text_list(business.specialties)[:2]
    if specialties:
        response += f". They specialize in {' and '.join(specialties)}."
    else:
        response += "."
    text = content_text(data)
    if text and len(text) < 100:
        response += f" Currently, {text}"
    return response


def contact_response(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    methods = []
    if business.phone:
        methods.append(f"call {format_phone_for_voice(business.phone)}")
    if business.website:
        methods.append("visit their website")
    if business.email:
        methods.append("send them an email")
    response = f"To contact {business.name or ''}"
    if methods:
        response += f", you can {' or '.join(methods)}."
    else:
        response += "."
    response += f" They're located{_where(data)}"
    if is_open_now(data, ctx.now):
        response += f" and are open now until {closing_time(data, ctx.now)}."
    else:
        response += " and are currently closed."
    return response


def general_response(data: PageData, ctx: RenderContext) -> str:
    business = data.business
    category = category_display(business.primary_category).lower()
    response = f"{business.name or ''} is a {category} business{_where(data)}."
    if is_open_now(data, ctx.now):
        response += f" They are open now until {closing_time(data, ctx.now)}."
    else:
        response += " They are currently closed."
    text = content_text(data)
    if text and len(text) < 80:
        response += f" {text}"
    if business.phone:
        response += f" You can call them at {format_phone_for_voice(business.phone)}."
    return response


def render_speakable_markup(data: PageData, ctx: RenderContext) -> str:
    blocks = [
        ("general", general_response(data, ctx)),
        ("hours", hours_response(data, ctx)),
        ("contact", contact_response(data, ctx)),
    ]
    if text_list(data.business.services):
        blocks.append(("services", services_response(data)))
    blocks.append(("location", location_response(data)))
    return join_lines(
        [
            '<div class="speakable-content" hidden aria-hidden="true">',
            *[
                f'  <div class="speakable" data-speakable="{kind}">{esc(answer)}</div>'
                for kind, answer in blocks
            ],
            "</div>",
        ]
    )


def voice_triggers(data: PageData, intent_type: str) -> list[str]:
    business = data.business
    name = (business.name or "").lower()
    city = (business.address_city or "").lower()
    category = category_display(business.primary_category).lower()
    base = [name, f"{name} {city}".strip(), category]
    per_intent = {
        "direct": [f"{name} deals", f"{name} specials", f"{name} offers", f"{name} hours", f"{name} phone"],
        "local": [
            f"{category} near me",
            f"{category} in {city}",
            f"best {category} {city}",
            f"{category} open now",
        ],
        "category": [f"professional {category}", f"{category} services", f"best {category}", f"expert {category}"],
        "branded-local": [f"{name} near me", f"{name} in {city}", f"{name} {city} hours"],
        "service-urgent": [
            f"emergency {category}",
            f"urgent {category}",
            f"immediate {category}",
            f"{category} available now",
            "available right now",
        ],
        "competitive": [
            f"best {category} in {city}",
            f"top {category}",
            f"{category} reviews",
            f"compare {category}",
        ],
    }
    triggers = []
    for trigger in base + per_intent.get(intent_type, []):
        trigger = " ".join(trigger.split())
        if trigger and trigger not in triggers:
            triggers.append(trigger)
    return triggers
