"""The six intent variants of an update page.

Every variant shares the same document skeleton (head metadata, JSON-LD, speakable blocks,
details and FAQ sections) and differs only in its heading and the sections that carry its
emphasis. ``IntentRenderer.render`` owns the skeleton; subclasses fill in ``heading`` and
``sections``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..errors import ValidationError
from ..page_data import IntentType, PageData
from .helpers import (
    RenderContext,
    attr,
    category_display,
    closing_time,
    esc,
    format_date,
    is_open_now,
    join_lines,
    location_label,
    make_context,
    render_ai_context_block,
    render_availability_status,
    render_business_contact,
    render_business_details,
    render_faq_section,
    render_if,
    render_item_list,
    render_meta_tags,
    render_open_graph_tags,
    render_speakable_content,
    render_update_block,
    text_list,
    update_of,
    urgency_level,
)
from .schema import all_schema_markup
from .voice import format_phone_number, render_speakable_markup, voice_triggers


class IntentRenderer:
    intent: IntentType
    itemtype = "https://schema.org/LocalBusiness"
    body_class = ""

    def render(self, data: PageData, ctx: RenderContext) -> str:
        body_class = f' class="{self.body_class}"' if self.body_class else ""
        return join_lines(
            [
                "<!DOCTYPE html>",
                f'<html lang="en" itemscope itemtype="{self.itemtype}">',
                "<head>",
                render_meta_tags(data, ctx),
                render_open_graph_tags(data, ctx),
                all_schema_markup(data, ctx),
                f'<meta name="voice-search-triggers" content="{attr(", ".join(voice_triggers(data, self.intent.value)))}">',
                self.head_extras(data, ctx),
                "</head>",
                f"<body{body_class}>",
                render_speakable_content(data, ctx),
                f"<h1>{esc(self.heading(data, ctx))}</h1>",
                *self.sections(data, ctx),
                render_faq_section(data),
                render_speakable_markup(data, ctx),
                "</body>",
                "</html>",
            ]
        )

    def head_extras(self, data: PageData, ctx: RenderContext) -> str:
        return ""

    def heading(self, data: PageData, ctx: RenderContext) -> str:
        raise NotImplementedError

    def sections(self, data: PageData, ctx: RenderContext) -> list[str]:
        raise NotImplementedError


class DirectRenderer(IntentRenderer):
    """Exact business-name queries: brand authority first, then a direct contact call to action."""

    intent = IntentType.DIRECT

    def heading(self, data, ctx):
        return f"{data.business.name or ''}: {data.seo.title}"

    def sections(self, data, ctx):
        business = data.business
        contact = [
            render_if(
                business.phone,
                lambda: f'  <div class="phone-cta"><a href="tel:{attr(business.phone)}" class="primary-cta">'
                f"Call Now: {esc(format_phone_number(business.phone, business.phone_country_code))}</a></div>",
            ),
            render_if(
                business.website,
                lambda: f'  <div class="website-cta"><a href="{attr(business.website)}" class="secondary-cta" '
                f'rel="noopener">Visit Website</a></div>',
            ),
        ]
        return [
            render_availability_status(data, ctx),
            join_lines(
                [
                    '<section class="brand-authority">',
                    f"  <h2>About {esc(business.name)}</h2>",
                    f"  <p><strong>Business:</strong> {esc(business.name)}</p>",
                    f"  <p><strong>Location:</strong> {esc(location_label(business))}</p>",
                    f"  <p><strong>Category:</strong> {esc(category_display(business.primary_category))}</p>",
                    render_if(
                        business.established_year,
                        lambda: f"  <p><strong>Established:</strong> {esc(business.established_year)}</p>",
                    ),
                    "</section>",
                ]
            ),
            render_update_block(data, "current-update", f"Latest from {business.name or ''}", "Posted", "Valid Until"),
            render_ai_context_block(data, ctx),
            render_if(
                any(contact),
                lambda: join_lines(
                    [
                        '<section class="direct-contact-cta">',
                        f"  <h2>Contact {esc(business.name)} Directly</h2>",
                        *contact,
                        "</section>",
                    ]
                ),
            ),
            render_business_contact(data),
            render_business_details(data),
        ]


class LocalRenderer(IntentRenderer):
    """"Near me" discovery: category plus city framing, proximity, and coverage."""

    intent = IntentType.LOCAL

    def head_extras(self, data, ctx):
        category = category_display(data.business.primary_category).lower()
        city = data.business.address_city or ""
        return f'<meta name="local-keywords" content="{attr(f"{category} near me, {city} {category}".strip())}">'

    def heading(self, data, ctx):
        category = category_display(data.business.primary_category)
        return f"{category} Near You in {location_label(data.business)}"

    def sections(self, data, ctx):
        business = data.business
        category = category_display(business.primary_category)
        details = business.service_area_details or {}
        extra_cities = text_list(details.get("additional_cities"))
        open_line = (
            f'<p class="open-indicator"><strong>Open Now</strong> until {esc(closing_time(data, ctx.now))}</p>'
            if is_open_now(data, ctx.now)
            else '<p class="closed-indicator">Currently Closed</p>'
        )
        return [
            join_lines(
                [
                    '<section class="local-discovery">',
                    f"  <h2>Local {esc(category)} Available Now</h2>",
                    '  <div class="business-card">',
                    f"    <h3>{esc(business.name)}</h3>",
                    f"    <p><strong>Location:</strong> {esc(location_label(business))}</p>",
                    render_if(business.service_area, lambda: f"    <p><strong>Serves:</strong> {esc(business.service_area)}</p>"),
                    render_if(
                        business.latitude is not None and business.longitude is not None,
                        lambda: f"    <p><strong>Coordinates:</strong> {esc(business.latitude)}, {esc(business.longitude)}</p>",
                    ),
                    "  </div>",
                    "</section>",
                ]
            ),
            render_availability_status(data, ctx),
            render_update_block(
                data,
                "local-update",
                "Current Local Update",
                "Updated",
                "Local Offer Valid Until",
                note=f"Available in the {business.address_city} area" if business.address_city else "",
            ),
            render_ai_context_block(data, ctx),
            join_lines(
                [
                    '<section class="area-context">',
                    f"  <h2>Local {esc(category)} Service</h2>",
                    f"  <p><strong>Primary Service Area:</strong> {esc(location_label(business))}</p>",
                    render_if(
                        details,
                        lambda: f"  <p><strong>Coverage Radius:</strong> {esc(details.get('coverage_radius') or 5)} miles</p>",
                    ),
                    render_if(extra_cities, lambda: f"  <p><strong>Also Serves:</strong> {esc(', '.join(extra_cities))}</p>"),
                    render_if(
                        business.phone,
                        lambda: f'  <p><strong>Call Local:</strong> <a href="tel:{attr(business.phone)}">{esc(business.phone)}</a></p>',
                    ),
                    f"  {open_line}",
                    "</section>",
                ]
            ),
            render_business_details(data),
        ]


class CategoryRenderer(IntentRenderer):
    """Frames the business inside its category: specializations, services, credentials."""

    intent = IntentType.CATEGORY
    itemtype = "https://schema.org/ProfessionalService"

    def head_extras(self, data, ctx):
        category = category_display(data.business.primary_category).lower()
        return f'<meta name="service-keywords" content="{attr(f"professional {category}, expert {category}")}">'

    def heading(self, data, ctx):
        return f"Professional {category_display(data.business.primary_category)} Services"

    def sections(self, data, ctx):
        business = data.business
        category = category_display(business.primary_category)
        specialties = text_list(business.specialties)
        services = text_list(business.services)
        return [
            join_lines(
                [
                    '<section class="service-authority">',
                    f"  <h2>Expert {esc(category)} Provider</h2>",
                    f"  <h3>{esc(business.name)}</h3>",
                    f"  <p><strong>Specialization:</strong> {esc(category)}</p>",
                    f"  <p><strong>Service Area:</strong> {esc(business.service_area or location_label(business))}</p>",
                    render_if(
                        business.established_year,
                        lambda: f"  <p><strong>Experience Since:</strong> {esc(business.established_year)}</p>",
                    ),
                    "</section>",
                ]
            ),
            render_availability_status(data, ctx),
            render_update_block(
                data, "service-update", "Current Service Update", "Service Update Posted", "Service Offer Valid Through"
            ),
            render_ai_context_block(data, ctx),
            render_if(
                specialties,
                lambda: join_lines(
                    [
                        '<section class="specializations">',
                        "  <h2>Our Professional Specializations</h2>",
                        '  <ul class="specialty-list">',
                        *[f"    <li><strong>{esc(item)}</strong></li>" for item in specialties],
                        "  </ul>",
                        "</section>",
                    ]
                ),
            ),
            render_if(
                services,
                lambda: join_lines(
                    [
                        '<section class="services-offered">',
                        "  <h2>Professional Services Offered</h2>",
                        *[
                            f'  <div class="service-item"><h3>{esc(item)}</h3>'
                            f"<p>Professional {esc(item.lower())} services available</p></div>"
                            for item in services
                        ],
                        "</section>",
                    ]
                ),
            ),
            render_item_list("Awards & Recognition", "professional-recognition", business.awards or []),
            render_item_list(
                "Professional Certifications", "certifications", business.certifications or [], detail_key="issuer"
            ),
            render_business_details(data),
        ]


class BrandedLocalRenderer(IntentRenderer):
    """Brand plus locality: "{name} {city}" queries."""

    intent = IntentType.BRANDED_LOCAL

    def head_extras(self, data, ctx):
        branded = " ".join(part for part in (data.business.name, data.business.address_city) if part)
        return f'<meta name="branded-local" content="{attr(branded)}">'

    def heading(self, data, ctx):
        return f"{data.business.name or ''} - {location_label(data.business)}"

    def sections(self, data, ctx):
        business = data.business
        city = business.address_city or ""
        street = f"{business.address_street}, " if business.address_street else ""
        zip_code = f" {business.zip_code}" if business.zip_code else ""
        return [
            join_lines(
                [
                    '<section class="local-brand-presence">',
                    f"  <h2>{esc(business.name)} Local Presence</h2>",
                    f"  <p><strong>Local Business:</strong> {esc(business.name)}</p>",
                    f"  <p><strong>Proudly Serving:</strong> {esc(business.service_area or f'{city} and surrounding areas')}</p>",
                    f"  <p><strong>Located In:</strong> {esc(location_label(business))}</p>",
                    render_if(
                        business.established_year,
                        lambda: f"  <p><strong>Local Since:</strong> {esc(business.established_year)}</p>",
                    ),
                    "</section>",
                ]
            ),
            render_availability_status(data, ctx),
            render_update_block(
                data,
                "branded-local-update",
                f"Latest from {business.name or ''}",
                "Posted",
                "Valid Through",
                note=f"Available at our {city} location" if city else "",
            ),
            render_ai_context_block(data, ctx),
            join_lines(
                [
                    '<section class="local-brand-details">',
                    f"  <h2>About This {esc(business.name)} Location</h2>",
                    f"  <p><strong>Address:</strong> {esc(street + location_label(business) + zip_code)}</p>",
                    f"  <p><strong>Local Service Area:</strong> {esc(business.service_area or f'{city} metropolitan area')}</p>",
                    render_if(
                        business.phone,
                        lambda: f'  <p><strong>Local Phone:</strong> <a href="tel:{attr(business.phone)}">{esc(business.phone)}</a></p>',
                    ),
                    render_if(
                        business.website,
                        lambda: f'  <p><strong>Official Website:</strong> <a href="{attr(business.website)}" rel="noopener">'
                        f"{esc(business.website)}</a></p>",
                    ),
                    "</section>",
                ]
            ),
            render_business_details(data),
        ]


class ServiceUrgentRenderer(IntentRenderer):
    """Time-sensitive availability: open-now banner and deal expiry up front."""

    intent = IntentType.SERVICE_URGENT
    body_class = "urgent-service"

    def head_extras(self, data, ctx):
        return join_lines(
            [
                f'<meta name="urgency-level" content="{urgency_level(data, ctx.now)}">',
                f'<meta name="immediate-availability" content="{"true" if is_open_now(data, ctx.now) else "false"}">',
            ]
        )

    def heading(self, data, ctx):
        return f"Immediate {category_display(data.business.primary_category)} Available"

    def sections(self, data, ctx):
        business = data.business
        update = update_of(data)
        category = category_display(business.primary_category)
        urgency = urgency_level(data, ctx.now)
        open_now = is_open_now(data, ctx.now)
        if open_now:
            banner = [
                '  <div class="available-now">',
                "    <h2>AVAILABLE RIGHT NOW</h2>",
                f"    <p><strong>Service Provider:</strong> {esc(business.name)}</p>",
                f"    <p><strong>Available In:</strong> {esc(location_label(business))}</p>",
                f"    <p><strong>Open Until:</strong> {esc(closing_time(data, ctx.now))}</p>",
                "  </div>",
            ]
        else:
            banner = [
                '  <div class="urgent-but-closed">',
                "    <h2>URGENT SERVICE PROVIDER</h2>",
                f"    <p><strong>Service Provider:</strong> {esc(business.name)}</p>",
                f"    <p><strong>Location:</strong> {esc(location_label(business))}</p>",
                "    <p><strong>Status:</strong> Currently closed - call for emergency service</p>",
                "  </div>",
            ]
        expiry = format_date(update.expires_at)
        services = text_list(business.services)[:5]
        return [
            join_lines(['<section class="urgent-availability-banner">', *banner, "</section>"]),
            join_lines(
                [
                    '<section class="immediate-action">',
                    "  <h2>Take Immediate Action</h2>",
                    f'  <p class="urgent-content">{esc(update.content_text)}</p>',
                    render_if(update.deal_terms, lambda: f'  <p class="deal-terms"><strong>Terms:</strong> {esc(update.deal_terms)}</p>'),
                    render_if(
                        expiry,
                        lambda: join_lines(
                            [
                                '  <div class="expiration-warning">',
                                f"    <p><strong>Available Until:</strong> {esc(expiry)}</p>",
                                render_if(urgency == "high", lambda: '    <p class="urgent-warning">LIMITED TIME - EXPIRES SOON!</p>'),
                                "  </div>",
                            ]
                        ),
                    ),
                    "</section>",
                ]
            ),
            join_lines(
                [
                    '<section class="emergency-contact">',
                    "  <h2>Contact for Immediate Service</h2>",
                    render_if(
                        business.phone,
                        lambda: f'  <a href="tel:{attr(business.phone)}" class="emergency-call-button">CALL NOW: {esc(business.phone)}</a>',
                    ),
                    f"  <p><strong>Service Area:</strong> {esc(business.service_area or location_label(business))}</p>",
                    "  <p><strong>Response Time:</strong> Contact for immediate availability</p>",
                    "</section>",
                ]
            ),
            render_ai_context_block(data, ctx),
            join_lines(
                [
                    '<section class="urgent-capabilities">',
                    f"  <h2>Immediate {esc(category)} Service</h2>",
                    f"  <p><strong>Service Type:</strong> {'Emergency' if urgency == 'high' else 'Urgent'} {esc(category)}</p>",
                    f"  <p><strong>Availability:</strong> {'Available Now' if open_now else 'Call for Emergency Service'}</p>",
                    f"  <p><strong>Coverage Area:</strong> {esc(location_label(business))}</p>",
                    render_if(
                        services,
                        lambda: join_lines(
                            [
                                "  <h3>Available Services</h3>",
                                "  <ul>",
                                *[f"    <li>{esc(item)} - Available for urgent requests</li>" for item in services],
                                "  </ul>",
                            ]
                        ),
                    ),
                    "</section>",
                ]
            ),
        ]


class CompetitiveRenderer(IntentRenderer):
    """Differentiation claims: rating, awards, certifications, market position."""

    intent = IntentType.COMPETITIVE
    body_class = "competitive-leader"

    def head_extras(self, data, ctx):
        category = category_display(data.business.primary_category).lower()
        return f'<meta name="competitive-positioning" content="{attr(f"market-leader {category}")}">'

    def heading(self, data, ctx):
        return f"Leading {category_display(data.business.primary_category)} Provider - {data.business.name or ''}"

    def sections(self, data, ctx):
        business = data.business
        category = category_display(business.primary_category)
        review = business.review_summary or {}
        years = None
        if business.established_year:
            years = max(ctx.now.year - business.established_year, 0)
        rating = ""
        if review.get("average_rating"):
            total = review.get("total_reviews")
            rating = f"{review['average_rating']}/5 stars" + (f" ({total} reviews)" if total else "")
        specialties = text_list(business.specialties)
        return [
            join_lines(
                [
                    '<section class="market-leadership">',
                    f"  <h2>Why Choose {esc(business.name)}?</h2>",
                    f"  <p><strong>Leading {esc(category)} in:</strong> {esc(location_label(business))}</p>",
                    render_if(years, lambda: f"  <p><strong>Market Experience:</strong> {years}+ years</p>"),
                    render_if(rating, lambda: f"  <p><strong>Customer Rating:</strong> {esc(rating)}</p>"),
                    "</section>",
                ]
            ),
            render_availability_status(data, ctx),
            render_update_block(
                data, "competitive-advantage", "Latest Competitive Advantage", "Market Update", "Competitive Offer Until"
            ),
            render_ai_context_block(data, ctx),
            render_item_list(
                "Awards & Industry Recognition", "awards-recognition", business.awards or [],
                detail_key="issuer", detail_label="Issued By: ",
            ),
            render_item_list(
                "Professional Certifications & Credentials", "professional-certifications",
                business.certifications or [], detail_key="issuer", detail_label="Certified By: ",
            ),
            render_if(
                specialties,
                lambda: join_lines(
                    [
                        '<section class="competitive-specializations">',
                        "  <h2>Market-Leading Specializations</h2>",
                        *[
                            f'  <div class="specialty-advantage"><h3>{esc(item)}</h3>'
                            f"<p>Industry-leading expertise in {esc(item.lower())}</p></div>"
                            for item in specialties
                        ],
                        "</section>",
                    ]
                ),
            ),
            join_lines(
                [
                    '<section class="competitive-comparison">',
                    f"  <h2>Market Leadership in {esc(business.address_city)}</h2>",
                    "  <ul>",
                    f"    <li><strong>Industry:</strong> {esc(category)}</li>",
                    f"    <li><strong>Market:</strong> Leading provider in {esc(location_label(business))}</li>",
                    render_if(
                        business.price_positioning,
                        lambda: f"    <li><strong>Value Position:</strong> {esc(business.price_positioning)}</li>",
                    ),
                    "  </ul>",
                    "</section>",
                ]
            ),
            render_business_details(data),
        ]


RENDERERS: dict[str, IntentRenderer] = {
    renderer.intent.value: renderer
    for renderer in (
        DirectRenderer(),
        LocalRenderer(),
        CategoryRenderer(),
        BrandedLocalRenderer(),
        ServiceUrgentRenderer(),
        CompetitiveRenderer(),
    )
}


def render(
    intent_type: str,
    page_data: PageData,
    *,
    now: Optional[datetime] = None,
    site_url: Optional[str] = None,
) -> str:
    renderer = RENDERERS.get(str(getattr(intent_type, "value", intent_type)))
    if renderer is None:
        raise ValidationError(f"Unknown intent type: {intent_type}")
    return renderer.render(page_data, make_context(now, site_url))
