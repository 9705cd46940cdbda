"""schema.org JSON-LD blocks embedded in every page head."""
from __future__ import annotations

import json
from typing import Any

from ..page_data import PageData
from ..paths import slugify
from .helpers import (
    RenderContext,
    all_faqs,
    business_path,
    category_display,
    item_label,
    text_list,
    update_of,
)

SCHEMA_TYPES = {
    "food-dining": "Restaurant",
    "shopping": "Store",
    "beauty-grooming": "BeautySalon",
    "health-medical": "MedicalBusiness",
    "repairs-services": "AutoRepair",
    "professional-services": "ProfessionalService",
    "activities-entertainment": "EntertainmentBusiness",
    "education-training": "EducationalOrganization",
    "creative-digital": "LocalBusiness",
    "transportation-delivery": "MovingCompany",
}

DAY_NAMES = {
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
}

METERS_PER_MILE = 1609.34
DEFAULT_RADIUS_MILES = 5


def schema_business_type(category: str | None) -> str:
    return SCHEMA_TYPES.get(category or "", "LocalBusiness")


def clean_schema(value: Any) -> Any:
    """Drop None, empty strings, and empty containers at every depth."""
    if isinstance(value, list):
        cleaned = [clean_schema(item) for item in value]
        return [item for item in cleaned if item not in (None, "", [], {})]
    if isinstance(value, dict):
        cleaned = {key: clean_schema(item) for key, item in value.items()}
        return {key: item for key, item in cleaned.items() if item not in (None, "", [], {})}
    return value


def opening_hours(structured_hours: dict) -> list[dict]:
    specs = []
    for day, hours in structured_hours.items():
        if not isinstance(hours, dict) or not hours.get("open") or not hours.get("close"):
            continue
        specs.append(
            {
                "@type": "OpeningHoursSpecification",
                "dayOfWeek": DAY_NAMES.get(str(day).lower(), str(day)),
                "opens": hours["open"],
                "closes": hours["close"],
            }
        )
    return specs


def _business_id(data: PageData, ctx: RenderContext) -> str:
    return f"{ctx.absolute(business_path(data))}#business"


def local_business_schema(data: PageData, ctx: RenderContext) -> dict:
    business = data.business
    update = update_of(data)
    business_type = schema_business_type(business.primary_category)
    location = ", ".join(part for part in (business.address_city, business.address_state) if part)
    has_geo = business.latitude is not None and business.longitude is not None

    schema: dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": business_type,
        "@id": _business_id(data, ctx),
        "name": business.name,
        "description": business.description
        or f"{category_display(business.primary_category)} in {location}".strip(),
        "url": business.website,
        "telephone": business.phone,
        "email": business.email,
        "address": {
            "@type": "PostalAddress",
            "streetAddress": business.address_street,
            "addressLocality": business.address_city,
            "addressRegion": business.address_state,
            "postalCode": business.zip_code,
            "addressCountry": business.country or "US",
        },
        "paymentAccepted": text_list(business.payment_methods) or ["Cash", "Credit Card"],
        "availableLanguage": text_list(business.languages_spoken),
        "accessibilityFeature": text_list(business.accessibility_features),
        "priceRange": business.price_positioning,
        "foundingDate": str(business.established_year) if business.established_year else None,
        "award": [label for label in (item_label(award) for award in business.awards or []) if label][:5],
        "dateModified": ctx.now.isoformat(),
        "speakable": {
            "@type": "SpeakableSpecification",
            "cssSelector": [".voice-summary", ".quick-answer", ".urgent-info", ".ai-context h2"],
        },
    }
    if has_geo:
        schema["geo"] = {
            "@type": "GeoCoordinates",
            "latitude": business.latitude,
            "longitude": business.longitude,
        }
    if business.service_area_details:
        radius = business.service_area_details.get("coverage_radius") or DEFAULT_RADIUS_MILES
        try:
            radius_meters = f"{float(radius) * METERS_PER_MILE:.2f}"
        except (TypeError, ValueError):
            radius_meters = f"{DEFAULT_RADIUS_MILES * METERS_PER_MILE:.2f}"
        area: dict[str, Any] = {"@type": "GeoCircle", "geoRadius": radius_meters}
        if has_geo:
            area["geoMidpoint"] = {
                "@type": "GeoCoordinates",
                "latitude": business.latitude,
                "longitude": business.longitude,
            }
        schema["areaServed"] = area
    if business.structured_hours:
        schema["openingHoursSpecification"] = opening_hours(business.structured_hours)
    services = text_list(business.services)
    if services:
        schema["hasOfferCatalog"] = {
            "@type": "OfferCatalog",
            "name": "Services",
            "itemListElement": [
                {"@type": "Offer", "itemOffered": {"@type": "Service", "name": service}, "position": index}
                for index, service in enumerate(services, start=1)
            ],
        }
    if update.content_text:
        schema["makesOffer"] = {
            "@type": "Offer",
            "name": data.seo.title,
            "description": update.content_text,
            "validFrom": update.created_at,
            "validThrough": update.expires_at,
            "availability": "https://schema.org/InStock",
            "seller": {"@type": business_type, "name": business.name},
        }
    if business.social_media:
        schema["sameAs"] = [str(link) for link in business.social_media.values() if link]
    review = business.review_summary or {}
    if review.get("average_rating"):
        schema["aggregateRating"] = {
            "@type": "AggregateRating",
            "ratingValue": review["average_rating"],
            "reviewCount": review.get("total_reviews"),
            "bestRating": "5",
            "worstRating": "1",
        }
    return clean_schema(schema)


def faq_schema(data: PageData, ctx: RenderContext) -> dict | None:
    faqs = all_faqs(data)
    if not faqs:
        return None
    entities = []
    for faq in faqs:
        entity = {
            "@type": "Question",
            "name": faq["question"],
            "acceptedAnswer": {"@type": "Answer", "text": faq["answer"]},
        }
        triggers = text_list(faq.get("voiceSearchTriggers"))
        if triggers:
            entity["keywords"] = ", ".join(triggers)
        entities.append(entity)
    return clean_schema(
        {
            "@context": "https://schema.org",
            "@type": "FAQPage",
            "@id": f"{ctx.page_url(data)}#faq",
            "mainEntity": entities,
        }
    )


def breadcrumb_schema(data: PageData, ctx: RenderContext) -> dict:
    """Home > state > city > category > business, following the served path hierarchy."""
    business = data.business
    segments = [segment for segment in business_path(data).split("/") if segment]
    crumbs = [("Home", ctx.site_url)]
    if business.address_state and len(segments) >= 2:
        crumbs.append((business.address_state, ctx.absolute("/" + "/".join(segments[:2]))))
    if business.address_city and len(segments) >= 3:
        crumbs.append((business.address_city, ctx.absolute("/" + "/".join(segments[:3]))))
    if business.primary_category:
        crumbs.append(
            (category_display(business.primary_category), ctx.absolute(f"/category/{slugify(business.primary_category)}"))
        )
    crumbs.append((business.name, ctx.absolute(business_path(data))))
    return clean_schema(
        {
            "@context": "https://schema.org",
            "@type": "BreadcrumbList",
            "itemListElement": [
                {"@type": "ListItem", "position": position, "name": name, "item": url}
                for position, (name, url) in enumerate(crumbs, start=1)
                if name
            ],
        }
    )


def webpage_schema(data: PageData, ctx: RenderContext) -> dict:
    business = data.business
    update = update_of(data)
    page_url = ctx.page_url(data)
    links = [ctx.absolute(business_path(data))]
    if business.website:
        links.append(business.website)
    links.extend(str(link) for link in (business.social_media or {}).values() if link)
    return clean_schema(
        {
            "@context": "https://schema.org",
            "@type": "WebPage",
            "@id": page_url,
            "name": data.seo.title,
            "description": data.seo.description,
            "url": page_url,
            "datePublished": update.created_at,
            "dateModified": ctx.now.isoformat(),
            "inLanguage": "en-US",
            "isPartOf": {"@type": "WebSite", "@id": f"{ctx.site_url}#website", "url": ctx.site_url},
            "about": {"@id": _business_id(data, ctx)},
            "mainEntity": {"@id": _business_id(data, ctx)},
            "significantLink": links[:5],
            "speakable": {"@type": "SpeakableSpecification", "cssSelector": [".voice-summary", ".quick-answer"]},
        }
    )


def json_ld(schema: dict) -> str:
    payload = json.dumps(schema, indent=2, ensure_ascii=False)
    # Keep "</script>" inside string values from closing the tag early.
    payload = payload.replace("</", "<\\/")
    return f'<script type="application/ld+json">\n{payload}\n</script>'


def all_schema_markup(data: PageData, ctx: RenderContext) -> str:
    schemas = [
        local_business_schema(data, ctx),
        faq_schema(data, ctx),
        breadcrumb_schema(data, ctx),
        webpage_schema(data, ctx),
    ]
    return "\n".join(json_ld(schema) for schema in schemas if schema)
