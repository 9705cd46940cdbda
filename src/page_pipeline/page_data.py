"""Typed page data carried by every generated page.

Field aliases are the compact storage keys used by :mod:`page_pipeline.codec`. Renaming an alias
breaks every stored payload, so treat them as a schema.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class IntentType(str, Enum):
    DIRECT = "direct"
    LOCAL = "local"
    CATEGORY = "category"
    BRANDED_LOCAL = "branded-local"
    SERVICE_URGENT = "service-urgent"
    COMPETITIVE = "competitive"


ALL_INTENTS = tuple(intent.value for intent in IntentType)


class _Compact(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BusinessData(_Compact):
    name: Optional[str] = Field(default=None, alias="n")
    address_city: Optional[str] = Field(default=None, alias="c")
    address_state: Optional[str] = Field(default=None, alias="s")
    address_street: Optional[str] = Field(default=None, alias="st")
    zip_code: Optional[str] = Field(default=None, alias="z")
    country: Optional[str] = Field(default=None, alias="country")
    phone: Optional[str] = Field(default=None, alias="p")
    phone_country_code: Optional[str] = Field(default=None, alias="pcc")
    email: Optional[str] = Field(default=None, alias="e")
    website: Optional[str] = Field(default=None, alias="w")
    description: Optional[str] = Field(default=None, alias="d")
    primary_category: Optional[str] = Field(default=None, alias="cat")
    services: Optional[list[Any]] = Field(default=None, alias="srv")
    specialties: Optional[list[Any]] = Field(default=None, alias="sp")
    hours: Optional[str] = Field(default=None, alias="h")
    structured_hours: Optional[dict[str, Any]] = Field(default=None, alias="sh")
    price_positioning: Optional[str] = Field(default=None, alias="pr")
    payment_methods: Optional[list[Any]] = Field(default=None, alias="pm")
    service_area: Optional[str] = Field(default=None, alias="sa")
    service_area_details: Optional[dict[str, Any]] = Field(default=None, alias="sad")
    awards: Optional[list[Any]] = Field(default=None, alias="aw")
    certifications: Optional[list[Any]] = Field(default=None, alias="cert")
    latitude: Optional[float] = Field(default=None, alias="lat")
    longitude: Optional[float] = Field(default=None, alias="lng")
    languages_spoken: Optional[list[Any]] = Field(default=None, alias="lang")
    accessibility_features: Optional[list[Any]] = Field(default=None, alias="acc")
    parking_info: Optional[str] = Field(default=None, alias="park")
    enhanced_parking_info: Optional[dict[str, Any]] = Field(default=None, alias="epark")
    review_summary: Optional[dict[str, Any]] = Field(default=None, alias="rev")
    status_override: Optional[str] = Field(default=None, alias="stat")
    business_faqs: Optional[list[Any]] = Field(default=None, alias="faqs")
    featured_items: Optional[list[Any]] = Field(default=None, alias="feat")
    social_media: Optional[dict[str, Any]] = Field(default=None, alias="social")
    established_year: Optional[int] = Field(default=None, alias="est")

    @classmethod
    def from_record(cls, record: Any) -> "BusinessData":
        return cls(**{name: getattr(record, name, None) for name in cls.model_fields})


class UpdateData(_Compact):
    content_text: Optional[str] = Field(default=None, alias="t")
    created_at: Optional[str] = Field(default=None, alias="ca")
    expires_at: Optional[str] = Field(default=None, alias="ea")
    special_hours_today: Optional[Any] = Field(default=None, alias="sh")
    deal_terms: Optional[str] = Field(default=None, alias="dt")
    update_category: Optional[str] = Field(default=None, alias="cat")
    update_faqs: Optional[list[Any]] = Field(default=None, alias="faqs")

    @classmethod
    def from_record(cls, record: Any) -> "UpdateData":
        values = {}
        for name in cls.model_fields:
            value = getattr(record, name, None)
            if isinstance(value, datetime):
                value = value.isoformat()
            values[name] = value
        return cls(**values)


class SeoData(_Compact):
    title: str = ""
    description: str = ""


class IntentData(_Compact):
    type: str
    file_path: str = Field(alias="filePath")
    slug: str
    page_variant: Optional[str] = Field(default=None, alias="pageVariant")


class PageData(_Compact):
    business: BusinessData = Field(default_factory=BusinessData, alias="b")
    update: Optional[UpdateData] = Field(default=None, alias="u")
    seo: SeoData = Field(default_factory=SeoData, alias="seo")
    intent: Optional[IntentData] = Field(default=None, alias="i")
    faqs: Optional[list[Any]] = Field(default=None, alias="f")
