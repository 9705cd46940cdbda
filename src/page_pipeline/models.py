from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .db import Base, JSONType, UTCDateTime, utc_now

UPDATE_CATEGORIES = ("general", "special", "hours", "event", "new_service", "closure")
TERMINAL_UPDATE_STATUSES = ("published", "failed")


class Business(Base):
    __tablename__ = "businesses"
    __table_args__ = (
        Index("businesses_owner_email_idx", "owner_email"),
        Index("businesses_city_state_idx", "address_city", "address_state"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_email: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    primary_category: Mapped[Optional[str]] = mapped_column(Text)
    established_year: Mapped[Optional[int]] = mapped_column(Integer)

    address_street: Mapped[Optional[str]] = mapped_column(Text)
    address_city: Mapped[Optional[str]] = mapped_column(Text)
    address_state: Mapped[Optional[str]] = mapped_column(Text)
    zip_code: Mapped[Optional[str]] = mapped_column(Text)
    country: Mapped[Optional[str]] = mapped_column(Text)
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)

    phone: Mapped[Optional[str]] = mapped_column(Text)
    phone_country_code: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)
    website: Mapped[Optional[str]] = mapped_column(Text)

    description: Mapped[Optional[str]] = mapped_column(Text)
    hours: Mapped[Optional[str]] = mapped_column(Text)
    structured_hours: Mapped[Optional[dict]] = mapped_column(JSONType)
    services: Mapped[Optional[list]] = mapped_column(JSONType)
    specialties: Mapped[Optional[list]] = mapped_column(JSONType)
    payment_methods: Mapped[Optional[list]] = mapped_column(JSONType)
    languages_spoken: Mapped[Optional[list]] = mapped_column(JSONType)
    accessibility_features: Mapped[Optional[list]] = mapped_column(JSONType)
    business_faqs: Mapped[Optional[list]] = mapped_column(JSONType)
    featured_items: Mapped[Optional[list]] = mapped_column(JSONType)
    social_media: Mapped[Optional[dict]] = mapped_column(JSONType)
    awards: Mapped[Optional[list]] = mapped_column(JSONType)
    certifications: Mapped[Optional[list]] = mapped_column(JSONType)
    review_summary: Mapped[Optional[dict]] = mapped_column(JSONType)
    parking_info: Mapped[Optional[str]] = mapped_column(Text)
    enhanced_parking_info: Mapped[Optional[dict]] = mapped_column(JSONType)
    price_positioning: Mapped[Optional[str]] = mapped_column(Text)
    service_area: Mapped[Optional[str]] = mapped_column(Text)
    service_area_details: Mapped[Optional[dict]] = mapped_column(JSONType)
    status_override: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utc_now, server_default=func.now(), onupdate=utc_now
    )

    updates: Mapped[list[Update]] = relationship("Update", back_populates="business", cascade="all, delete-orphan")
    pages: Mapped[list[GeneratedPage]] = relationship(
        "GeneratedPage", back_populates="business", cascade="all, delete-orphan"
    )


class Update(Base):
    __tablename__ = "updates"
    __table_args__ = (
        Index("updates_business_idx", "business_id"),
        Index("updates_status_idx", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    content_text: Mapped[str] = mapped_column(Text, nullable=False)
    deal_terms: Mapped[Optional[str]] = mapped_column(Text)
    special_hours_today: Mapped[Optional[dict]] = mapped_column(JSONType)
    update_category: Mapped[str] = mapped_column(Text, nullable=False, default="general", server_default="general")
    update_faqs: Mapped[Optional[list]] = mapped_column(JSONType)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft", server_default="draft")
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now, server_default=func.now())

    business: Mapped[Business] = relationship("Business", back_populates="updates")
    pages: Mapped[list[GeneratedPage]] = relationship(
        "GeneratedPage", back_populates="update", cascade="all, delete-orphan"
    )


class GeneratedPage(Base):
    __tablename__ = "generated_pages"
    __table_args__ = (
        UniqueConstraint("update_id", "intent_type", name="generated_pages_update_intent_uidx"),
        CheckConstraint(
            "expires_at IS NULL OR expires_at >= created_at", name="generated_pages_expiry_after_creation_chk"
        ),
        Index(
            "generated_pages_live_file_path_uidx",
            "file_path",
            unique=True,
            postgresql_where=text("published = true AND expired = false"),
            sqlite_where=text("published = 1 AND expired = 0"),
        ),
        Index("generated_pages_batch_idx", "generation_batch_id"),
        Index("generated_pages_file_path_idx", "file_path"),
        Index("generated_pages_expiry_idx", "expired", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    update_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("updates.id", ondelete="CASCADE"), nullable=False
    )
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    intent_type: Mapped[str] = mapped_column(Text, nullable=False)
    page_variant: Mapped[Optional[str]] = mapped_column(Text)
    page_data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    rendered_size_kb: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    generation_batch_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utc_now, server_default=func.now(), onupdate=utc_now
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    published_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    expired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    business: Mapped[Business] = relationship("Business", back_populates="pages")
    update: Mapped[Update] = relationship("Update", back_populates="pages")


class JobRun(Base):
    __tablename__ = "job_runs"
    __table_args__ = (
        Index("job_runs_name_status_idx", "job_name", "status"),
        Index("job_runs_started_at_idx", "started_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_name: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now, server_default=func.now())
    finished_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    details: Mapped[Optional[dict]] = mapped_column(JSONType)
    error: Mapped[Optional[str]] = mapped_column(Text)
