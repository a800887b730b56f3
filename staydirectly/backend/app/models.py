# app/models.py
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite hands back naive datetimes anyway."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class PlatformType(str, enum.Enum):
    hospitable = "hospitable"
    manual = "manual"


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Models
# -----------------------------
class CatalogProperty(Base):
    """
    A locally persisted rental listing.

    platform_id is "{customerId}/{listingId}" for anything imported from
    Hospitable. Legacy rows may hold "{customerId}:{listingId}" or a bare
    listing id until the next import canonicalizes them.
    """

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)

    name: Mapped[str] = mapped_column(String(255))
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    price: Mapped[float] = mapped_column(Float, default=99.0)
    property_type: Mapped[str] = mapped_column(String(60), default="Apartment")

    # position 0 lives in image_url, positions 1..n in additional_images
    image_url: Mapped[str] = mapped_column(Text, default="")
    additional_images: Mapped[list[str]] = mapped_column(JSON, default=list)

    address: Mapped[str] = mapped_column(String(255), default="")
    city: Mapped[str] = mapped_column(String(120), default="Unknown")
    state: Mapped[str] = mapped_column(String(120), default="")
    country: Mapped[str] = mapped_column(String(120), default="Unknown")
    location: Mapped[str] = mapped_column(String(400), default="")
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    bedrooms: Mapped[int] = mapped_column(Integer, default=1)
    bathrooms: Mapped[float] = mapped_column(Float, default=1.0)
    max_guests: Mapped[int] = mapped_column(Integer, default=2)
    capacity: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    amenities: Mapped[list[Any]] = mapped_column(JSON, default=list)

    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    # soft delete flag; rows are never physically removed
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    meta_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(String(400), nullable=True)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list)

    rules: Mapped[str] = mapped_column(Text, default="")
    check_in_time: Mapped[str] = mapped_column(String(10), default="15:00")
    check_out_time: Mapped[str] = mapped_column(String(10), default="11:00")
    min_nights: Mapped[int] = mapped_column(Integer, default=1)
    max_nights: Mapped[int] = mapped_column(Integer, default=30)

    # provenance
    platform_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    platform_type: Mapped[PlatformType] = mapped_column(Enum(PlatformType), default=PlatformType.manual)
    external_id: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    images_stored_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class JobRun(Base):
    """
    Tracks sync executions (import, publish, scheduled import).
    """
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # store error stack or message
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # {"customer_id": ..., "listing_ids": [...]}
    meta_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)
