from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import JobRunStatus, PlatformType


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------------
# Requests
# -------------------------
# Required fields are Optional here so the routers can answer 400 (not 422) with a useful message.


class ImportListingsRequest(ApiModel):
    customer_id: str | None = None


class PublishPropertiesRequest(ApiModel):
    customer_id: str | None = None
    listing_ids: list[str] | None = None


class FetchPropertyImagesRequest(ApiModel):
    property_id: int | None = None
    platform_id: str | None = None


class ConnectRequest(ApiModel):
    customer_id: str | None = None
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    timezone: str | None = None
    redirect_url: str | None = None


class AuthCodeRequest(ApiModel):
    customer_id: str | None = None
    redirect_url: str | None = None


# -------------------------
# Responses
# -------------------------


class PropertyOut(ApiModel):
    id: int
    slug: str
    name: str
    title: str
    description: str
    price: float
    property_type: str

    image_url: str
    additional_images: list[str] = Field(default_factory=list)

    address: str
    city: str
    state: str
    country: str
    location: str
    latitude: float | None = None
    longitude: float | None = None

    bedrooms: int
    bathrooms: float
    max_guests: int
    capacity: dict[str, Any] | None = None
    amenities: list[Any] = Field(default_factory=list)

    is_featured: bool
    is_verified: bool
    is_active: bool
    is_published: bool
    published_at: datetime | None = None

    meta_title: str | None = None
    meta_description: str | None = None
    keywords: list[str] = Field(default_factory=list)

    rules: str
    check_in_time: str
    check_out_time: str
    min_nights: int
    max_nights: int

    platform_id: str | None = None
    platform_type: PlatformType
    external_id: str | None = None
    images_stored_at: datetime | None = None

    created_at: datetime
    updated_at: datetime


class PropertyPage(ApiModel):
    items: list[PropertyOut]
    total: int
    limit: int
    offset: int


class ImageOut(ApiModel):
    url: str
    thumbnail_url: str
    caption: str | None = None
    position: int


class PropertyImagesResponse(ApiModel):
    data: list[ImageOut]
    source: str
    cached: bool = False
    rate_limited: bool = False
    fallback: bool = False


class FetchPropertyImagesResponse(ApiModel):
    success: bool
    image_count: int
    property: PropertyOut


class SyncItemOut(ApiModel):
    listing_id: str | None = None
    state: str
    property_id: int | None = None
    image_count: int = 0
    error: str | None = None


class JobRunOut(ApiModel):
    id: int
    job_name: str
    status: JobRunStatus
    started_at: datetime
    finished_at: datetime | None = None
    error: str | None = None
    summary_json: str | None = None
