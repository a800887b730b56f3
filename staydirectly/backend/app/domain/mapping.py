# app/domain/mapping.py
"""
Upstream listing -> catalog property fields.

Every field is defaulted independently; an upstream value wins whenever it is
present and non-empty. The result is a complete field set: callers replace a
stored property's mapped fields wholesale rather than merging.
"""
from __future__ import annotations

import re
from typing import Any

from ..models import PlatformType
from .errors import MappingError
from .images import normalize_images, split_for_storage
from .listing import RawImage, UpstreamListing
from .parsing import positive_or, to_int
from .platform_ids import canonical_platform_id

DEFAULT_NAME = "Unnamed Property"
DEFAULT_DESCRIPTION = "Beautiful property"
DEFAULT_META_DESCRIPTION = "Book this amazing property directly with the owner"
DEFAULT_PRICE = 99.0
DEFAULT_BEDROOMS = 1
DEFAULT_BATHROOMS = 1.0
DEFAULT_MAX_GUESTS = 2
DEFAULT_MIN_NIGHTS = 1
DEFAULT_MAX_NIGHTS = 30
DEFAULT_PLACE = "Unknown"
DEFAULT_PROPERTY_TYPE = "Apartment"
DEFAULT_CHECK_IN = "15:00"
DEFAULT_CHECK_OUT = "11:00"
META_DESCRIPTION_LEN = 160

_NON_WORD = re.compile(r"[^\w\s-]")
_SPACES = re.compile(r"\s+")


def slugify(text: str | None) -> str:
    slug = _SPACES.sub("-", _NON_WORD.sub("", (text or "").lower()).strip())
    return slug or "property"


def location_label(*parts: str | None) -> str:
    return ", ".join(p.strip() for p in parts if p and p.strip())


def _count(value: Any, default: int) -> int:
    v = to_int(value)
    return v if v else default


def _capacity(listing: UpstreamListing) -> dict[str, Any] | None:
    cap = listing.capacity
    if not cap:
        return None
    return {
        "max": _count(cap.get("max"), _count(listing.max_guests, DEFAULT_MAX_GUESTS)),
        "beds": _count(cap.get("beds"), _count(listing.beds, 1)),
        "bedrooms": _count(cap.get("bedrooms"), _count(listing.bedrooms, DEFAULT_BEDROOMS)),
        "bathrooms": positive_or(cap.get("bathrooms"), positive_or(listing.bathrooms, DEFAULT_BATHROOMS)),
    }


def listing_photos(listing: UpstreamListing) -> list[RawImage]:
    if listing.photos:
        return list(listing.photos)
    if listing.picture:
        return [RawImage(url=listing.picture, position=0)]
    return []


def map_listing(listing: UpstreamListing, customer_id: str) -> dict[str, Any]:
    """
    Image fields are only part of the result when the listing itself carries
    photos; otherwise a re-import would wipe images stored by ingestion.
    """
    if not listing.id:
        raise MappingError("upstream listing has no id")

    name = listing.private_name or listing.public_name or DEFAULT_NAME
    title = listing.public_name or listing.private_name or DEFAULT_NAME
    description = listing.description or DEFAULT_DESCRIPTION
    property_type = listing.property_type or DEFAULT_PROPERTY_TYPE
    city = listing.city or DEFAULT_PLACE

    fields: dict[str, Any] = {
        "name": name,
        "title": title,
        "description": description,
        "price": positive_or(listing.base_price, DEFAULT_PRICE),
        "property_type": property_type,
        "address": listing.address or "",
        "city": city,
        "state": listing.state or "",
        "country": listing.country or DEFAULT_PLACE,
        # built from what upstream actually said, not the defaults
        "location": location_label(listing.city, listing.state, listing.country),
        "latitude": listing.latitude,
        "longitude": listing.longitude,
        "bedrooms": _count(listing.bedrooms, DEFAULT_BEDROOMS),
        "bathrooms": positive_or(listing.bathrooms, DEFAULT_BATHROOMS),
        "max_guests": _count(listing.max_guests, DEFAULT_MAX_GUESTS),
        "capacity": _capacity(listing),
        "amenities": list(listing.amenities),
        "is_featured": True,
        "is_active": True,
        "is_verified": True,
        "meta_title": listing.display_name or DEFAULT_NAME,
        "meta_description": (listing.description or "")[:META_DESCRIPTION_LEN] or DEFAULT_META_DESCRIPTION,
        "keywords": [k for k in ("vacation rental", "direct booking", listing.city, listing.property_type) if k],
        "rules": listing.house_rules or "",
        "check_in_time": DEFAULT_CHECK_IN,
        "check_out_time": DEFAULT_CHECK_OUT,
        "min_nights": _count(listing.min_nights, DEFAULT_MIN_NIGHTS),
        "max_nights": _count(listing.max_nights, DEFAULT_MAX_NIGHTS),
        "platform_id": canonical_platform_id(customer_id, listing.id),
        "platform_type": PlatformType.hospitable,
        "external_id": listing.id,
    }

    photos = listing_photos(listing)
    if photos:
        image_url, additional = split_for_storage(normalize_images(photos))
        if image_url:
            fields["image_url"] = image_url
            fields["additional_images"] = additional

    return fields
