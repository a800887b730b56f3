# app/domain/listing.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .parsing import get_first, get_nested, to_float, to_int, to_str


@dataclass(frozen=True)
class RawImage:
    url: str
    thumbnail_url: str | None = None
    caption: str | None = None
    # explicit ordering from upstream ("position" or "order"), if any
    position: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> "RawImage":
        explicit = item.get("position")
        if explicit is None:
            explicit = item.get("order")
        known = {"url", "thumbnail_url", "caption", "position", "order"}
        return cls(
            url=to_str(item.get("url")) or "",
            thumbnail_url=to_str(item.get("thumbnail_url")),
            caption=to_str(item.get("caption")),
            position=to_int(explicit),
            extra={k: v for k, v in item.items() if k not in known},
        )


def raw_images_from(items: Any) -> list[RawImage]:
    if not isinstance(items, list):
        return []
    return [RawImage.from_payload(x) for x in items if isinstance(x, dict)]


def images_embedded_in(details: dict[str, Any]) -> list[RawImage]:
    """
    Listing-details responses carry photos under different keys depending on
    API version: images[], photos[], or a single picture.
    """
    if isinstance(details.get("images"), list):
        return raw_images_from(details["images"])
    if isinstance(details.get("photos"), list):
        return raw_images_from(details["photos"])
    picture = to_str(details.get("picture"))
    if picture:
        return [
            RawImage(
                url=picture,
                thumbnail_url=picture,
                caption=to_str(details.get("public_name")),
                position=0,
            )
        ]
    return []


@dataclass(frozen=True)
class UpstreamListing:
    """
    Read-only view of a Hospitable listing, with the payload's key variants
    already collapsed. Empty strings become None so defaulting can tell
    "missing" from "present".
    """

    id: str | None
    public_name: str | None = None
    private_name: str | None = None
    description: str | None = None
    base_price: float | None = None
    property_type: str | None = None

    picture: str | None = None
    photos: tuple[RawImage, ...] = ()

    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    bedrooms: int | None = None
    bathrooms: float | None = None
    beds: int | None = None
    max_guests: int | None = None
    capacity: dict[str, Any] | None = None
    amenities: tuple[Any, ...] = ()

    house_rules: str | None = None
    min_nights: int | None = None
    max_nights: int | None = None

    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def display_name(self) -> str | None:
        return self.public_name or self.private_name

    @classmethod
    def from_payload(cls, item: dict[str, Any]) -> "UpstreamListing":
        addr = item.get("address")
        street = city = state = country = None
        if isinstance(addr, dict):
            street = to_str(get_first(addr, "street", "display", "line1", "address"))
            city = to_str(addr.get("city"))
            state = to_str(get_first(addr, "state", "region"))
            country = to_str(get_first(addr, "country", "country_code"))
        elif isinstance(addr, str):
            street = to_str(addr)

        lat = get_first(item, "latitude", "lat")
        lon = get_first(item, "longitude", "lng", "lon")
        if lat is None and isinstance(addr, dict):
            lat = get_nested(addr, "coordinates.latitude")
            lon = get_nested(addr, "coordinates.longitude")

        capacity = item.get("capacity") if isinstance(item.get("capacity"), dict) else None

        rules = item.get("house_rules")
        if isinstance(rules, (dict, list)):
            rules = str(rules) if rules else None

        listing_id = get_first(item, "id", "listing_id", "uuid")

        return cls(
            id=to_str(listing_id),
            public_name=to_str(item.get("public_name")),
            private_name=to_str(item.get("private_name")),
            description=to_str(item.get("description")),
            base_price=to_float(get_first(item, "base_price", "price")),
            property_type=to_str(get_first(item, "property_type", "listing_type")),
            picture=to_str(item.get("picture")),
            photos=tuple(raw_images_from(item.get("photos"))),
            address=street,
            city=city or to_str(item.get("city")),
            state=state or to_str(item.get("state")),
            country=country or to_str(item.get("country")),
            latitude=to_float(lat),
            longitude=to_float(lon),
            bedrooms=to_int(item.get("bedrooms")),
            bathrooms=to_float(item.get("bathrooms")),
            beds=to_int(item.get("beds")),
            max_guests=to_int(item.get("max_guests")),
            capacity=capacity,
            amenities=tuple(item.get("amenities") or ()),
            house_rules=to_str(rules),
            min_nights=to_int(item.get("min_nights")),
            max_nights=to_int(item.get("max_nights")),
            raw=dict(item),
        )
