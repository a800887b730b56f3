# app/domain/platform_ids.py
from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import IdentifierFormatError

CANONICAL_SEP = "/"
LEGACY_SEP = ":"

_HEX32 = re.compile(r"^[0-9a-fA-F]{32}$")


@dataclass(frozen=True)
class PropertyIds:
    customer_id: str | None
    listing_id: str | None

    @property
    def complete(self) -> bool:
        return bool(self.customer_id and self.listing_id)


def extract_property_ids(platform_id: str | None) -> PropertyIds:
    """
    "A/B" and "A:B" -> (A, B). Anything without a separator is a legacy bare
    listing id with an unknown customer. More than one separator is not a
    composite id either, so the whole string is treated as the listing id.
    """
    if not platform_id:
        return PropertyIds(customer_id=None, listing_id=None)

    if CANONICAL_SEP in platform_id:
        parts = platform_id.split(CANONICAL_SEP)
    elif LEGACY_SEP in platform_id:
        parts = platform_id.split(LEGACY_SEP)
    else:
        return PropertyIds(customer_id=None, listing_id=platform_id)

    if len(parts) == 2 and parts[0] and parts[1]:
        return PropertyIds(customer_id=parts[0], listing_id=parts[1])

    return PropertyIds(customer_id=None, listing_id=platform_id)


def require_property_ids(platform_id: str | None) -> PropertyIds:
    ids = extract_property_ids(platform_id)
    if not ids.complete:
        raise IdentifierFormatError(platform_id)
    return ids


def canonical_platform_id(customer_id: str, listing_id: str) -> str:
    return f"{customer_id}{CANONICAL_SEP}{listing_id}"


def platform_id_variants(customer_id: str | None, listing_id: str) -> list[str]:
    """Every stored form a (customer, listing) pair may appear under, canonical first."""
    if not customer_id:
        return [listing_id]
    return [
        canonical_platform_id(customer_id, listing_id),
        f"{customer_id}{LEGACY_SEP}{listing_id}",
        listing_id,
    ]


def cache_key(customer_id: str, listing_id: str) -> str:
    return canonical_platform_id(customer_id, listing_id)


def normalize_listing_id(listing_id: str) -> str:
    """Hospitable wants hyphenated UUIDs; some callers hand us the 32-char hex form."""
    if _HEX32.match(listing_id):
        s = listing_id
        return f"{s[0:8]}-{s[8:12]}-{s[12:16]}-{s[16:20]}-{s[20:]}"
    return listing_id


def claimable_by(platform_id: str | None, customer_id: str, listing_id: str) -> bool:
    """
    A row found by external id or slug only belongs to (customer, listing)
    if it is unbound or already bound to that same listing.
    """
    if not platform_id:
        return True
    ids = extract_property_ids(platform_id)
    if ids.listing_id != listing_id:
        return False
    return ids.customer_id in (None, customer_id)
