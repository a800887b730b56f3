# app/services/upsert.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..adapters.repos.properties import PropertyRepository
from ..domain.listing import UpstreamListing
from ..domain.mapping import map_listing, slugify
from ..domain.platform_ids import claimable_by, platform_id_variants
from ..models import CatalogProperty, utcnow

log = logging.getLogger(__name__)


@dataclass
class UpsertOutcome:
    property: CatalogProperty
    created: bool


def _slug_suffix() -> str:
    return str(int(time.time() * 1000))[-6:]


async def _free_slug(repo: PropertyRepository, base: str) -> str:
    """base, else base-<suffix>, else base-<suffix>-2, -3, ... until unused."""
    if not await repo.slug_taken(base):
        return base
    stem = f"{base}-{_slug_suffix()}"
    candidate = stem
    n = 1
    while await repo.slug_taken(candidate):
        n += 1
        candidate = f"{stem}-{n}"
    return candidate


async def find_existing(
    repo: PropertyRepository, listing: UpstreamListing, customer_id: str
) -> CatalogProperty | None:
    """
    Lookup order: canonical id, legacy "cust:listing", bare listing id,
    then external id and derived slug (only when claimable).
    """
    listing_id = listing.id or ""
    found = await repo.find_by_any_platform_id(platform_id_variants(customer_id, listing_id))
    if found is not None:
        return found

    by_ext = await repo.find_by_external_id(listing_id)
    if by_ext is not None and claimable_by(by_ext.platform_id, customer_id, listing_id):
        return by_ext

    by_slug = await repo.find_by_slug(slugify(listing.display_name))
    if by_slug is not None and claimable_by(by_slug.platform_id, customer_id, listing_id):
        return by_slug

    return None


async def upsert_listing(
    repo: PropertyRepository,
    listing: UpstreamListing,
    customer_id: str,
    *,
    publish: bool = False,
) -> UpsertOutcome:
    """
    Map and persist one upstream listing. Idempotent: running it twice with
    the same input leaves the same row with the same field values (bar
    updated_at). Raises MappingError for listings with no id; persistence
    errors propagate for the caller to isolate.
    """
    fields = map_listing(listing, customer_id)
    if publish:
        fields["is_published"] = True
        fields["published_at"] = utcnow()

    existing = await find_existing(repo, listing, customer_id)
    if existing is not None:
        await repo.update(existing, fields)
        log.debug("updated property %s from %s", existing.id, fields["platform_id"])
        return UpsertOutcome(property=existing, created=False)

    slug = await _free_slug(repo, slugify(listing.display_name))
    prop = await repo.create({**fields, "slug": slug})
    log.debug("created property %s (%s) from %s", prop.id, slug, fields["platform_id"])
    return UpsertOutcome(property=prop, created=True)
