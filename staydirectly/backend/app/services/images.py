# app/services/images.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..adapters.clients.hospitable import HospitableClient
from ..adapters.repos.properties import PropertyRepository
from ..domain.errors import Throttled, UpstreamNotFound, UpstreamRateLimited
from ..domain.images import (
    NormalizedImage,
    fallback_images,
    images_from_property,
    normalize_images,
    pick_position,
    split_for_storage,
)
from ..domain.platform_ids import cache_key, claimable_by, extract_property_ids, platform_id_variants
from ..models import CatalogProperty
from .image_cache import ImageCache
from .rate_limiter import Decision, RateLimiter

log = logging.getLogger(__name__)


@dataclass
class ImageLookup:
    images: list[NormalizedImage]
    # catalog | cache | upstream | stale | fallback
    source: str
    rate_limited: bool = False
    retry_after: float | None = None

    @property
    def fallback(self) -> bool:
        return self.source == "fallback"

    @property
    def cached(self) -> bool:
        return self.source in ("catalog", "cache", "stale")


@dataclass
class IngestOutcome:
    stored: bool
    images: list[NormalizedImage] = field(default_factory=list)
    reason: str | None = None


class ImageService:
    """
    Everything between "we want photos for customer/listing" and the upstream
    images endpoint: catalog tier, in-memory cache, per-key admission.
    """

    def __init__(
        self,
        client: HospitableClient,
        limiter: RateLimiter,
        cache: ImageCache,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.limiter = limiter
        self.cache = cache
        self._sleep = sleep

    async def _from_upstream(self, customer_id: str, listing_id: str) -> list[NormalizedImage]:
        raw = await self.client.fetch_listing_images(customer_id, listing_id)
        images = normalize_images(raw)
        if images:
            self.cache.put(cache_key(customer_id, listing_id), images)
        log.info("fetched %d images for %s/%s", len(images), customer_id, listing_id)
        return images

    async def _catalog_hit(self, repo: PropertyRepository, customer_id: str, listing_id: str) -> list[NormalizedImage]:
        prop = await repo.find_by_any_platform_id(platform_id_variants(customer_id, listing_id))
        if prop is None:
            by_ext = await repo.find_by_external_id(listing_id)
            if by_ext is not None and claimable_by(by_ext.platform_id, customer_id, listing_id):
                prop = by_ext
        if prop is None or not prop.image_url:
            return []
        return images_from_property(prop.image_url, prop.additional_images)

    # -------------------------
    # Read path (GET /property-images)
    # -------------------------

    async def get_images(
        self,
        repo: PropertyRepository,
        customer_id: str,
        listing_id: str,
        *,
        position: int | None = None,
        refresh: bool = False,
    ) -> ImageLookup:
        lookup = await self._lookup(repo, customer_id, listing_id, refresh=refresh)
        if position is not None and lookup.images:
            picked = pick_position(lookup.images, position)
            lookup.images = [picked] if picked is not None else []
        return lookup

    async def _lookup(self, repo: PropertyRepository, customer_id: str, listing_id: str, *, refresh: bool) -> ImageLookup:
        key = cache_key(customer_id, listing_id)

        if not refresh:
            stored = await self._catalog_hit(repo, customer_id, listing_id)
            if stored:
                return ImageLookup(images=stored, source="catalog")

        async with self.limiter.lock(key):
            entry = self.cache.get(key, force_refresh=refresh)
            if entry is not None:
                return ImageLookup(images=list(entry.images), source="cache")

            admission = self.limiter.admit(key)
            if not admission.proceed:
                stale = None if refresh else self.cache.get(key, allow_stale=True)
                if stale is not None:
                    return ImageLookup(
                        images=list(stale.images), source="stale", rate_limited=True, retry_after=admission.retry_after
                    )
                raise Throttled(key, admission.retry_after)

            try:
                images = await self._from_upstream(customer_id, listing_id)
            except (UpstreamNotFound, UpstreamRateLimited) as e:
                log.warning("no images from upstream for %s (%s), serving fallback", key, type(e).__name__)
                stale = self.cache.get(key, allow_stale=True)
                if stale is not None:
                    return ImageLookup(
                        images=list(stale.images),
                        source="stale",
                        rate_limited=isinstance(e, UpstreamRateLimited),
                    )
                return ImageLookup(
                    images=fallback_images(),
                    source="fallback",
                    rate_limited=isinstance(e, UpstreamRateLimited),
                    retry_after=getattr(e, "retry_after", None),
                )

        if not images:
            return ImageLookup(images=fallback_images(), source="fallback")
        return ImageLookup(images=images, source="upstream")

    # -------------------------
    # Ingestion path (publish / fetch-property-images)
    # -------------------------

    async def fetch_for_ingestion(
        self, customer_id: str, listing_id: str, *, force_refresh: bool = False
    ) -> list[NormalizedImage]:
        """
        Blocks through Wait decisions instead of failing; only a Deny with
        nothing cached becomes Throttled.
        """
        key = cache_key(customer_id, listing_id)
        async with self.limiter.lock(key):
            entry = self.cache.get(key, force_refresh=force_refresh)
            if entry is not None:
                return list(entry.images)

            while True:
                admission = self.limiter.admit(key)
                if admission.proceed:
                    break
                stale = None if force_refresh else self.cache.get(key, allow_stale=True)
                if stale is not None:
                    log.info("rate limited on %s, using cached images", key)
                    return list(stale.images)
                if admission.decision is Decision.deny:
                    raise Throttled(key, admission.retry_after)
                log.info("waiting %.1fs before fetching images for %s", admission.retry_after, key)
                await self._sleep(admission.retry_after)

            try:
                return await self._from_upstream(customer_id, listing_id)
            except UpstreamRateLimited:
                stale = self.cache.get(key, allow_stale=True)
                if stale is None:
                    raise
                log.warning("upstream rate limited on %s, using cached images", key)
                return list(stale.images)

    async def store(
        self,
        repo: PropertyRepository,
        prop: CatalogProperty,
        customer_id: str,
        listing_id: str,
        *,
        force_refresh: bool = False,
    ) -> IngestOutcome:
        images = await self.fetch_for_ingestion(customer_id, listing_id, force_refresh=force_refresh)
        image_url, additional = split_for_storage(images)
        if not image_url:
            return IngestOutcome(stored=False, reason="no images found")
        await repo.store_images(prop, image_url, additional)
        return IngestOutcome(stored=True, images=images)

    async def ingest_for_property(
        self, repo: PropertyRepository, prop: CatalogProperty, *, force_refresh: bool = False
    ) -> IngestOutcome:
        ids = extract_property_ids(prop.platform_id)
        if not ids.complete:
            log.info("property %s has no resolvable customer id (%r), skipping images", prop.id, prop.platform_id)
            return IngestOutcome(stored=False, reason="unresolved platform id")
        return await self.store(repo, prop, ids.customer_id, ids.listing_id, force_refresh=force_refresh)
