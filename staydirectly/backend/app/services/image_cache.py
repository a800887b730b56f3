# app/services/image_cache.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..config import settings
from ..domain.images import NormalizedImage
from ..domain.platform_ids import cache_key, extract_property_ids


@dataclass(frozen=True)
class ImageCacheEntry:
    images: tuple[NormalizedImage, ...]
    stored_at: float


def normalize_key(key: str) -> str:
    """'cust:listing' and 'cust/listing' share one slot."""
    ids = extract_property_ids(key)
    if ids.complete:
        return cache_key(ids.customer_id, ids.listing_id)
    return key


class ImageCache:
    """
    Fresh for ttl_s; servable as stale for another stale_grace_s while the
    limiter holds us off; evicted after that.
    """

    def __init__(
        self,
        *,
        ttl_s: float | None = None,
        stale_grace_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = float(ttl_s if ttl_s is not None else settings.IMAGE_CACHE_TTL_S)
        self.stale_grace_s = float(stale_grace_s if stale_grace_s is not None else settings.IMAGE_CACHE_STALE_GRACE_S)
        self._clock = clock
        self._entries: dict[str, ImageCacheEntry] = {}

    def _age(self, entry: ImageCacheEntry) -> float:
        return self._clock() - entry.stored_at

    def _is_fresh(self, entry: ImageCacheEntry) -> bool:
        return self._age(entry) <= self.ttl_s

    def _is_dead(self, entry: ImageCacheEntry) -> bool:
        return self._age(entry) > self.ttl_s + self.stale_grace_s

    def get(self, key: str, *, force_refresh: bool = False, allow_stale: bool = False) -> ImageCacheEntry | None:
        """
        force_refresh always reports a miss. allow_stale hands back an expired
        entry too (within the grace period); used while the rate limiter is
        holding us off.
        """
        if force_refresh:
            return None
        k = normalize_key(key)
        entry = self._entries.get(k)
        if entry is None:
            return None
        if self._is_dead(entry):
            del self._entries[k]
            return None
        if allow_stale or self._is_fresh(entry):
            return entry
        return None

    def put(self, key: str, images: Sequence[NormalizedImage]) -> ImageCacheEntry:
        self.evict_expired()
        entry = ImageCacheEntry(images=tuple(images), stored_at=self._clock())
        self._entries[normalize_key(key)] = entry
        return entry

    def evict_expired(self) -> int:
        dead = [k for k, e in self._entries.items() if self._is_dead(e)]
        for k in dead:
            del self._entries[k]
        return len(dead)

    def invalidate(self, key: str) -> None:
        self._entries.pop(normalize_key(key), None)

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> dict[str, Any]:
        now = self._clock()
        return {
            key: {
                "images": len(e.images),
                "age_s": round(now - e.stored_at, 3),
                "fresh": self._is_fresh(e),
            }
            for key, e in self._entries.items()
        }
