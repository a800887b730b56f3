# app/services/runtime.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from ..adapters.clients.hospitable import HospitableClient
from ..adapters.clients.http_resilience import ResilientHttp
from .image_cache import ImageCache
from .images import ImageService
from .rate_limiter import RateLimiter


@dataclass
class SyncRuntime:
    """
    Process-wide sync state. One per app: the limiter and cache only do
    their job if every request sees the same instances.
    """

    client: HospitableClient
    limiter: RateLimiter
    cache: ImageCache
    images: ImageService
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def snapshot(self) -> dict[str, Any]:
        return {
            "credential_configured": self.client.has_credential,
            "rate_limits": self.limiter.snapshot(),
            "image_cache": self.cache.snapshot(),
        }

    async def aclose(self) -> None:
        await self.client.aclose()


def build_runtime(
    *,
    token: str | None = None,
    base_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SyncRuntime:
    """Wire the runtime from settings; tests pass a MockTransport, a fake clock and a no-op sleep."""
    clock_kw = {"clock": clock} if clock is not None else {}
    http = ResilientHttp(transport=transport, sleep=sleep, **clock_kw)
    client = HospitableClient(token=token, base_url=base_url, http=http, sleep=sleep)
    limiter = RateLimiter(**clock_kw)
    cache = ImageCache(**clock_kw)
    images = ImageService(client, limiter, cache, sleep=sleep)
    return SyncRuntime(client=client, limiter=limiter, cache=cache, images=images, sleep=sleep)
