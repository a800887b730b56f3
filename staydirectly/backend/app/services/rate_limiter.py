# app/services/rate_limiter.py
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable

from ..config import settings


class Decision(str, Enum):
    proceed = "proceed"
    wait = "wait"
    deny = "deny"


@dataclass(frozen=True)
class Admission:
    decision: Decision
    retry_after: float = 0.0

    @property
    def proceed(self) -> bool:
        return self.decision is Decision.proceed


@dataclass
class RateLimitState:
    count: int = 0
    window_start: float = 0.0
    last_admitted: float | None = None


class RateLimiter:
    """
    Per-key admission control for upstream image fetches.

    - at most one admission every `min_spacing_s` for a key (otherwise Wait)
    - at most `max_per_window` admissions per `window_s` (otherwise Deny until the window rolls)

    admit() checks and records without awaiting, so on a single event loop two
    callers can never both pass for the same slot. lock(key) is for callers
    that want to hold the key across the upstream call as well.

    Keys come straight from request paths, so nothing is kept forever: a
    key's lock goes away with its last holder, and states whose window and
    spacing have both run out are swept at most once per window.
    """

    def __init__(
        self,
        *,
        min_spacing_s: float | None = None,
        window_s: float | None = None,
        max_per_window: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_spacing_s = float(min_spacing_s if min_spacing_s is not None else settings.IMAGE_RATE_MIN_SPACING_S)
        self.window_s = float(window_s if window_s is not None else settings.IMAGE_RATE_WINDOW_S)
        self.max_per_window = int(max_per_window if max_per_window is not None else settings.IMAGE_RATE_MAX_PER_WINDOW)
        self._clock = clock
        self._states: dict[str, RateLimitState] = {}
        # key -> (lock, holders incl. waiters)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._last_sweep = clock()

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lk, holders = self._locks.get(key, (None, 0))
        if lk is None:
            lk = asyncio.Lock()
        self._locks[key] = (lk, holders + 1)
        try:
            async with lk:
                yield
        finally:
            lk, holders = self._locks[key]
            if holders <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lk, holders - 1)

    def _idle(self, st: RateLimitState, now: float) -> bool:
        if now - st.window_start <= self.window_s:
            return False
        return st.last_admitted is None or now - st.last_admitted >= self.min_spacing_s

    def prune(self) -> int:
        """Drop states that would behave exactly like a fresh key. Returns how many went."""
        now = self._clock()
        self._last_sweep = now
        stale = [k for k, st in self._states.items() if self._idle(st, now)]
        for k in stale:
            del self._states[k]
        return len(stale)

    def admit(self, key: str) -> Admission:
        now = self._clock()
        if now - self._last_sweep > self.window_s:
            self.prune()

        st = self._states.get(key)
        if st is None:
            st = RateLimitState(count=0, window_start=now)
            self._states[key] = st

        if st.last_admitted is not None:
            since = now - st.last_admitted
            if since < self.min_spacing_s:
                return Admission(Decision.wait, retry_after=self.min_spacing_s - since)

        if now - st.window_start > self.window_s:
            st.count = 0
            st.window_start = now

        if st.count >= self.max_per_window:
            return Admission(Decision.deny, retry_after=max(0.0, st.window_start + self.window_s - now))

        st.count += 1
        st.last_admitted = now
        return Admission(Decision.proceed)

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._states.clear()
        else:
            self._states.pop(key, None)

    @property
    def locked_keys(self) -> list[str]:
        return list(self._locks)

    def snapshot(self) -> dict[str, Any]:
        now = self._clock()
        return {
            key: {
                "count": st.count,
                "window_age_s": round(now - st.window_start, 3),
                "since_last_s": None if st.last_admitted is None else round(now - st.last_admitted, 3),
            }
            for key, st in self._states.items()
        }
