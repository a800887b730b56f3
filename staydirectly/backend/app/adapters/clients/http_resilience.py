# app/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from ...config import settings
from ...domain.errors import UpstreamUnavailable

log = logging.getLogger(__name__)


@dataclass
class _CircuitState:
    fails: int = 0
    opened_at: float | None = None


class ResilientHttp:
    """
    Thin wrapper around one httpx.AsyncClient:
      - transport errors (timeouts, connection resets) are retried with backoff
      - any response, whatever its status, is handed back for the caller to classify
      - repeated transport failures / 5xx open a circuit that refuses calls for a while
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        backoff_base_s: float | None = None,
        fail_threshold: int | None = None,
        reset_s: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        timeout = httpx.Timeout(float(timeout_s if timeout_s is not None else settings.HTTP_TIMEOUT_S))
        self._client = client or httpx.AsyncClient(timeout=timeout, transport=transport)
        self._max_retries = int(max_retries if max_retries is not None else settings.HTTP_MAX_RETRIES)
        self._backoff = float(backoff_base_s if backoff_base_s is not None else settings.HTTP_BACKOFF_BASE_S)
        self._fail_threshold = int(fail_threshold if fail_threshold is not None else settings.HTTP_CIRCUIT_FAIL_THRESHOLD)
        self._reset_s = float(reset_s if reset_s is not None else settings.HTTP_CIRCUIT_RESET_S)
        self._sleep = sleep
        self._clock = clock
        self._circuit = _CircuitState()

    # -------------------------
    # Circuit
    # -------------------------

    def circuit_is_open(self) -> bool:
        if self._circuit.opened_at is None:
            return False
        if (self._clock() - self._circuit.opened_at) < self._reset_s:
            return True
        # half-open: let the next call through
        self._circuit.opened_at = None
        self._circuit.fails = 0
        return False

    def _on_success(self) -> None:
        self._circuit.fails = 0
        self._circuit.opened_at = None

    def _on_failure(self) -> None:
        self._circuit.fails += 1
        if self._circuit.fails >= self._fail_threshold and self._circuit.opened_at is None:
            self._circuit.opened_at = self._clock()
            log.warning("circuit opened after %d consecutive upstream failures", self._circuit.fails)

    # -------------------------
    # Requests
    # -------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        if self.circuit_is_open():
            raise UpstreamUnavailable(f"circuit_open: refusing external call to {url}")

        last_exc: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.request(method, url, headers=headers, params=params, json=json)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                last_exc = e
                self._on_failure()
                if attempt >= self._max_retries:
                    break
                delay = min(5.0, self._backoff * (2**attempt))
                log.info("transport error on %s %s (%s), retrying in %.1fs", method, url, type(e).__name__, delay)
                await self._sleep(delay)
                continue

            if resp.status_code >= 500:
                self._on_failure()
            else:
                self._on_success()
            return resp

        assert last_exc is not None
        raise UpstreamUnavailable(f"{type(last_exc).__name__} calling {url}: {last_exc}") from last_exc

    async def aclose(self) -> None:
        await self._client.aclose()
