# app/adapters/clients/hospitable.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from ...config import settings
from ...domain.errors import MissingCredential, UpstreamNotFound, UpstreamRateLimited, UpstreamUnavailable
from ...domain.listing import RawImage, UpstreamListing, images_embedded_in, raw_images_from
from ...domain.parsing import to_float, unwrap_data
from ...domain.platform_ids import normalize_listing_id
from .http_resilience import ResilientHttp

log = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = ("too many attempts", "rate limit")


def _body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _message(body: Any) -> str:
    if isinstance(body, dict):
        for k in ("message", "error", "detail"):
            v = body.get(k)
            if isinstance(v, str) and v:
                return v
        return ""
    return str(body or "")


def _looks_rate_limited(resp: httpx.Response, body: Any) -> bool:
    if resp.status_code == 429:
        return True
    msg = _message(body).lower()
    return any(m in msg for m in _RATE_LIMIT_MARKERS)


class HospitableClient:
    """
    Hospitable Connect API, authenticated with the single platform token.

    Listing/customer calls speak HOSPITABLE_CONNECT_VERSION; images and
    listing details still want the older HOSPITABLE_IMAGES_CONNECT_VERSION.
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        base_url: str | None = None,
        http: ResilientHttp | None = None,
        connect_version: str | None = None,
        images_connect_version: str | None = None,
        details_fallback_delay_s: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._token = token if token is not None else settings.HOSPITABLE_PLATFORM_TOKEN
        self._base_url = (base_url or settings.HOSPITABLE_BASE_URL).rstrip("/")
        self._http = http or ResilientHttp()
        self._version = connect_version or settings.HOSPITABLE_CONNECT_VERSION
        self._images_version = images_connect_version or settings.HOSPITABLE_IMAGES_CONNECT_VERSION
        self._details_delay = float(
            details_fallback_delay_s if details_fallback_delay_s is not None else settings.DETAILS_FALLBACK_DELAY_S
        )
        self._sleep = sleep

    @property
    def has_credential(self) -> bool:
        return bool(self._token)

    def require_credential(self) -> None:
        if not self._token:
            raise MissingCredential("Hospitable platform token not found in environment")

    def _headers(self, version: str) -> dict[str, str]:
        self.require_credential()
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
            "Connect-Version": version,
        }

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _call(
        self,
        method: str,
        path: str,
        *,
        version: str,
        json: Any | None = None,
        what: str,
    ) -> Any:
        url = self._url(path)
        resp = await self._http.request(method, url, headers=self._headers(version), json=json)
        body = _body(resp)

        if resp.is_success and not _looks_rate_limited(resp, body):
            return body

        if _looks_rate_limited(resp, body):
            retry_after = to_float(resp.headers.get("Retry-After"))
            log.warning("hospitable rate limited %s (%s)", what, resp.status_code)
            raise UpstreamRateLimited(
                f"Rate limit exceeded ({resp.status_code}) when fetching {what}",
                status_code=resp.status_code,
                body=body,
                retry_after=retry_after,
            )
        if resp.status_code == 404:
            raise UpstreamNotFound(f"{what} not found", status_code=404, body=body)

        raise UpstreamUnavailable(
            _message(body) or f"Failed to fetch {what}: {resp.status_code}",
            status_code=resp.status_code,
            body=body,
        )

    # -------------------------
    # Listings
    # -------------------------

    async def list_customer_listings(self, customer_id: str) -> list[UpstreamListing]:
        body = await self._call(
            "GET", f"customers/{customer_id}/listings", version=self._version, what=f"listings for {customer_id}"
        )
        items = unwrap_data(body)
        if not isinstance(items, list):
            log.info("unexpected listings payload for customer %s: %s", customer_id, type(items).__name__)
            return []
        listings = [UpstreamListing.from_payload(x) for x in items if isinstance(x, dict)]
        log.info("fetched %d listings for customer %s", len(listings), customer_id)
        return listings

    async def fetch_listing_details(self, customer_id: str, listing_id: str) -> UpstreamListing:
        listing_id = normalize_listing_id(listing_id)
        body = await self._call(
            "GET",
            f"customers/{customer_id}/listings/{listing_id}",
            version=self._images_version,
            what=f"listing {customer_id}/{listing_id}",
        )
        data = unwrap_data(body)
        if not isinstance(data, dict):
            raise UpstreamNotFound(f"listing {customer_id}/{listing_id} not found", status_code=200, body=body)
        return UpstreamListing.from_payload(data)

    async def fetch_listing_images(self, customer_id: str, listing_id: str) -> list[RawImage]:
        """
        Dedicated images endpoint first; API versions that don't expose it 404,
        in which case the photos embedded in the listing details are used.
        """
        listing_id = normalize_listing_id(listing_id)
        try:
            body = await self._call(
                "GET",
                f"customers/{customer_id}/listings/{listing_id}/images",
                version=self._images_version,
                what=f"images for {customer_id}/{listing_id}",
            )
        except UpstreamNotFound:
            log.info("images endpoint 404 for %s/%s, trying listing details", customer_id, listing_id)
            if self._details_delay > 0:
                await self._sleep(self._details_delay)
            details = await self.fetch_listing_details(customer_id, listing_id)
            return images_embedded_in(details.raw)

        data = unwrap_data(body)
        if not isinstance(data, list):
            log.info("unexpected images payload for %s/%s: %s", customer_id, listing_id, type(data).__name__)
            return []
        return raw_images_from(data)

    # -------------------------
    # Customers / auth
    # -------------------------

    async def create_customer(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = await self._call("POST", "customers", version=self._version, json=payload, what="customer creation")
        data = unwrap_data(body)
        return data if isinstance(data, dict) else {}

    async def create_auth_code(self, customer_id: str, redirect_url: str | None = None) -> dict[str, Any]:
        body = await self._call(
            "POST",
            "auth-codes",
            version=self._version,
            json={"customer_id": customer_id, "redirect_url": redirect_url or settings.HOSPITABLE_AUTH_REDIRECT_URL},
            what=f"auth code for {customer_id}",
        )
        data = unwrap_data(body)
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        await self._http.aclose()
