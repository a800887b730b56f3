# app/entrypoints/api/routers/hospitable.py
from __future__ import annotations

import logging
import math
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_runtime, require_api_key
from ....adapters.repos.properties import PropertyRepository
from ....db import get_session
from ....domain.errors import (
    IdentifierFormatError,
    MissingCredential,
    NothingToSync,
    Throttled,
    UpstreamError,
    UpstreamNotFound,
    UpstreamRateLimited,
)
from ....domain.platform_ids import require_property_ids
from ....schemas import (
    AuthCodeRequest,
    ConnectRequest,
    FetchPropertyImagesRequest,
    FetchPropertyImagesResponse,
    ImageOut,
    ImportListingsRequest,
    PropertyImagesResponse,
    PropertyOut,
    PublishPropertiesRequest,
)
from ....services.orchestrator import import_customer_listings, publish_selected
from ....services.runtime import SyncRuntime

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hospitable", tags=["hospitable"])


def _bad_request(message: str, **extra: Any) -> HTTPException:
    return HTTPException(status_code=400, detail={"message": message, **extra})


def _too_many(retry_after: float | None) -> HTTPException:
    secs = max(1, math.ceil(retry_after or 0))
    return HTTPException(
        status_code=429,
        detail={"message": "Rate limit exceeded, please try again later", "retryAfter": secs},
        headers={"Retry-After": str(secs)},
    )


def _raise_upstream(e: Exception) -> NoReturn:
    if isinstance(e, MissingCredential):
        raise HTTPException(status_code=401, detail={"message": str(e)}) from e
    if isinstance(e, Throttled):
        raise _too_many(e.retry_after) from e
    if isinstance(e, UpstreamRateLimited):
        raise _too_many(e.retry_after) from e
    if isinstance(e, UpstreamNotFound):
        raise HTTPException(status_code=404, detail={"message": str(e)}) from e
    if isinstance(e, UpstreamError):
        raise HTTPException(
            status_code=502,
            detail={"message": str(e), "upstream_status": e.status_code, "upstream_body": e.body},
        ) from e
    raise e


@router.post("/import-listings", response_model=list[PropertyOut], dependencies=[Depends(require_api_key)])
async def import_listings(
    body: ImportListingsRequest,
    session: AsyncSession = Depends(get_session),
    runtime: SyncRuntime = Depends(get_runtime),
) -> Any:
    if not body.customer_id:
        raise _bad_request("Customer ID is required")
    try:
        report = await import_customer_listings(session, runtime.client, body.customer_id)
    except NothingToSync as e:
        raise HTTPException(status_code=404, detail={"message": str(e)}) from e
    except (MissingCredential, UpstreamError) as e:
        _raise_upstream(e)
    return report.properties


@router.post("/publish-properties", response_model=list[PropertyOut], dependencies=[Depends(require_api_key)])
async def publish_properties(
    body: PublishPropertiesRequest,
    session: AsyncSession = Depends(get_session),
    runtime: SyncRuntime = Depends(get_runtime),
) -> Any:
    if not body.customer_id or not body.listing_ids:
        raise _bad_request("Customer ID and listing IDs are required")
    try:
        report = await publish_selected(
            session,
            runtime.client,
            runtime.images,
            body.customer_id,
            body.listing_ids,
            sleep=runtime.sleep,
        )
    except NothingToSync as e:
        raise HTTPException(status_code=404, detail={"message": str(e)}) from e
    except (MissingCredential, UpstreamError) as e:
        _raise_upstream(e)
    return report.properties


@router.post(
    "/fetch-property-images",
    response_model=FetchPropertyImagesResponse,
    dependencies=[Depends(require_api_key)],
)
async def fetch_property_images(
    body: FetchPropertyImagesRequest,
    session: AsyncSession = Depends(get_session),
    runtime: SyncRuntime = Depends(get_runtime),
) -> Any:
    if body.property_id is None or not body.platform_id:
        raise _bad_request("Property ID and platform ID are required")
    try:
        ids = require_property_ids(body.platform_id)
    except IdentifierFormatError as e:
        raise _bad_request(str(e), received=e.received) from e

    repo = PropertyRepository(session)
    prop = await repo.find_by_id(body.property_id)
    if prop is None:
        raise HTTPException(status_code=404, detail={"message": "Property not found"})

    try:
        runtime.client.require_credential()
        outcome = await runtime.images.store(repo, prop, ids.customer_id, ids.listing_id, force_refresh=True)
    except UpstreamNotFound as e:
        raise HTTPException(status_code=404, detail={"message": "No images found for this property"}) from e
    except (MissingCredential, UpstreamError, Throttled) as e:
        _raise_upstream(e)

    if not outcome.stored:
        raise HTTPException(status_code=404, detail={"message": "No images found for this property"})

    await session.commit()
    log.info("stored %d images on property %s", len(outcome.images), prop.id)
    return FetchPropertyImagesResponse(
        success=True,
        image_count=len(outcome.images),
        property=PropertyOut.model_validate(prop),
    )


@router.get("/property-images/{customer_id}/{listing_id}", response_model=PropertyImagesResponse)
async def property_images(
    customer_id: str,
    listing_id: str,
    pos: int | None = Query(default=None, ge=0),
    refresh: bool = Query(default=False),
    session: AsyncSession = Depends(get_session),
    runtime: SyncRuntime = Depends(get_runtime),
) -> Any:
    repo = PropertyRepository(session)
    try:
        lookup = await runtime.images.get_images(repo, customer_id, listing_id, position=pos, refresh=refresh)
    except (MissingCredential, UpstreamError, Throttled) as e:
        _raise_upstream(e)

    return PropertyImagesResponse(
        data=[ImageOut.model_validate(img.to_dict()) for img in lookup.images],
        source=lookup.source,
        cached=lookup.cached,
        rate_limited=lookup.rate_limited,
        fallback=lookup.fallback,
    )


# -------------------------
# Upstream passthroughs
# -------------------------


@router.get("/customers/{customer_id}/listings", dependencies=[Depends(require_api_key)])
async def customer_listings(customer_id: str, runtime: SyncRuntime = Depends(get_runtime)) -> dict[str, Any]:
    try:
        listings = await runtime.client.list_customer_listings(customer_id)
    except (MissingCredential, UpstreamError) as e:
        _raise_upstream(e)
    return {"data": [lst.raw for lst in listings]}


@router.post("/connect", dependencies=[Depends(require_api_key)])
async def connect(body: ConnectRequest, runtime: SyncRuntime = Depends(get_runtime)) -> dict[str, Any]:
    """Register the host as a Hospitable customer and hand back an auth code to finish the connection."""
    if not body.customer_id or not body.email:
        raise _bad_request("Customer ID and email are required")

    payload = {
        "id": body.customer_id,
        "email": body.email,
        "name": body.name or body.email,
        "phone": body.phone,
        "timezone": body.timezone or "UTC",
    }
    try:
        customer = await runtime.client.create_customer({k: v for k, v in payload.items() if v is not None})
        auth = await runtime.client.create_auth_code(body.customer_id, body.redirect_url)
    except (MissingCredential, UpstreamError) as e:
        _raise_upstream(e)
    return {"customer": customer, "authCode": auth}


@router.post("/auth-codes", dependencies=[Depends(require_api_key)])
async def auth_codes(body: AuthCodeRequest, runtime: SyncRuntime = Depends(get_runtime)) -> dict[str, Any]:
    if not body.customer_id:
        raise _bad_request("Customer ID is required")
    try:
        auth = await runtime.client.create_auth_code(body.customer_id, body.redirect_url)
    except (MissingCredential, UpstreamError) as e:
        _raise_upstream(e)
    return {"data": auth}
