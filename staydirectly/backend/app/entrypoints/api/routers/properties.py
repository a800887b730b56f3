# app/entrypoints/api/routers/properties.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import require_api_key
from ....adapters.repos.properties import PropertyFilter, PropertyRepository
from ....db import get_session
from ....schemas import PropertyOut, PropertyPage

router = APIRouter(prefix="/api/properties", tags=["properties"])


@router.get("", response_model=PropertyPage)
async def list_properties(
    is_published: bool | None = Query(default=None, alias="isPublished"),
    city: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> Any:
    filters: list[PropertyFilter] = []
    if is_published is not None:
        filters.append(PropertyFilter("is_published", is_published))
    if city:
        filters.append(PropertyFilter("city", city))

    rows, total = await PropertyRepository(session).search(filters, limit=limit, offset=offset)
    return PropertyPage(
        items=[PropertyOut.model_validate(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{property_id}", response_model=PropertyOut)
async def get_property(property_id: int, session: AsyncSession = Depends(get_session)) -> Any:
    prop = await PropertyRepository(session).find_by_id(property_id)
    if prop is None or not prop.is_active:
        raise HTTPException(status_code=404, detail={"message": "Property not found"})
    return prop


@router.delete("/{property_id}", dependencies=[Depends(require_api_key)])
async def delete_property(property_id: int, session: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    """Soft delete: the row stays, is_active goes false."""
    repo = PropertyRepository(session)
    prop = await repo.find_by_id(property_id)
    if prop is None or not prop.is_active:
        raise HTTPException(status_code=404, detail={"message": "Property not found"})
    await repo.soft_delete(prop)
    await session.commit()
    return {"success": True, "id": property_id}
