# app/adapters/repos/properties.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import CatalogProperty, utcnow

# Columns search() may filter on by equality.
FILTERABLE_FIELDS = frozenset(
    {"platform_id", "external_id", "slug", "city", "state", "country", "is_published", "is_active", "platform_type"}
)


@dataclass(frozen=True)
class PropertyFilter:
    field: str
    value: Any


class PropertyRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _first(self, *where) -> CatalogProperty | None:
        q = select(CatalogProperty).where(*where).order_by(CatalogProperty.id.asc()).limit(1)
        return (await self.session.execute(q)).scalars().first()

    async def find_by_id(self, property_id: int) -> CatalogProperty | None:
        return await self.session.get(CatalogProperty, property_id)

    async def find_by_platform_id(self, platform_id: str) -> CatalogProperty | None:
        return await self._first(CatalogProperty.platform_id == platform_id)

    async def find_by_any_platform_id(self, variants: Sequence[str]) -> CatalogProperty | None:
        """First hit in the given order, so callers can rank canonical above legacy forms."""
        for pid in variants:
            found = await self.find_by_platform_id(pid)
            if found is not None:
                return found
        return None

    async def find_by_external_id(self, external_id: str) -> CatalogProperty | None:
        return await self._first(CatalogProperty.external_id == external_id)

    async def find_by_slug(self, slug: str) -> CatalogProperty | None:
        return await self._first(CatalogProperty.slug == slug)

    async def slug_taken(self, slug: str) -> bool:
        return (await self.find_by_slug(slug)) is not None

    async def search(
        self,
        filters: Sequence[PropertyFilter] = (),
        *,
        limit: int = 50,
        offset: int = 0,
        include_inactive: bool = False,
    ) -> tuple[list[CatalogProperty], int]:
        where = []
        for f in filters:
            if f.field not in FILTERABLE_FIELDS:
                raise ValueError(f"cannot filter on {f.field!r}")
            where.append(getattr(CatalogProperty, f.field) == f.value)
        if not include_inactive:
            where.append(CatalogProperty.is_active.is_(True))

        total_q = select(func.count()).select_from(CatalogProperty).where(*where)
        total = int((await self.session.execute(total_q)).scalar_one())

        q = (
            select(CatalogProperty)
            .where(*where)
            .order_by(CatalogProperty.id.asc())
            .limit(limit)
            .offset(offset)
        )
        rows = list((await self.session.execute(q)).scalars().all())
        return rows, total

    async def create(self, fields: dict[str, Any]) -> CatalogProperty:
        now = utcnow()
        prop = CatalogProperty(**fields)
        prop.created_at = now
        prop.updated_at = now
        self.session.add(prop)
        await self.session.flush()
        return prop

    async def update(self, prop: CatalogProperty, fields: dict[str, Any]) -> CatalogProperty:
        """Full replace of the given fields; anything not passed is left alone."""
        for k, v in fields.items():
            setattr(prop, k, v)
        prop.updated_at = utcnow()
        await self.session.flush()
        return prop

    async def store_images(
        self,
        prop: CatalogProperty,
        image_url: str,
        additional_images: list[str],
        *,
        at: datetime | None = None,
    ) -> CatalogProperty:
        prop.image_url = image_url
        prop.additional_images = list(additional_images)
        prop.images_stored_at = at or utcnow()
        await self.session.flush()
        return prop

    async def soft_delete(self, prop: CatalogProperty) -> CatalogProperty:
        prop.is_active = False
        prop.updated_at = utcnow()
        await self.session.flush()
        return prop
