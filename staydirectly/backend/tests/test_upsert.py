import re

import pytest
from sqlalchemy import func, select

from conftest import make_listing

from app.adapters.repos.properties import PropertyRepository
from app.domain.listing import UpstreamListing
from app.models import CatalogProperty, PlatformType
from app.services.upsert import upsert_listing


async def _count(session) -> int:
    return int((await session.execute(select(func.count()).select_from(CatalogProperty))).scalar_one())


async def _seed(session, **fields) -> CatalogProperty:
    base = {"slug": "seeded", "name": "Seeded", "title": "Seeded"}
    base.update(fields)
    prop = CatalogProperty(**base)
    session.add(prop)
    await session.commit()
    return prop


def _listing(listing_id="L1", **kw) -> UpstreamListing:
    return UpstreamListing.from_payload(make_listing(listing_id, **kw))


@pytest.mark.asyncio
async def test_cold_import_creates_canonical_property(session):
    repo = PropertyRepository(session)
    out = await upsert_listing(repo, _listing(), "c1")
    await session.commit()

    p = out.property
    assert out.created
    assert p.platform_id == "c1/L1"
    assert p.platform_type is PlatformType.hospitable
    assert p.slug == "ocean-view"
    assert p.title == "Ocean View"
    assert p.location == "Lisbon, Portugal"
    assert p.is_published is False
    assert p.is_active is True
    assert p.images_stored_at is None


@pytest.mark.asyncio
async def test_reimport_is_idempotent(session):
    repo = PropertyRepository(session)
    first = await upsert_listing(repo, _listing(), "c1")
    await session.commit()
    snapshot = {c: getattr(first.property, c) for c in ("slug", "name", "price", "location", "platform_id", "bedrooms")}

    second = await upsert_listing(repo, _listing(), "c1")
    await session.commit()

    assert not second.created
    assert second.property.id == first.property.id
    assert {c: getattr(second.property, c) for c in snapshot} == snapshot
    assert await _count(session) == 1


@pytest.mark.asyncio
async def test_update_is_full_replace_and_keeps_slug(session):
    repo = PropertyRepository(session)
    seeded = await _seed(session, slug="my-custom-slug", platform_id="c1/L1", description="old", price=500)

    out = await upsert_listing(repo, _listing(description=None, base_price=None), "c1")
    await session.commit()

    assert out.property.id == seeded.id
    assert out.property.slug == "my-custom-slug"
    assert out.property.description == "Beautiful property"
    assert out.property.price == 99


@pytest.mark.asyncio
@pytest.mark.parametrize("legacy_id", ["c1:L1", "L1"])
async def test_legacy_platform_ids_are_matched_and_canonicalized(session, legacy_id):
    repo = PropertyRepository(session)
    seeded = await _seed(session, platform_id=legacy_id)

    out = await upsert_listing(repo, _listing(), "c1")
    await session.commit()

    assert out.property.id == seeded.id
    assert out.property.platform_id == "c1/L1"
    assert await _count(session) == 1


@pytest.mark.asyncio
async def test_unlinked_row_with_same_slug_is_adopted(session):
    repo = PropertyRepository(session)
    seeded = await _seed(session, slug="ocean-view", platform_id=None)

    out = await upsert_listing(repo, _listing(), "c1")
    assert out.property.id == seeded.id
    assert out.property.platform_id == "c1/L1"


@pytest.mark.asyncio
async def test_slug_collision_gets_suffix(session):
    repo = PropertyRepository(session)
    await _seed(session, slug="ocean-view", platform_id="c9/OTHER")

    out = await upsert_listing(repo, _listing(), "c1")
    await session.commit()

    assert out.created
    assert re.fullmatch(r"ocean-view-\d{6}", out.property.slug)
    assert await _count(session) == 2


@pytest.mark.asyncio
async def test_external_id_owned_by_another_customer_is_left_alone(session):
    repo = PropertyRepository(session)
    other = await _seed(session, slug="elsewhere", platform_id="c2/L1", external_id="L1")

    out = await upsert_listing(repo, _listing(), "c1")
    await session.commit()

    assert out.created
    assert out.property.id != other.id
    assert other.platform_id == "c2/L1"


@pytest.mark.asyncio
async def test_publish_flag(session):
    repo = PropertyRepository(session)
    out = await upsert_listing(repo, _listing(), "c1", publish=True)
    assert out.property.is_published is True
    assert out.property.published_at is not None
