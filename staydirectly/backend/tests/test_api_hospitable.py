import httpx
import pytest
from sqlalchemy import select

from conftest import BASE_URL, CUSTOMER, make_images, make_listing

from app.config import settings
from app.db import get_session
from app.domain.images import STOCK_IMAGE_URL
from app.entrypoints.fastapi_app import create_app
from app.models import CatalogProperty
from app.services.runtime import build_runtime

IMAGES = ("https://x.test/a.jpg", "https://x.test/b.jpg")


async def test_health(api):
    resp = await api.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_import_requires_customer_id(api):
    resp = await api.post("/api/hospitable/import-listings", json={})
    assert resp.status_code == 400


async def test_import_without_token_is_401(upstream, async_session_maker):
    runtime = build_runtime(token="", base_url=BASE_URL, transport=upstream.transport)
    app = create_app(runtime=runtime)

    async def _session():
        async with async_session_maker() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post("/api/hospitable/import-listings", json={"customerId": CUSTOMER})

    assert resp.status_code == 401
    assert upstream.requests == []
    await runtime.aclose()


async def test_import_no_listings_is_404(api, upstream):
    upstream.listings[CUSTOMER] = []
    resp = await api.post("/api/hospitable/import-listings", json={"customerId": CUSTOMER})
    assert resp.status_code == 404


async def test_import_returns_camel_case_properties(api, upstream):
    upstream.listings[CUSTOMER] = [make_listing("L1"), make_listing("L2", name="Garden Flat")]

    resp = await api.post("/api/hospitable/import-listings", json={"customerId": CUSTOMER})

    assert resp.status_code == 200
    body = resp.json()
    assert [p["platformId"] for p in body] == [f"{CUSTOMER}/L1", f"{CUSTOMER}/L2"]
    assert body[0]["isPublished"] is False
    assert body[1]["slug"] == "garden-flat"


async def test_upstream_outage_is_502(api, upstream):
    upstream.fail(f"customers/{CUSTOMER}/listings", 503, body={"message": "down"})
    resp = await api.post("/api/hospitable/import-listings", json={"customerId": CUSTOMER})
    assert resp.status_code == 502
    assert resp.json()["detail"]["upstream_status"] == 503


async def test_api_key_enforced_when_configured(api, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "secret-key")
    resp = await api.post("/api/hospitable/import-listings", json={"customerId": CUSTOMER})
    assert resp.status_code == 401


async def test_publish_requires_fields(api):
    resp = await api.post("/api/hospitable/publish-properties", json={"customerId": CUSTOMER})
    assert resp.status_code == 400


async def test_publish_unknown_ids_is_404(api, upstream):
    upstream.listings[CUSTOMER] = [make_listing("L1")]
    resp = await api.post(
        "/api/hospitable/publish-properties", json={"customerId": CUSTOMER, "listingIds": ["nope"]}
    )
    assert resp.status_code == 404


async def test_publish_stores_images(api, upstream):
    upstream.listings[CUSTOMER] = [make_listing("L1")]
    upstream.images[(CUSTOMER, "L1")] = make_images(*IMAGES)

    resp = await api.post("/api/hospitable/publish-properties", json={"customerId": CUSTOMER, "listingIds": ["L1"]})

    assert resp.status_code == 200
    (prop,) = resp.json()
    assert prop["isPublished"] is True
    assert prop["imageUrl"] == IMAGES[0]
    assert prop["additionalImages"] == [IMAGES[1]]
    assert prop["imagesStoredAt"] is not None


async def test_fetch_property_images_rejects_bad_platform_id(api):
    resp = await api.post("/api/hospitable/fetch-property-images", json={"propertyId": 1, "platformId": "garbage"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["received"] == "garbage"


async def test_fetch_property_images_stores_on_property(api, upstream, async_session_maker):
    upstream.listings[CUSTOMER] = [make_listing("L1")]
    await api.post("/api/hospitable/import-listings", json={"customerId": CUSTOMER})
    upstream.images[(CUSTOMER, "L1")] = make_images(*IMAGES)

    resp = await api.post(
        "/api/hospitable/fetch-property-images", json={"propertyId": 1, "platformId": f"{CUSTOMER}:L1"}
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["imageCount"] == 2
    assert body["property"]["imageUrl"] == IMAGES[0]

    async with async_session_maker() as s:
        row = (await s.execute(select(CatalogProperty))).scalars().one()
        assert row.images_stored_at is not None
        assert row.additional_images == [IMAGES[1]]


async def test_fetch_property_images_none_found_is_404(api, upstream):
    upstream.listings[CUSTOMER] = [make_listing("L1")]
    await api.post("/api/hospitable/import-listings", json={"customerId": CUSTOMER})

    resp = await api.post(
        "/api/hospitable/fetch-property-images", json={"propertyId": 1, "platformId": f"{CUSTOMER}/L1"}
    )
    assert resp.status_code == 404


async def test_property_images_then_429_on_immediate_refresh(api, upstream):
    upstream.images[(CUSTOMER, "L1")] = make_images(*IMAGES)

    first = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/L1")
    assert first.status_code == 200
    assert [i["url"] for i in first.json()["data"]] == list(IMAGES)
    assert first.json()["source"] == "upstream"

    second = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/L1", params={"refresh": "true"})
    assert second.status_code == 429
    assert second.json()["detail"]["retryAfter"] == 5
    assert second.headers["Retry-After"] == "5"


async def test_second_uncached_request_within_spacing_is_429(api):
    # nothing upstream, so the first answer is the stock fallback and nothing gets cached
    first = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/new-listing")
    assert first.json()["fallback"] is True

    second = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/new-listing")
    assert second.status_code == 429
    assert second.json()["detail"]["retryAfter"] == 4


async def test_property_images_served_from_cache(api, upstream):
    upstream.images[(CUSTOMER, "L1")] = make_images(*IMAGES)

    await api.get(f"/api/hospitable/property-images/{CUSTOMER}/L1")
    again = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/L1")

    assert again.status_code == 200
    assert again.json()["cached"] is True
    assert len(upstream.requests) == 1


async def test_property_images_prefers_catalog(api, upstream):
    upstream.listings[CUSTOMER] = [make_listing("L1")]
    upstream.images[(CUSTOMER, "L1")] = make_images(*IMAGES)
    await api.post("/api/hospitable/publish-properties", json={"customerId": CUSTOMER, "listingIds": ["L1"]})
    calls = len(upstream.requests)

    resp = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/L1")

    assert resp.json()["source"] == "catalog"
    assert len(upstream.requests) == calls


async def test_property_images_fallback_when_upstream_has_nothing(api):
    resp = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/missing")
    assert resp.status_code == 200
    body = resp.json()
    assert body["fallback"] is True
    assert body["data"][0]["url"] == STOCK_IMAGE_URL


async def test_property_images_fallback_when_upstream_rate_limits(api, upstream):
    upstream.fail(f"customers/{CUSTOMER}/listings/L1/images", 429)
    resp = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/L1")
    assert resp.status_code == 200
    assert resp.json()["fallback"] is True
    assert resp.json()["rateLimited"] is True


@pytest.mark.parametrize("pos, expected", [(1, IMAGES[1]), (3, IMAGES[1]), (4, IMAGES[0])])
async def test_property_images_single_position(api, upstream, pos, expected):
    upstream.images[(CUSTOMER, "L1")] = make_images(*IMAGES)
    resp = await api.get(f"/api/hospitable/property-images/{CUSTOMER}/L1", params={"pos": pos})
    (img,) = resp.json()["data"]
    assert img["url"] == expected
    assert img["position"] == pos
