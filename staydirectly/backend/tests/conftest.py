# tests/conftest.py
from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db import get_session
from app.entrypoints.fastapi_app import create_app
from app.models import Base
from app.services.runtime import build_runtime

BASE_URL = "https://hospitable.test/api/v1"
CUSTOMER = "cust-1"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stands in for asyncio.sleep: records the delay and moves the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


def make_listing(listing_id: str | None, name: str = "Ocean View", **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": listing_id,
        "public_name": name,
        "private_name": f"{name} (internal)",
        "description": f"{name} description",
        "base_price": 180,
        "address": {"street": "1 Beach Rd", "city": "Lisbon", "state": "", "country": "Portugal"},
        "bedrooms": 2,
        "bathrooms": 1.5,
        "max_guests": 4,
    }
    payload.update(extra)
    return payload


def make_images(*urls: str) -> list[dict[str, Any]]:
    return [{"url": u, "caption": f"photo {i}"} for i, u in enumerate(urls)]


class FakeHospitable:
    """
    In-memory Hospitable Connect API behind httpx.MockTransport.
    Unknown listings/images answer 404 like the real thing.
    """

    def __init__(self) -> None:
        self.listings: dict[str, list[dict[str, Any]]] = {}
        self.images: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.details: dict[tuple[str, str], dict[str, Any]] = {}
        self.status: dict[str, tuple[int, Any, dict[str, str]]] = {}
        self.requests: list[httpx.Request] = []

    def fail(self, path: str, status: int, body: Any = None, headers: dict[str, str] | None = None) -> None:
        self.status[path] = (status, body if body is not None else {"message": "error"}, headers or {})

    def paths(self) -> list[str]:
        return [r.url.path.replace("/api/v1/", "", 1) for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/api/v1/", "", 1)

        if path in self.status:
            code, body, headers = self.status[path]
            return httpx.Response(code, json=body, headers=headers)

        parts = path.split("/")
        if request.method == "POST" and parts == ["customers"]:
            return httpx.Response(201, json={"data": json.loads(request.content)})
        if request.method == "POST" and parts == ["auth-codes"]:
            return httpx.Response(201, json={"data": {"code": "auth-123", "return_url": "https://connect.test/x"}})

        if len(parts) == 3 and parts[0] == "customers" and parts[2] == "listings":
            return httpx.Response(200, json={"data": self.listings.get(parts[1], [])})
        if len(parts) == 5 and parts[4] == "images":
            key = (parts[1], parts[3])
            if key not in self.images:
                return httpx.Response(404, json={"message": "Not found"})
            return httpx.Response(200, json={"data": self.images[key]})
        if len(parts) == 4 and parts[0] == "customers" and parts[2] == "listings":
            key = (parts[1], parts[3])
            if key not in self.details:
                return httpx.Response(404, json={"message": "Not found"})
            return httpx.Response(200, json={"data": self.details[key]})

        return httpx.Response(404, json={"message": "Not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
async def session(async_session_maker):
    async with async_session_maker() as s:
        yield s


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock) -> SleepRecorder:
    return SleepRecorder(clock)


@pytest.fixture
def upstream() -> FakeHospitable:
    return FakeHospitable()


@pytest.fixture
def token() -> str:
    return "test-platform-token"


@pytest.fixture
async def runtime(upstream, clock, sleeper, token):
    rt = build_runtime(token=token, base_url=BASE_URL, transport=upstream.transport, clock=clock, sleep=sleeper)
    try:
        yield rt
    finally:
        await rt.aclose()


@pytest.fixture
async def api(runtime, async_session_maker):
    app = create_app(runtime=runtime)

    async def _session():
        async with async_session_maker() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
