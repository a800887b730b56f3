# app/entrypoints/fastapi_app.py
from __future__ import annotations

from fastapi import FastAPI

from ..db import init_models
from ..services.runtime import SyncRuntime, build_runtime
from .api.routers import debug, health, hospitable, properties


def create_app(runtime: SyncRuntime | None = None) -> FastAPI:
    app = FastAPI(title="StayDirectly - Hospitable Sync")

    # Built eagerly so every request (and tests that skip lifespan) shares one limiter/cache.
    app.state.runtime = runtime or build_runtime()

    @app.on_event("startup")
    async def _startup() -> None:
        await init_models()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await app.state.runtime.aclose()

    # Routers
    app.include_router(health.router)
    app.include_router(hospitable.router)
    app.include_router(properties.router)
    app.include_router(debug.router)

    return app
