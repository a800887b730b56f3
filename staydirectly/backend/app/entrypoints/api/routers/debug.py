# app/entrypoints/api/routers/debug.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_runtime, require_api_key
from ....config import settings
from ....db import get_session
from ....schemas import JobRunOut
from ....services.jobruns import latest_runs
from ....services.runtime import SyncRuntime

router = APIRouter(tags=["debug"])


def _redact(v: str | None) -> str | None:
    if not v:
        return v
    if len(v) <= 8:
        return "***"
    return v[:4] + "***" + v[-4:]


@router.get("/debug/config", dependencies=[Depends(require_api_key)])
def debug_config() -> dict[str, Any]:
    """
    IMPORTANT: This reads the *running server's* settings, not your shell's.
    Safe to expose because we redact secrets.
    """
    return {
        "ENV": settings.ENV,
        "STAYDIRECTLY_DB_URL": settings.STAYDIRECTLY_DB_URL,
        "HOSPITABLE_BASE_URL": settings.HOSPITABLE_BASE_URL,
        "HOSPITABLE_CONNECT_VERSION": settings.HOSPITABLE_CONNECT_VERSION,
        "HOSPITABLE_IMAGES_CONNECT_VERSION": settings.HOSPITABLE_IMAGES_CONNECT_VERSION,
        "HOSPITABLE_PLATFORM_TOKEN": _redact(settings.HOSPITABLE_PLATFORM_TOKEN),
        "IMAGE_RATE_MIN_SPACING_S": settings.IMAGE_RATE_MIN_SPACING_S,
        "IMAGE_RATE_MAX_PER_WINDOW": settings.IMAGE_RATE_MAX_PER_WINDOW,
        "PUBLISH_BATCH_SIZE": settings.PUBLISH_BATCH_SIZE,
        "SCHED_IMPORT_CUSTOMER_IDS": settings.scheduled_customer_ids(),
        "API_KEY_SET": bool(settings.API_KEY),
    }


@router.get("/debug/job-runs/latest", response_model=list[JobRunOut], dependencies=[Depends(require_api_key)])
async def debug_job_runs_latest(
    limit: int = Query(default=5, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
) -> Any:
    return await latest_runs(session, limit=int(limit))


@router.get("/debug/rate-limits", dependencies=[Depends(require_api_key)])
def debug_rate_limits(runtime: SyncRuntime = Depends(get_runtime)) -> dict[str, Any]:
    return runtime.snapshot()
