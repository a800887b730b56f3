# app/jobs/scheduler.py
from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import settings
from ..db import async_session
from ..domain.errors import MissingCredential, NothingToSync, UpstreamError
from ..services.orchestrator import import_customer_listings
from ..services.runtime import SyncRuntime

log = logging.getLogger(__name__)


async def run_scheduled_import(runtime: SyncRuntime, customer_ids: list[str]) -> dict[str, dict]:
    """
    Re-import every configured customer. Upsert is idempotent, so running
    this on a timer just keeps the catalog converged with upstream.
    """
    results: dict[str, dict] = {}
    for customer_id in customer_ids:
        async with async_session() as session:
            try:
                report = await import_customer_listings(
                    session, runtime.client, customer_id, job_name="scheduled_import"
                )
            except NothingToSync:
                log.info("scheduled import: no listings for customer %s", customer_id)
                results[customer_id] = {"skipped": "no listings"}
                continue
            except (MissingCredential, UpstreamError) as e:
                log.warning("scheduled import failed for customer %s: %s: %s", customer_id, type(e).__name__, e)
                results[customer_id] = {"error": f"{type(e).__name__}: {e}"}
                continue
            results[customer_id] = report.counts()
    return results


def build_scheduler(runtime: SyncRuntime, customer_ids: list[str] | None = None) -> AsyncIOScheduler:
    sched = AsyncIOScheduler()
    ids = customer_ids if customer_ids is not None else settings.scheduled_customer_ids()

    if not ids:
        log.info("no SCHED_IMPORT_CUSTOMER_IDS configured; scheduler has nothing to do")
        return sched

    sched.add_job(
        lambda: asyncio.create_task(run_scheduled_import(runtime, ids)),
        "interval",
        minutes=settings.SCHED_IMPORT_INTERVAL_MINUTES,
    )
    return sched
