# app/services/orchestrator.py
"""
Bulk import / publish runs.

Each item is committed on its own, so one bad listing never takes its
siblings down and an abandoned run can simply be re-run: upsert converges
to the same rows.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.clients.hospitable import HospitableClient
from ..adapters.repos.properties import PropertyRepository
from ..config import settings
from ..domain.errors import NothingToSync
from ..domain.listing import UpstreamListing
from ..domain.platform_ids import normalize_listing_id
from ..domain.types import ItemReport, ItemState
from ..models import CatalogProperty
from .images import ImageService
from .jobruns import finish_job_fail, finish_job_success, start_job
from .upsert import upsert_listing

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class SyncReport:
    customer_id: str
    properties: list[CatalogProperty] = field(default_factory=list)
    items: list[ItemReport] = field(default_factory=list)
    job_run_id: int | None = None

    def counts(self) -> dict[str, int]:
        c: Counter[str] = Counter()
        for it in self.items:
            c["total"] += 1
            if ItemState.created in it.history:
                c["created"] += 1
            if ItemState.updated in it.history:
                c["updated"] += 1
            if it.state in (ItemState.failed, ItemState.images_stored, ItemState.images_skipped):
                c[it.state.value] += 1
        return dict(c)

    def summary(self) -> dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "counts": self.counts(),
            "items": [it.snapshot() for it in self.items],
        }


async def _upsert_items(
    session: AsyncSession,
    repo: PropertyRepository,
    listings: Iterable[UpstreamListing],
    customer_id: str,
    *,
    publish: bool,
) -> tuple[list[tuple[ItemReport, CatalogProperty]], list[ItemReport]]:
    done: list[tuple[ItemReport, CatalogProperty]] = []
    reports: list[ItemReport] = []
    rolled_back = False

    for listing in listings:
        rep = ItemReport(listing_id=listing.id)
        reports.append(rep)
        rep.advance(ItemState.fetched)
        try:
            rep.advance(ItemState.mapped)
            outcome = await upsert_listing(repo, listing, customer_id, publish=publish)
            await session.commit()
        except Exception as e:
            await session.rollback()
            rolled_back = True
            log.exception("upsert failed for listing %s (customer %s)", listing.id, customer_id)
            rep.fail(e)
            continue

        rep.property_id = outcome.property.id
        rep.advance(ItemState.created if outcome.created else ItemState.updated)
        done.append((rep, outcome.property))

    if rolled_back:
        # rollback expires everything in the session, including rows committed earlier
        for _, prop in done:
            await session.refresh(prop)

    return done, reports


async def import_customer_listings(
    session: AsyncSession,
    client: HospitableClient,
    customer_id: str,
    *,
    job_name: str = "hospitable_import",
) -> SyncReport:
    """
    Fetch every upstream listing for the customer and upsert each one.
    Raises NothingToSync if upstream has none.
    """
    client.require_credential()
    jr = await start_job(session, job_name, meta={"customer_id": customer_id})
    report = SyncReport(customer_id=customer_id, job_run_id=jr.id)

    try:
        listings = await client.list_customer_listings(customer_id)
        if not listings:
            raise NothingToSync("No properties found")

        repo = PropertyRepository(session)
        done, report.items = await _upsert_items(session, repo, listings, customer_id, publish=False)
        report.properties = [p for _, p in done]
    except Exception as e:
        await session.rollback()
        await finish_job_fail(session, jr, e)
        raise

    await finish_job_success(session, jr, report.summary())
    log.info("import for customer %s: %s", customer_id, report.counts())
    return report


async def publish_selected(
    session: AsyncSession,
    client: HospitableClient,
    images: ImageService,
    customer_id: str,
    listing_ids: Sequence[str],
    *,
    batch_size: int | None = None,
    batch_delay_s: float | None = None,
    item_delay_s: float | None = None,
    sleep: Sleep = asyncio.sleep,
    job_name: str = "hospitable_publish",
) -> SyncReport:
    """
    Upsert the requested listings with the publish flag, then pull their
    images in small batches. Image trouble never unpublishes anything.
    """
    batch_size = max(1, int(batch_size or settings.PUBLISH_BATCH_SIZE))
    batch_delay_s = float(batch_delay_s if batch_delay_s is not None else settings.PUBLISH_BATCH_DELAY_S)
    item_delay_s = float(item_delay_s if item_delay_s is not None else settings.PUBLISH_ITEM_DELAY_S)

    client.require_credential()
    jr = await start_job(session, job_name, meta={"customer_id": customer_id, "listing_ids": list(listing_ids)})
    report = SyncReport(customer_id=customer_id, job_run_id=jr.id)

    try:
        wanted = {normalize_listing_id(x) for x in listing_ids}
        listings = await client.list_customer_listings(customer_id)
        selected = [lst for lst in listings if lst.id and normalize_listing_id(lst.id) in wanted]
        if not selected:
            raise NothingToSync("None of the selected properties were found")

        repo = PropertyRepository(session)
        done, report.items = await _upsert_items(session, repo, selected, customer_id, publish=True)
        report.properties = [p for _, p in done]

        await _ingest_in_batches(
            session,
            repo,
            images,
            done,
            batch_size=batch_size,
            batch_delay_s=batch_delay_s,
            item_delay_s=item_delay_s,
            sleep=sleep,
        )
    except Exception as e:
        await session.rollback()
        await finish_job_fail(session, jr, e)
        raise

    await finish_job_success(session, jr, report.summary())
    log.info("publish for customer %s: %s", customer_id, report.counts())
    return report


async def _ingest_in_batches(
    session: AsyncSession,
    repo: PropertyRepository,
    images: ImageService,
    items: list[tuple[ItemReport, CatalogProperty]],
    *,
    batch_size: int,
    batch_delay_s: float,
    item_delay_s: float,
    sleep: Sleep,
) -> None:
    for batch_no, start in enumerate(range(0, len(items), batch_size)):
        if batch_no > 0 and batch_delay_s > 0:
            await sleep(batch_delay_s)

        batch = items[start:start + batch_size]
        log.info("image batch %d: %d properties", batch_no + 1, len(batch))

        for idx, (rep, prop) in enumerate(batch):
            if idx > 0 and item_delay_s > 0:
                await sleep(item_delay_s)

            rep.advance(ItemState.images_pending)
            try:
                outcome = await images.ingest_for_property(repo, prop)
                await session.commit()
            except Exception as e:
                await session.rollback()
                for _, p in items:
                    await session.refresh(p)
                log.warning("image ingestion failed for property %s: %s: %s", prop.id, type(e).__name__, e)
                rep.error = f"{type(e).__name__}: {e}"
                rep.advance(ItemState.images_skipped)
                continue

            if outcome.stored:
                rep.image_count = len(outcome.images)
                rep.advance(ItemState.images_stored)
            else:
                rep.error = outcome.reason
                rep.advance(ItemState.images_skipped)
