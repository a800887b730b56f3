from __future__ import annotations

import argparse
import asyncio
import json
import logging

from app.config import settings
from app.db import async_session, init_models
from app.services.orchestrator import import_customer_listings, publish_selected
from app.services.runtime import build_runtime


async def main() -> None:
    parser = argparse.ArgumentParser(description="Import (or publish) Hospitable listings for one customer")
    parser.add_argument("customer_id")
    parser.add_argument("--publish", nargs="+", metavar="LISTING_ID", help="Publish these listings and pull their images")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    await init_models()
    runtime = build_runtime()
    try:
        async with async_session() as session:
            if args.publish:
                report = await publish_selected(
                    session, runtime.client, runtime.images, args.customer_id, args.publish
                )
            else:
                report = await import_customer_listings(session, runtime.client, args.customer_id)
    finally:
        await runtime.aclose()

    print(json.dumps(report.summary(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
