# scripts/init_db.py
import asyncio

from app.config import settings
from app.db import init_models


async def main() -> None:
    await init_models()
    print(f"OK: properties + job_runs ready at {settings.STAYDIRECTLY_DB_URL} (idempotent).")


if __name__ == "__main__":
    asyncio.run(main())
