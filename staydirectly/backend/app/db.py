from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .config import settings
from .models import Base


def _engine_kwargs(url: str) -> dict[str, Any]:
    # the scheduler and API handlers share one sqlite file across tasks
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine: AsyncEngine = create_async_engine(
    settings.STAYDIRECTLY_DB_URL, echo=False, future=True, **_engine_kwargs(settings.STAYDIRECTLY_DB_URL)
)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(bind: AsyncEngine | None = None) -> None:
    """Idempotent create_all for properties + job_runs."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:
    """
    FastAPI dependency that yields a session.
    """
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def async_session() -> AsyncSession:
    """
    Scheduler / CLI sessions. Callers own commits; orchestrator runs commit per item.
    """
    async with AsyncSessionLocal() as session:
        yield session
