from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from ..settings import settings

_is_sqlite = settings.async_database_url.startswith("sqlite")

# sqlite connections are opened per session so they never outlive the event loop
# that created them (the test client runs requests on short-lived loops)
engine = create_async_engine(
    settings.async_database_url,
    future=True,
    echo=False,
    **({"poolclass": NullPool} if _is_sqlite else {"pool_pre_ping": True}),
)

SessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)

Base = declarative_base()

_initialized = False


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session


async def init_db() -> None:
    """Create tables once per process; create_all is idempotent across processes."""
    global _initialized
    if _initialized:
        return
    from . import models  # noqa: F401 - ensure models registered

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    _initialized = True


async def ping() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
