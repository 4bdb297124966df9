from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

# Each statement must see bookings committed by other sessions (InnoDB default is REPEATABLE READ)
MYSQL_ISOLATION_LEVEL = "READ COMMITTED"


def engine_options(database_url: str) -> dict[str, Any]:
    """Keyword arguments for create_async_engine, per backend."""
    options: dict[str, Any] = {"pool_pre_ping": True}
    if make_url(database_url).get_backend_name() == "mysql":
        options["isolation_level"] = MYSQL_ISOLATION_LEVEL
        options["pool_recycle"] = 3600
    return options


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, **engine_options(database_url))


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Session that commits when the block succeeds and rolls back otherwise."""
    async with session_maker() as session:
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
        await session.commit()
