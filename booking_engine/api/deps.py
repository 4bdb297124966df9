from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.config import get_settings
from booking_engine.infrastructure.db.engine import build_engine, build_sessionmaker

settings = get_settings()

# Fallback to an in-process SQLite database for dev/test when no URL is configured
DB_URL = settings.database_url or "sqlite+aiosqlite:///:memory:"

engine = build_engine(DB_URL)
AsyncSessionLocal = build_sessionmaker(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
