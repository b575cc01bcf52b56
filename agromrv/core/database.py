"""
Async database setup using SQLModel with aiosqlite.

SQLite does not enforce foreign keys unless asked per connection, so every
engine built here turns them on; trees, estimates, credit snapshots and
packages must all point at rows that exist.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

from agromrv.models import *  # noqa: F401,F403  registers every table on SQLModel.metadata
from agromrv.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite engines get foreign key enforcement."""
    engine = create_async_engine(database_url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(settings.database_url, echo=settings.debug)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession
)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database ready: %d tables", len(SQLModel.metadata.tables))


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with AsyncSessionLocal() as session:
        yield session
