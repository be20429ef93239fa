"""Async SQLAlchemy engine and sessions for the execution log and stores.

Routes take sessions from get_session(); background jobs and the engine
adapters use get_session_ctx(). Both commit on success and roll back on error.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

import sqlalchemy
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from promptflow_server import config

_ASYNC_DRIVERS = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def async_database_url(url: str) -> str:
    """Rewrite driverless URLs to the async driver for their dialect."""
    for prefix, replacement in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": config.DB_ECHO}
    if not is_sqlite(url):
        options.update(pool_size=config.DB_POOL_SIZE, max_overflow=config.DB_MAX_OVERFLOW)
    return options


DATABASE_URL = async_database_url(config.DATABASE_URL)

engine: AsyncEngine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@asynccontextmanager
async def get_session_ctx() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency."""
    async with get_session_ctx() as session:
        yield session


async def init_db() -> None:
    """Create missing tables."""
    async with engine.begin() as conn:
        if is_sqlite(DATABASE_URL):
            await conn.execute(sqlalchemy.text("PRAGMA journal_mode=WAL"))
            await conn.execute(sqlalchemy.text(f"PRAGMA busy_timeout={config.SQLITE_BUSY_TIMEOUT_MS}"))
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
