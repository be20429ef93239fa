"""Root conftest for API, repository and job tests.

Provides:
- In-memory SQLite database (replaces production engine)
- Async HTTP client bound to the FastAPI app
- A fresh EventBus per test
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import promptflow_server.database as db_module
import promptflow_server.event_bus as event_bus_module
from promptflow_server.database import Base

# Import all ORM models so they register with Base.metadata
import promptflow_server.models.db  # noqa: F401


# ---------------------------------------------------------------------------
# In-memory async SQLite engine (StaticPool shares one connection)
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory SQLite engine for one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine: AsyncEngine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Per-test database session with automatic rollback."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_ctx(session_factory):
    """get_session_ctx() equivalent bound to the test database."""

    @asynccontextmanager
    async def _ctx():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _ctx


@pytest.fixture(autouse=True)
def fresh_event_bus(monkeypatch):
    """Each test gets its own EventBus singleton."""
    bus = event_bus_module.EventBus()
    monkeypatch.setattr(event_bus_module, "_bus", bus)
    return bus


# ---------------------------------------------------------------------------
# FastAPI test client: patches the DB engine at module level
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(test_engine: AsyncEngine, session_factory, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI routes.

    Replaces the production engine/session_factory in promptflow_server.database
    with the test in-memory engine, so every get_session()/get_session_ctx()
    call (routes, background jobs, adapters) uses the test DB.
    """
    monkeypatch.setattr(db_module, "engine", test_engine)
    monkeypatch.setattr(db_module, "async_session_factory", session_factory)

    from promptflow_server.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    return {"X-User-Id": "user-1"}
