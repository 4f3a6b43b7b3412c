"""Shared fixtures for integration tests requiring live infrastructure."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator

import pytest
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
)

from dancing_pony.config import get_settings
from dancing_pony.storage.orm import Restaurant

# ── Engine ────────────────────────────────────────────────────────


@pytest.fixture()
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async engine from settings on the test event loop."""
    engine = create_async_engine(
        get_settings().database_url,
        pool_size=5,
        max_overflow=0,
    )
    yield engine
    await engine.dispose()


# ── Session with transaction rollback ─────────────────────────────


@pytest.fixture()
async def db_session(
    async_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession]:
    """Provide a session wrapped in a transaction, rolled back after test.

    Suitable for repository tests that use ``flush()`` but NOT ``commit()``.
    """
    async with async_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        yield session

        await session.close()
        await trans.rollback()


# ── Tenant seeds ──────────────────────────────────────────────────


async def _restaurant(session: AsyncSession, label: str) -> Restaurant:
    restaurant = Restaurant(
        name=f"{label}-{uuid.uuid4().hex[:8]}",
        description="Integration test restaurant",
        location="Bree",
        image_url="https://img.example/test.png",
    )
    session.add(restaurant)
    await session.flush()
    return restaurant


@pytest.fixture()
async def seed_restaurant(db_session: AsyncSession) -> Restaurant:
    return await _restaurant(db_session, "pony")


@pytest.fixture()
async def other_restaurant(db_session: AsyncSession) -> Restaurant:
    return await _restaurant(db_session, "dragon")


# ── Redis fixture ─────────────────────────────────────────────────


@pytest.fixture()
async def redis_client() -> AsyncGenerator[Redis]:
    """Real Redis connection from settings."""
    client = Redis.from_url(get_settings().redis_url)
    yield client
    await client.aclose()
