"""
Test fixtures for delivery area persistence and geocoding tests.

Provides:
- In-memory SQLite database for isolated testing
- A fresh AsyncSession per test with all tables created
"""
# IMPORTANT: Set environment variables BEFORE any other imports
import os

# Development mode for tests (no Google key requirement, SQLite allowed)
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from delivery_areas.app.core.base import Base
import delivery_areas.app.models.delivery_area  # noqa: F401 - register DeliveryArea with Base.metadata


# Test database URL - SQLite in-memory
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# StaticPool keeps the single in-memory connection alive across sessions
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(scope="function")
async def test_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.
    Creates all tables before and drops after each test.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def zone_service(test_session: AsyncSession):
    from delivery_areas.app.services.delivery_zones import DeliveryZoneService
    return DeliveryZoneService(test_session, geocode_timeout=0.5)
