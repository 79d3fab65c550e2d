"""
Tests for engine construction and table creation from settings.
"""
import pytest
from sqlalchemy import inspect


@pytest.mark.asyncio
async def test_init_models_creates_delivery_areas_table():
    from delivery_areas.app.core.database import async_session, engine, init_models

    await init_models()

    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        indexes = await conn.run_sync(
            lambda sync_conn: {ix["name"] for ix in inspect(sync_conn).get_indexes("delivery_areas")}
        )

    assert "delivery_areas" in tables
    assert {"ix_delivery_areas_store_id", "ix_delivery_areas_store_active"} <= indexes

    async with async_session() as session:
        assert session.bind is engine
