from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from delivery_areas.app.core.base import Base  # noqa: F401 - re-exported for compatibility
from delivery_areas.app.core.settings import get_settings

_settings = get_settings()

engine = create_async_engine(
    url=_settings.DATABASE_URL,
    echo=False,
    pool_pre_ping=True,  # Verify connections before handing them out
    pool_recycle=_settings.DB_POOL_RECYCLE,
)
async_session = async_sessionmaker(engine, expire_on_commit=False)


async def init_models() -> None:
    """Create tables that do not exist yet."""
    import delivery_areas.app.models.delivery_area  # noqa: F401 - register DeliveryArea with Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
