"""Database engine and async session factory."""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from ceg_connect.config import settings
from ceg_connect.models import community, group, user  # noqa: F401  (register tables)
from ceg_connect.models.base import Base

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables that don't yet exist."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

