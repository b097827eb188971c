"""Starknet Lightning Mixer - Async database engine.

The engine and session factory are built explicitly from settings at startup
and handed to the store; there is no module-level database handle.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from mixer.core.config import Settings

# Imported for table registration on SQLModel.metadata
from mixer.models import MixingStep, Transaction, User  # noqa: F401


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.database_url``.

    Note: pool sizing only applies to server databases; SQLite uses its
    default pool.
    """
    url = settings.database_url
    kwargs: dict = {"echo": settings.debug, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20)
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    """Async session factory bound to ``engine``."""
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database - create all tables.

    Call this on application startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections.

    Call this on application shutdown.
    """
    await engine.dispose()
