"""
Database connection and session management for Vitalsman.
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from vitalsman.config import settings
from vitalsman.models.base import Base

# Convert sync URL to async
DATABASE_URL = settings.DATABASE_URL.replace(
    "postgresql://", "postgresql+asyncpg://"
)


def _engine_options(url: str) -> dict:
    """Pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_async_engine(
    DATABASE_URL,
    echo=settings.ENVIRONMENT == "development",
    **_engine_options(DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_task_session_maker():
    """Create a fresh session maker for Celery task execution.

    Celery workers run each task in their own event loop, so they cannot
    share the application's pooled engine.
    """
    task_engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
    return async_sessionmaker(task_engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Initialize database tables."""
    from vitalsman.models.cwv import CwvAggregate, CwvAlert, CwvSample

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
