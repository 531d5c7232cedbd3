"""Async SQLAlchemy session management."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from manageros.config import settings


def _engine_kwargs(url: str) -> dict:
    # aiosqlite engines reject pool sizing arguments
    if url.startswith("sqlite"):
        return {"echo": settings.manageros_debug}
    return {
        "echo": settings.manageros_debug,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async DB session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Initialize database connection pool (called on app startup)."""
    async with engine.begin() as conn:
        await conn.run_sync(lambda _: None)


async def create_all() -> None:
    """Create every table from model metadata (local SQLite / demo databases)."""
    from manageros.models.db import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close the database engine (called on app shutdown)."""
    await engine.dispose()
