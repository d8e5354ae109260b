"""
Database connection management with SQLAlchemy async.
Provides session dependency injection and connection pooling.
"""
import re
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from storesync.core.config import settings
from storesync.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine with proper configuration."""
    database_url = database_url or settings.database_url
    # Convert postgresql:// to postgresql+asyncpg://
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    sanitized = re.sub(r":([^:@/]+)@", ":***@", database_url)
    logger.info("Creating database engine", url=sanitized)

    engine_kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if not database_url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,  # Verify connections before use
        )

    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory
engine = create_engine()
async_session_factory = create_session_factory(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session with automatic cleanup."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Type alias for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the session factory used by background sync runs."""
    return async_session_factory


async def init_db() -> None:
    """Create any missing tables."""
    # Import models so every table is registered on the metadata
    import storesync.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")
