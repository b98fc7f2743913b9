"""
Database configuration and session management.
Uses async SQLAlchemy: asyncpg for Postgres/Supabase, aiosqlite locally.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

# Base class for all models
Base = declarative_base()


def normalize_database_url(url: str) -> str:
    """Point plain postgres URLs (as Supabase hands them out) at asyncpg."""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pooling options only apply to server databases."""
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=30,
        pool_recycle=3600,  # 1 hour
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


async def init_db(engine: AsyncEngine):
    """
    Initialize database tables.
    Only use in development - use Alembic migrations in production.
    """
    async with engine.begin() as conn:
        # Import all models to ensure they're registered
        from jaydus.db import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine):
    """
    Close database connections gracefully.
    """
    await engine.dispose()
