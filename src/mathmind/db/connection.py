"""
Database connection and session management for MathMind.

Uses SQLAlchemy 2.0 async engine; asyncpg for PostgreSQL, aiosqlite for local
SQLite databases.
"""

from collections.abc import AsyncGenerator

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mathmind.models import Base
from mathmind.settings import get_settings

# Load environment variables
load_dotenv()

# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get or create the global async database engine.

    Returns:
        AsyncEngine configured from MATHMIND_DATABASE_URL
    """
    global _engine

    if _engine is None:
        settings = get_settings()
        options: dict = {"echo": settings.sql_echo, "pool_pre_ping": True}
        if not settings.database_url.startswith("sqlite"):
            options.update(pool_size=5, max_overflow=10)
        _engine = create_async_engine(settings.database_url, **options)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the global async session factory.

    Returns:
        Async session factory for creating database sessions
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,  # Allow accessing attributes after commit
        )

    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session that commits on success and rolls back on error.

    Usage:
        async for session in get_session():
            ...
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create every table known to the models metadata."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engine() -> None:
    """
    Close the database engine and release all connections.

    Call this during application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
