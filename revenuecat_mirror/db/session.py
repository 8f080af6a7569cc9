"""
Database Session Management
===========================

Provides async database session factory and dependency injection.

SQLite engines (local runs and tests) get the pysqlite transaction recipe
applied so that ``session.begin_nested()`` emits real SAVEPOINTs; webhook
handlers rely on that to roll back partial effects of a failed event.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from revenuecat_mirror.config import settings

logger = logging.getLogger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy, not the sqlite3 driver, issue BEGIN.

    The driver's implicit transaction handling otherwise breaks SAVEPOINT.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine_from_url(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine, applying dialect-specific setup."""
    engine = create_async_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(engine)
    return engine


def get_engine() -> AsyncEngine:
    """
    Get or create the async database engine.

    PostgreSQL uses a pooled engine:
    - pool_size / max_overflow from settings
    - pool_recycle: recycle connections every 5 minutes
    - pool_use_lifo: prefer the most-recently-returned connection
    """
    global _engine

    if _engine is None:
        url = settings.database_url_async
        if not url:
            raise ValueError(
                "Database URL not configured. "
                "Please set DATABASE_URL environment variable."
            )

        if url.startswith("sqlite"):
            _engine = create_engine_from_url(url, echo=False)
        else:
            _engine = create_engine_from_url(
                url,
                echo=False,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_pre_ping=False,
                pool_recycle=300,
                pool_use_lifo=True,
                pool_timeout=30,
            )

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _async_session_factory

    if _async_session_factory is None:
        engine = get_engine()
        _async_session_factory = make_session_factory(engine)

    return _async_session_factory


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the settings every caller expects."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Usage:
        @router.get("/customers/{app_user_id}")
        async def get_customer(db: AsyncSession = Depends(get_db)):
            ...

    The session is automatically committed on success or rolled back on error.
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Initialize database connection.

    Called on application startup; runs a trivial query so the first
    webhook does not pay connection setup latency.
    """
    engine = get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    logger.info("Database connection established (%s)", engine.dialect.name)


async def close_db() -> None:
    """
    Close database connections.

    Called on application shutdown to clean up resources.
    """
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connections closed")
