"""
Database engine and session management.

One ``AsyncSession`` is opened per request through :func:`get_db`. All
repositories built for that request share the session, so a service can stage
several row changes and commit them as one transaction.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from spv_ledger.core.config import settings


def _build_engine() -> AsyncEngine:
    if settings.USE_SQLITE:
        # StaticPool keeps every connection on the same in-memory database.
        from sqlalchemy.pool import StaticPool

        sqlite_engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # aiosqlite wraps a sync connection, so listen on the sync engine.
        @event.listens_for(sqlite_engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


engine = _build_engine()

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    # Attribute access after commit must not trigger a lazy (sync) reload.
    expire_on_commit=False,
)


async def create_tables() -> None:
    """Create every table registered on ``SQLModel.metadata``."""
    import spv_ledger.db.base  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        yield session
