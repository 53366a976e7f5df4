"""
Async engine, session factory and the `get_db` request dependency.

Booking transactions rely on row-level locking (PostgreSQL) or on the single
database write lock (SQLite). For SQLite the driver's implicit BEGIN is
replaced by `BEGIN IMMEDIATE` so concurrent writers queue on the lock
instead of failing when they upgrade from a read lock.
"""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from interview_booking.core.config import get_settings
from interview_booking.core.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)

# What a lost connection, pool timeout or driver fault can surface as.
# Drivers such as asyncpg raise ConnectionRefusedError unwrapped on connect.
STORAGE_ERRORS = (SQLAlchemyError, OSError)

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            url,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
            **kwargs,
        )
        _enable_sqlite_immediate_transactions(engine)
        return engine

    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        **kwargs,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
AsyncSessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request. Services commit their own units of work;
    anything still open when the request ends is rolled back on close.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def rollback_quietly(db: AsyncSession) -> None:
    """Roll back after a storage failure without masking it if the connection is gone too."""
    try:
        await db.rollback()
    except STORAGE_ERRORS as exc:
        logger.warning("rollback_failed", error=str(exc))
