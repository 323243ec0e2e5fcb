"""
Database session management.

Provides the async SQLAlchemy engine, the session factory shared by the
HTTP layer and the sweeper, and :func:`atomic`, the unit-of-work helper every
balance-mutating operation runs inside.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from unitvest.core.config import settings
from unitvest.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

# ── Engine creation (PostgreSQL or SQLite) ──
if settings.USE_SQLITE:
    # StaticPool makes every connection share the same in-memory database.
    from sqlalchemy.pool import StaticPool

    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

else:
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    # Attributes stay loaded after commit; async sessions cannot lazy-load.
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields one session per request."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run the enclosed block as one transaction on ``session``.

    Commits on normal exit and rolls back on any exception.  A dropped
    connection or deadlock (``OperationalError``) is re-raised as
    :class:`TransientStoreError`; since nothing was committed, the caller may
    retry the whole block.
    """
    try:
        yield session
        await session.commit()
    except OperationalError as exc:
        await session.rollback()
        logger.error("Transaction aborted by the database: %s", exc)
        raise TransientStoreError() from exc
    except BaseException:
        await session.rollback()
        raise
