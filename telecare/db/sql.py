# telecare/db/sql.py
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from telecare.core.config import settings
from telecare.db.base import Base

logger = logging.getLogger(__name__)


def _engine_kwargs(dsn: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    if not dsn.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )
    return kwargs


def enable_sqlite_savepoints(async_engine: AsyncEngine) -> None:
    """
    The sqlite drivers defer BEGIN until the first write, which breaks
    SAVEPOINT. Emit BEGIN ourselves so nested transactions behave.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine: AsyncEngine = create_async_engine(settings.SQL_DSN, **_engine_kwargs(settings.SQL_DSN))
if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autoflush=False,
    class_=AsyncSession,
)


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Provide a DB session for each request.
    Commit on success, rollback on any error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_db() -> bool:
    async with AsyncSessionLocal() as session:
        await session.execute(text("SELECT 1"))
        return True


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create tables if they don't exist.
    """
    # Import all models so they get registered on Base.metadata
    from telecare.modules.users import models as _users  # noqa: F401
    from telecare.modules.availability import models as _availability  # noqa: F401
    from telecare.modules.appointments import models as _appointments  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")
