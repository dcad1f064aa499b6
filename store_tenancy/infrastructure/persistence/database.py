"""Master database persistence: async engine, session factory, and ORM Base.

The master database holds store identities, tenant credentials and theme
defaults; tenant business data never lives here. Schema is managed by
Alembic migrations.

Engine and session factory are created lazily on first use so importing
models does not trigger Settings validation.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from store_tenancy.core.config import get_settings

logger = logging.getLogger(__name__)

# Set by _ensure_engine() on first use; avoids get_settings() at import time.
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine() -> None:
    """Create engine and AsyncSessionLocal on first use."""
    global engine, AsyncSessionLocal
    if AsyncSessionLocal is not None:
        return
    settings = get_settings()
    pool_size = settings.db_pool_size if settings.db_pool_size is not None else 10
    max_overflow = (
        settings.db_max_overflow if settings.db_max_overflow is not None else 20
    )
    command_timeout = (
        settings.db_command_timeout if settings.db_command_timeout is not None else 30
    )
    connect_args: dict[str, Any] = {}
    if "asyncpg" in settings.database_url:
        connect_args["command_timeout"] = command_timeout
    engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=3600,
        connect_args=connect_args,
    )
    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info("Master database engine created")


class Base(DeclarativeBase):
    """Base class for all master database models."""


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the master session factory, creating the engine on first call."""
    _ensure_engine()
    if AsyncSessionLocal is None:
        raise RuntimeError("Master database session factory was not initialized")
    return AsyncSessionLocal


def get_engine() -> AsyncEngine:
    """Return the master engine, creating it on first call."""
    _ensure_engine()
    if engine is None:
        raise RuntimeError("Master database engine was not initialized")
    return engine


async def dispose_engine() -> None:
    """Dispose the master engine (shutdown). The next use creates a fresh one."""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
        logger.info("Master database engine disposed")
    engine = None
    AsyncSessionLocal = None
