from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from leadhook.core.config import Settings
from leadhook.core.exceptions import ConfigurationError
from leadhook.core.logging import get_structlog_logger
from leadhook.db.base import Base

logger = get_structlog_logger(__name__)


def create_database_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the lead store."""
    if not settings.database_url:
        raise ConfigurationError("DATABASE_URL environment variable is not set", missing=["DATABASE_URL"])

    if settings.is_testing or settings.database_url.startswith("sqlite"):
        # NullPool keeps test runs free of shared connection state
        engine = create_async_engine(
            settings.database_url,
            poolclass=NullPool,
            echo=settings.debug,
        )
    else:
        engine = create_async_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,
            echo=settings.debug,
        )

    logger.info(
        "database.engine.created",
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        testing=settings.is_testing,
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create the leads table if it does not exist (development bootstrap)."""
    import leadhook.models  # noqa: F401  registers mappers on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database.tables_created")
