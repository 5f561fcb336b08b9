# lead_intake/db/session.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from lead_intake.core.config import DatabaseConfig, get_pipeline_config, settings
from lead_intake.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)

# Global engine instance
engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def create_database_engine(database: Optional[DatabaseConfig] = None) -> AsyncEngine:
    """Create and configure the async database engine."""
    global engine, AsyncSessionLocal

    if engine is not None:
        return engine

    database = database or get_pipeline_config().database
    url = database.sqlalchemy_url()

    if settings.is_testing:
        # Use NullPool for tests to ensure clean state
        engine = create_async_engine(url, poolclass=NullPool, echo=settings.debug)
    elif url.drivername.startswith("postgresql"):
        engine = create_async_engine(
            url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_recycle=settings.database_pool_recycle,
            pool_pre_ping=True,
            echo=settings.debug,
            connect_args={
                # Managed Postgres poolers run in transaction mode
                "statement_cache_size": 0,
                "server_settings": {"application_name": "lead_intake"},
            },
        )
    else:
        engine = create_async_engine(url, pool_pre_ping=True, echo=settings.debug)

    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info(
        "database.engine.created",
        driver=url.drivername,
        host=url.host,
        testing=settings.is_testing,
    )

    return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for request handlers and background tasks."""
    if AsyncSessionLocal is None:
        create_database_engine()
    return AsyncSessionLocal


async def dispose_engine() -> None:
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
        logger.info("database.connection_closed")
    engine = None
    AsyncSessionLocal = None


async def health_check(session_factory: async_sessionmaker[AsyncSession]) -> Dict[str, Any]:
    """Check database health."""
    try:
        async with session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            row = result.fetchone()
        return {
            "status": "healthy" if row and row[0] == 1 else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except Exception as e:
        logger.error("database.health_check_failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
