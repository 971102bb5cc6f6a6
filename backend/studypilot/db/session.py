"""
Database Session Management

This module handles the database connection lifecycle and session management.

Architecture Flow:
------------------
Application Start → Create Engine → Connection Pool Ready
↓
Request / Celery task → Get Session → Execute Queries → Commit/Rollback → Close Session
↓
Application Shutdown → Dispose Engine → Close All Connections

The engine is created lazily on first use so that importing models and
services (e.g. in unit tests) never requires a reachable database.

Learning Resources:
- SQLAlchemy Engine: https://docs.sqlalchemy.org/en/20/core/engines.html
- Async Sessions: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
"""

from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from studypilot.core.config import settings
from studypilot.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


# ================================
# Database Engine Configuration
# ================================

def get_engine_config() -> dict[str, Any]:
    """
    Configure the database engine based on environment.

    Pool Types:
    -----------
    1. AsyncAdaptedQueuePool (development/production):
       - Maintains pool_size connections open
       - Can create max_overflow extra connections if needed
    2. NullPool (testing/staging, Celery workers):
       - New connection per checkout, closed immediately after use

    pool_pre_ping detects dead connections; pool_recycle avoids servers
    closing idle connections underneath us.
    """
    config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
        "connect_args": {
            "server_settings": {
                "application_name": settings.APP_NAME,
            }
        },
    }

    if settings.is_development or settings.is_production:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        config.update({
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": 30,
            "pool_recycle": 7200 if settings.is_production else 3600,
        })
    else:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_type="NullPool",
        )
        config.update({"poolclass": NullPool})

    return config


def create_engine() -> AsyncEngine:
    """
    Create the async database engine.

    The database URL must start with "postgresql+asyncpg://".
    """
    engine_config = get_engine_config()
    engine = create_async_engine(settings.DATABASE_URL, **engine_config)

    logger.info(
        "database_engine_created",
        driver="asyncpg",
        pool_size=engine_config.get("pool_size", "NullPool"),
    )
    return engine


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Return the session factory bound to the process engine.

    expire_on_commit=False keeps loaded attributes usable after commit,
    which the repositories rely on when returning ORM rows.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the options every repository expects."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


def create_task_engine() -> AsyncEngine:
    """
    Engine for a single Celery task run.

    Each task runs in its own event loop (asyncio.run) and asyncpg
    connections cannot cross loops, so nothing is pooled.
    """
    config = get_engine_config()
    for key in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle"):
        config.pop(key, None)
    config["poolclass"] = NullPool
    return create_async_engine(settings.DATABASE_URL, **config)


# ================================
# Lifecycle Functions
# ================================

async def init_db() -> None:
    """
    Verify connectivity and, in development, create missing tables.

    Production schemas are managed by Alembic migrations.
    """
    logger.info("initializing_database")
    engine = get_engine()

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("database_connection_successful")

        if settings.is_development:
            from studypilot.db.base import Base
            import studypilot.models  # noqa: F401

            async with engine.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                await conn.run_sync(Base.metadata.create_all)

            logger.info("database_tables_created")

    except Exception as e:
        logger.error(
            "database_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


async def close_db() -> None:
    """Dispose the engine and close pooled connections."""
    global _engine, _session_factory
    if _engine is None:
        return

    logger.info("closing_database_connections")
    try:
        await _engine.dispose()
        logger.info("database_connections_closed")
    except Exception as e:
        # Shutting down anyway
        logger.error(
            "database_closure_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
    finally:
        _engine = None
        _session_factory = None


async def check_db_health() -> bool:
    """Return True if a trivial query succeeds."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
