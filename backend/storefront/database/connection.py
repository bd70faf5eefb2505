"""
Async database engine and session management.

PostgreSQL through asyncpg is the production target. SQLite through
aiosqlite is accepted for local runs and the test suite. The engine and the
session factory are created lazily on first use and disposed at shutdown.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from storefront.core.config import get_settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _convert_database_url_to_async(url: str) -> str:
    """Select the asyncpg driver for plain ``postgresql://`` URLs."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def _pool_options() -> dict[str, Any]:
    if settings.uses_sqlite:
        return {}

    options: dict[str, Any] = {
        "pool_pre_ping": True,
        "connect_args": {
            "server_settings": {"application_name": settings.app_name},
            "command_timeout": 60,
            "timeout": 10,
        },
    }
    if settings.is_test:
        options["poolclass"] = NullPool
        return options

    options["pool_size"] = settings.db_pool_size
    options["max_overflow"] = settings.db_max_overflow
    options["pool_recycle"] = 3600
    return options


def get_engine() -> AsyncEngine:
    """
    Return the process-wide engine, creating it on first use.

    Raises:
        RuntimeError: If the engine cannot be created from the configured URL
    """
    global _engine

    if _engine is not None:
        return _engine

    url = _convert_database_url_to_async(settings.database_url)
    try:
        _engine = create_async_engine(url, echo=settings.debug, **_pool_options())
    except (SQLAlchemyError, ValueError) as e:
        logger.error("Database engine creation failed", error=str(e), error_type=type(e).__name__)
        raise RuntimeError(f"Database engine initialization failed: {e}") from e

    logger.info(
        "Database engine created",
        dialect=_engine.dialect.name,
        pool_size=None if settings.uses_sqlite else settings.db_pool_size,
        environment=settings.environment,
    )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session for one unit of work.

    Services commit explicitly; whatever is still pending when the block
    exits cleanly is committed, and an error rolls everything back.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.warning(
                "Database session rolled back",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a request-scoped session.

    Example:
        @router.get("/products")
        async def list_products(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_session() as session:
        yield session


async def check_database_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """
    Run ``SELECT 1`` against the database, retrying with exponential backoff.

    Args:
        max_retries: Number of attempts before giving up
        retry_delay: Delay before the second attempt, doubled afterwards

    Returns:
        True once a check succeeds, False otherwise
    """
    for attempt in range(1, max_retries + 1):
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError) as e:
            logger.warning(
                "Database health check failed",
                attempt=attempt,
                max_retries=max_retries,
                error=str(e),
            )
        except (SQLAlchemyError, RuntimeError, OSError) as e:
            logger.error("Database health check error", attempt=attempt, error=str(e))
            return False
        else:
            logger.debug("Database health check succeeded", attempt=attempt)
            return True

        if attempt < max_retries:
            await asyncio.sleep(retry_delay * 2 ** (attempt - 1))

    logger.error("Database unreachable", attempts=max_retries)
    return False


async def close_database_connections() -> None:
    """Dispose of the engine; the next use creates a fresh one."""
    global _engine, _session_factory

    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
