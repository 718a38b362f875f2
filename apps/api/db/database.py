"""Relational store connection with connection pooling and startup retry.

PostgreSQL (asyncpg) is the production target; SQLite (aiosqlite) is used for
local development and tests. Pool settings only apply to PostgreSQL:

- POSTGRES_POOL_MIN_SIZE: Minimum connections (default: 2)
- POSTGRES_POOL_MAX_SIZE: Maximum connections (default: 10)
- POSTGRES_POOL_RECYCLE: Connection recycle time in seconds (default: 3600)
"""

import asyncio
import random
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from config import Settings
from utils.logging import get_logger

logger = get_logger(__name__)

engine: AsyncEngine | None = None
async_session_maker: async_sessionmaker[AsyncSession] | None = None

# Exceptions that should trigger a retry while connecting at startup
RETRYABLE_EXCEPTIONS = (
    OperationalError,  # Connection issues, server disconnects
    InterfaceError,  # Interface-level errors
    DBAPIError,  # Generic database errors (filtered by connection_invalidated)
    SQLAlchemyTimeoutError,  # Pool checkout timeouts
    ConnectionError,
    TimeoutError,
    OSError,
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy declarative models."""

    pass


def _calculate_backoff(
    attempt: int, base_delay: float = 1.0, max_delay: float = 8.0
) -> float:
    """Exponential backoff with up to one second of jitter."""
    delay = min(base_delay * (2**attempt), max_delay)
    return delay + random.uniform(0, 1)


def _is_retryable_error(exc: Exception) -> bool:
    """Check if an exception is transient and worth retrying."""
    if isinstance(exc, RETRYABLE_EXCEPTIONS):
        # For generic DBAPI errors, only retry disconnects
        if (
            isinstance(exc, DBAPIError)
            and not isinstance(exc, (OperationalError, InterfaceError))
            and not exc.connection_invalidated
        ):
            return False
        return True
    return False


async def with_retry(
    operation: Callable[..., Any],
    *args: Any,
    max_retries: int = 3,
    base_delay: float = 1.0,
    operation_name: str = "database operation",
    **kwargs: Any,
) -> Any:
    """Execute an async operation, retrying transient connection failures.

    Args:
        operation: Async callable to execute
        max_retries: Maximum number of retry attempts
        base_delay: Base delay for exponential backoff
        operation_name: Name for logging purposes

    Returns:
        Result of the operation

    Raises:
        The last exception if all retries are exhausted
    """
    for attempt in range(max_retries + 1):
        try:
            return await operation(*args, **kwargs)
        except Exception as e:
            if not _is_retryable_error(e):
                logger.error(
                    f"Non-retryable error in {operation_name}: {type(e).__name__}: {e}"
                )
                raise

            if attempt >= max_retries:
                logger.error(
                    f"{operation_name} failed after {max_retries + 1} attempts. "
                    f"Last error: {type(e).__name__}: {e}"
                )
                raise

            delay = _calculate_backoff(attempt, base_delay)
            logger.warning(
                f"{operation_name} attempt {attempt + 1}/{max_retries + 1} failed: "
                f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"Unexpected state in retry for {operation_name}")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False, **pool_options: Any) -> AsyncEngine:
    """Create an async engine for the given URL.

    SQLite files get their parent directory created; in-memory SQLite shares a
    single connection so every session sees the same database.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        database = url.database or ""
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
            new_engine = create_async_engine(database_url, echo=echo)
        else:
            new_engine = create_async_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return new_engine

    return create_async_engine(database_url, echo=echo, pool_pre_ping=True, **pool_options)


async def create_tables(target: AsyncEngine) -> None:
    """Create all tables known to the declarative Base."""
    # Registers the mapped classes on Base.metadata
    import models.records  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database(settings: Settings) -> AsyncEngine:
    """Initialize the engine and session factory, creating tables if needed."""
    global engine, async_session_maker

    pool_min_size = settings.postgres_pool_min_size
    pool_max_size = settings.postgres_pool_max_size

    backend = make_url(settings.database_url).get_backend_name()
    logger.info(f"Initializing {backend} database connection")

    engine = build_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=pool_min_size,
        max_overflow=pool_max_size - pool_min_size,
        pool_recycle=settings.postgres_pool_recycle,
    )
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await with_retry(
        create_tables,
        engine,
        max_retries=3,
        base_delay=1.0,
        operation_name=f"{backend} table creation",
    )

    logger.info(f"{backend} database initialized successfully")
    return engine


async def close_database():
    """Dispose of the connection pool."""
    global engine, async_session_maker
    if engine:
        await engine.dispose()
        logger.info("Database connection pool closed")
    engine = None
    async_session_maker = None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session that commits on success and rolls back if the caller raises."""
    if async_session_maker is None:
        raise RuntimeError("Database not initialized; call init_database() first")

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
