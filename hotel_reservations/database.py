"""Async database engine, session factory and storage error classification."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from hotel_reservations.config import settings
from hotel_reservations.core.exceptions import AppException, PersistenceError, TransientConflict

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}


class Base(DeclarativeBase):
    """Declarative base for all models."""


def create_engine(url: str | None = None, **kwargs: Any) -> AsyncEngine:
    """Create an async engine with backend-appropriate pool settings."""
    url = url or settings.database_url
    options: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("postgresql"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    elif url.startswith("sqlite"):
        # Busy timeout in seconds; writers wait this long for the file lock
        options["connect_args"] = {"timeout": settings.booking_lock_timeout_seconds}
    options.update(kwargs)
    return create_async_engine(url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by request handlers and background consumers."""
    return async_sessionmaker(bind, expire_on_commit=False, autoflush=False)


engine = create_engine()
async_session_maker = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session that commits on success."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables (development and tests only)."""
    import hotel_reservations.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine connection pool."""
    await engine.dispose()


def is_transient_db_error(exc: BaseException) -> bool:
    """True for contention errors that are safe to retry."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in TRANSIENT_SQLSTATES:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "could not obtain lock" in message


def classify_db_error(exc: SQLAlchemyError, operation: str) -> AppException:
    """Translate a storage exception into the service error taxonomy."""
    if is_transient_db_error(exc):
        logger.warning(f"Transient storage conflict during {operation}: {exc}")
        return TransientConflict(f"Storage contention during {operation}, please retry")
    logger.error(f"Storage failure during {operation}: {exc}")
    return PersistenceError(f"Storage failure during {operation}")
