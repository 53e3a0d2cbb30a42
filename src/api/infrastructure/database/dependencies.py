"""Process-wide database engine and session factory.

One async engine serves both request handlers (through the
``get_write_session`` dependency) and the outbox poller, which opens its
own sessions from ``get_sessionmaker()``. The engine is built on first use
and torn down by ``close_database_connections`` in the application
lifespan.
"""

from __future__ import annotations

import threading
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import build_async_url, create_write_engine
from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.observability import DefaultDatabaseEngineProbe
from infrastructure.settings import get_database_settings

_probe = DefaultDatabaseEngineProbe()

_write_engine: AsyncEngine | None = None
_write_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_target: str | None = None

_engine_lock = threading.Lock()


def get_write_engine() -> AsyncEngine:
    """Return the shared engine, creating it and its sessionmaker on first call.

    Raises:
        DatabaseConnectionError: If the engine cannot be created (bad URL,
            missing driver)
    """
    global _write_engine, _write_sessionmaker, _target
    if _write_engine is not None:
        return _write_engine

    with _engine_lock:
        if _write_engine is not None:
            return _write_engine

        settings = get_database_settings()
        target = settings.connection_string
        try:
            engine = create_write_engine(settings)
        except Exception as e:
            _probe.engine_creation_failed(target, e)
            raise DatabaseConnectionError(
                f"Could not create database engine for {target}"
            ) from e

        dialect = make_url(build_async_url(settings)).get_backend_name()
        _write_sessionmaker = async_sessionmaker(
            engine, expire_on_commit=False, class_=AsyncSession
        )
        _write_engine = engine
        _target = target
        _probe.engine_created(
            target,
            dialect=dialect,
            pool_size=settings.pool_max_connections if dialect == "postgresql" else None,
        )
    return _write_engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the shared engine.

    The outbox publisher receives this factory at startup and opens one
    session per poll tick or storage call.
    """
    get_write_engine()
    assert _write_sessionmaker is not None
    return _write_sessionmaker


async def get_write_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request.

    Nothing is committed automatically. The student service wraps each
    command in ``async with session.begin()`` so the student row and its
    outbox rows commit together.
    """
    async with get_sessionmaker()() as session:
        yield session


async def close_database_connections() -> None:
    """Dispose the shared engine; the next call to get_write_engine rebuilds it."""
    global _write_engine, _write_sessionmaker, _target

    if _write_engine is None:
        return
    await _write_engine.dispose()
    _probe.engine_disposed(_target or "")
    _write_engine = None
    _write_sessionmaker = None
    _target = None
