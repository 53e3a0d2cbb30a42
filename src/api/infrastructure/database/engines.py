"""Async engine construction for the student records database.

PostgreSQL through asyncpg is the production target. Any other SQLAlchemy
URL given in ``STUDENTS_DB_URL`` (``sqlite+aiosqlite://`` for local runs and
tests) is passed through untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

if TYPE_CHECKING:
    from infrastructure.settings import DatabaseSettings

__all__ = [
    "build_async_url",
    "create_write_engine",
]


def create_write_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create the engine shared by request sessions and the outbox poller.

    On PostgreSQL the pool is capped at ``pool_max_connections`` with no
    overflow, and connections are pinged before use. Other dialects keep
    SQLAlchemy's default pool, since SQLite's pool classes reject sizing
    arguments.
    """
    url = build_async_url(settings)
    if make_url(url).get_backend_name() != "postgresql":
        return create_async_engine(url)

    return create_async_engine(
        url,
        pool_size=settings.pool_max_connections,
        max_overflow=0,
        pool_pre_ping=True,
    )


def build_async_url(settings: DatabaseSettings) -> str:
    """Resolve the SQLAlchemy URL for ``settings``.

    An explicit ``url`` wins. Otherwise a ``postgresql+asyncpg`` URL is
    assembled from the individual fields; ``URL.create`` percent-encodes
    the credentials.
    """
    if settings.url:
        return settings.url

    return URL.create(
        drivername="postgresql+asyncpg",
        username=settings.username,
        password=settings.password.get_secret_value(),
        host=settings.host,
        port=settings.port,
        database=settings.database,
    ).render_as_string(hide_password=False)
