"""SQLAlchemy declarative base and shared model utilities.

Every table in the service (students and outbox_events) is declared on
the ``Base`` defined here, so a single ``Base.metadata`` describes the
whole schema for migrations and for test databases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Deterministic constraint names keep migrations portable between dialects
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _utc_now() -> datetime:
    """Generate UTC timestamp for database defaults.

    Uses a named function instead of lambda for SQLAlchemy 2.0 compatibility.
    """
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
    type_annotation_map: dict[type, Any] = {}


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamp columns.

    Values are generated in Python at INSERT/UPDATE time unless the caller
    supplies them, which lets the outbox stamp rows from its own clock.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=_utc_now,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=_utc_now,
        onupdate=_utc_now,
        nullable=False,
    )


def as_utc(value: datetime) -> datetime:
    """Attach UTC to timestamps read back without an offset.

    SQLite stores timezone-aware columns as naive text, so values loaded
    from it must be re-anchored before comparing with aware datetimes.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
