"""SQLAlchemy ORM models for the outbox pattern.

This module provides the database model for the outbox_events table used
in the transactional outbox pattern.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin, as_utc
from shared_kernel.outbox.value_objects import OutboxEvent


class OutboxEventModel(TimestampMixin, Base):
    """ORM model for the outbox_events table.

    Stores domain events written in the same transaction as the business
    data that produced them, together with their delivery state.

    Indexes:
    - idx_outbox_events_due: For the poller's due-set query
    - idx_outbox_events_tenant: For tenant-scoped inspection
    - idx_outbox_events_aggregate: For tracing an aggregate's events
    """

    __tablename__ = "outbox_events"
    __table_args__ = (
        Index("idx_outbox_events_due", "published", "scheduled_for"),
        Index("idx_outbox_events_tenant", "tenant_id"),
        Index("idx_outbox_events_aggregate", "aggregate_id"),
    )

    event_id: Mapped[str] = mapped_column(String(26), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(255), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    published: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Retry/DLQ columns
    retry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_for: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_dead_lettered(self) -> bool:
        """Check if this row exhausted its retry budget."""
        return not self.published and self.retry_count >= self.max_retries

    def to_value_object(self) -> OutboxEvent:
        """Convert this ORM model to an OutboxEvent value object.

        Returns:
            An immutable OutboxEvent with all fields copied from this model.
        """
        return OutboxEvent(
            event_id=self.event_id,
            event_type=self.event_type,
            aggregate_id=self.aggregate_id,
            tenant_id=self.tenant_id,
            event_data=self.event_data,
            published=self.published,
            published_at=(
                as_utc(self.published_at) if self.published_at is not None else None
            ),
            retry_count=self.retry_count,
            max_retries=self.max_retries,
            scheduled_for=as_utc(self.scheduled_for),
            last_error=self.last_error,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<OutboxEventModel("
            f"event_id={self.event_id}, "
            f"event_type={self.event_type}, "
            f"published={self.published}, "
            f"retry_count={self.retry_count}/{self.max_retries}"
            f")>"
        )
