"""Outbox event repository implementation.

This module provides the SQLAlchemy implementation of the outbox event
store. It persists event envelopes, serves the poller's due-set query,
records delivery outcomes and answers the diagnostics queries.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import ColumnElement, and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from infrastructure.database.models import as_utc
from infrastructure.outbox.models import OutboxEventModel
from shared_kernel.outbox.value_objects import EventEnvelope, OutboxEvent


def _dead_lettered() -> ColumnElement[bool]:
    """Rows that used up their own retry budget without being delivered."""
    return and_(
        OutboxEventModel.published.is_(False),
        OutboxEventModel.retry_count >= OutboxEventModel.max_retries,
    )


class OutboxEventRepository:
    """SQLAlchemy implementation of the outbox event store.

    This repository shares the session of its caller. When a use case
    appends events, they are written in the same transaction as the
    aggregate changes, which is what makes delivery at-least-once.

    The repository only calls session.add() and session.execute() - it never
    calls session.commit(). The caller owns the transaction boundary.
    """

    def __init__(self, session: AsyncSession, default_max_retries: int = 3) -> None:
        """Initialize the repository.

        Args:
            session: The SQLAlchemy async session (shared with the caller)
            default_max_retries: Retry ceiling for rows appended without one
        """
        self._session = session
        self._default_max_retries = default_max_retries

    def savepoint(self) -> AsyncSessionTransaction:
        """Open a nested transaction on the caller's session.

        Writes made inside it are rolled back on error without discarding
        the rest of the caller's transaction.
        """
        return self._session.begin_nested()

    async def append(
        self,
        envelope: EventEnvelope,
        now: datetime | None = None,
        scheduled_for: datetime | None = None,
        max_retries: int | None = None,
    ) -> None:
        """Append an event to the outbox within the current transaction.

        Args:
            envelope: The event to store
            now: Storage time (defaults to the current UTC time)
            scheduled_for: Earliest delivery time (defaults to ``now``)
            max_retries: Retry ceiling (defaults to the repository default)
        """
        now = now or datetime.now(UTC)
        model = OutboxEventModel(
            event_id=envelope.event_id,
            event_type=envelope.event_type,
            aggregate_id=envelope.aggregate_id,
            tenant_id=envelope.tenant_id,
            event_data=envelope.to_payload(),
            published=False,
            published_at=None,
            retry_count=0,
            max_retries=(
                max_retries if max_retries is not None else self._default_max_retries
            ),
            scheduled_for=scheduled_for or now,
            last_error=None,
            created_at=now,
            updated_at=now,
        )
        self._session.add(model)

    async def get(self, event_id: str) -> OutboxEvent | None:
        """Fetch one row by event id."""
        model = await self._session.get(OutboxEventModel, event_id)
        if model is None:
            return None
        return model.to_value_object()

    async def fetch_due(self, now: datetime, limit: int) -> list[OutboxEvent]:
        """Fetch due rows, earliest scheduled first.

        A row is due when it is unpublished, its schedule time has passed
        and it is still under its retry ceiling. Uses FOR UPDATE SKIP LOCKED
        where the dialect supports it, so rows claimed by one tick are not
        handed to another.

        Args:
            now: Reference time for the schedule check
            limit: Maximum number of rows to claim

        Returns:
            List of OutboxEvent snapshots in ``scheduled_for`` order
        """
        stmt = (
            select(OutboxEventModel)
            .where(OutboxEventModel.published.is_(False))
            .where(OutboxEventModel.scheduled_for <= now)
            .where(OutboxEventModel.retry_count < OutboxEventModel.max_retries)
            .order_by(OutboxEventModel.scheduled_for, OutboxEventModel.event_id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )

        result = await self._session.execute(stmt)
        return [model.to_value_object() for model in result.scalars().all()]

    async def mark_published(self, event_id: str, now: datetime) -> bool:
        """Mark an unpublished row as delivered.

        Returns:
            True if a row changed, False if it was already published or gone
        """
        stmt = (
            update(OutboxEventModel)
            .where(OutboxEventModel.event_id == event_id)
            .where(OutboxEventModel.published.is_(False))
            .values(published=True, published_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def record_failure(
        self,
        event_id: str,
        retry_count: int,
        error: str,
        next_attempt_at: datetime,
        now: datetime,
    ) -> None:
        """Store the retry bookkeeping for a failed delivery.

        Args:
            event_id: The row that failed
            retry_count: The incremented retry count
            error: The failure message
            next_attempt_at: When the row becomes due again
            now: Failure time
        """
        stmt = (
            update(OutboxEventModel)
            .where(OutboxEventModel.event_id == event_id)
            .where(OutboxEventModel.published.is_(False))
            .values(
                retry_count=retry_count,
                last_error=error,
                scheduled_for=next_attempt_at,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def delete_unpublished(self, event_id: str) -> bool:
        """Delete a row that has not been delivered.

        Returns:
            True if a row was deleted, False if none matched
        """
        stmt = (
            delete(OutboxEventModel)
            .where(OutboxEventModel.event_id == event_id)
            .where(OutboxEventModel.published.is_(False))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def count_pending(self, now: datetime) -> int:
        """Count unpublished rows whose schedule time has passed."""
        stmt = (
            select(func.count())
            .select_from(OutboxEventModel)
            .where(OutboxEventModel.published.is_(False))
            .where(OutboxEventModel.scheduled_for <= now)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_created_since(self, since: datetime) -> int:
        """Count rows stored at or after ``since``."""
        stmt = (
            select(func.count())
            .select_from(OutboxEventModel)
            .where(OutboxEventModel.created_at >= since)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_dead_lettered_since(self, since: datetime) -> int:
        """Count dead-lettered rows stored at or after ``since``."""
        stmt = (
            select(func.count())
            .select_from(OutboxEventModel)
            .where(_dead_lettered())
            .where(OutboxEventModel.created_at >= since)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_published_since(self, since: datetime) -> int:
        """Count rows delivered at or after ``since``."""
        stmt = (
            select(func.count())
            .select_from(OutboxEventModel)
            .where(OutboxEventModel.published.is_(True))
            .where(OutboxEventModel.published_at >= since)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def average_retry_count_published_since(self, since: datetime) -> float:
        """Average retry count of rows delivered at or after ``since``."""
        stmt = (
            select(func.avg(OutboxEventModel.retry_count))
            .where(OutboxEventModel.published.is_(True))
            .where(OutboxEventModel.published_at >= since)
        )
        value = (await self._session.execute(stmt)).scalar_one_or_none()
        return float(value) if value is not None else 0.0

    async def last_published_at(self) -> datetime | None:
        """Most recent delivery time, if anything was ever delivered."""
        stmt = select(func.max(OutboxEventModel.published_at)).where(
            OutboxEventModel.published.is_(True)
        )
        value = (await self._session.execute(stmt)).scalar_one_or_none()
        return as_utc(value) if value is not None else None

    async def list_dead_lettered(self, limit: int, offset: int) -> list[OutboxEvent]:
        """List dead-lettered rows, most recently failed first."""
        stmt = (
            select(OutboxEventModel)
            .where(_dead_lettered())
            .order_by(OutboxEventModel.updated_at.desc(), OutboxEventModel.event_id)
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [model.to_value_object() for model in result.scalars().all()]

    async def count_dead_lettered(self) -> int:
        """Count all dead-lettered rows."""
        stmt = select(func.count()).select_from(OutboxEventModel).where(_dead_lettered())
        return (await self._session.execute(stmt)).scalar_one()

    async def reset_dead_lettered(
        self, event_ids: Sequence[str] | None, now: datetime
    ) -> int:
        """Return dead-lettered rows to the due set.

        Args:
            event_ids: Rows to reset; None resets every dead-lettered row
            now: New schedule time

        Returns:
            Number of rows reset
        """
        stmt = (
            update(OutboxEventModel)
            .where(_dead_lettered())
            .values(retry_count=0, scheduled_for=now, last_error=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if event_ids is not None:
            stmt = stmt.where(OutboxEventModel.event_id.in_(list(event_ids)))
        result = await self._session.execute(stmt)
        return result.rowcount
