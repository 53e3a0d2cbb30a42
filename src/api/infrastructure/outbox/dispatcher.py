"""Delivery dispatcher for outbox events.

Routes a due event to the handler registered for its type and records
the outcome on the event's row.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from shared_kernel.outbox.ports import DeliveryHandler

if TYPE_CHECKING:
    from infrastructure.outbox.repository import OutboxEventRepository
    from shared_kernel.outbox.observability import OutboxPublisherProbe
    from shared_kernel.outbox.value_objects import EventEnvelope, OutboxEvent


class DeliveryDispatcher:
    """Delivers single outbox events through registered handlers.

    The registry maps an event type to one async handler. Registering a
    second handler for the same type replaces the first. Events whose type
    has no handler go through the default handler, which only reports the
    event and counts as a successful delivery.
    """

    def __init__(
        self,
        probe: OutboxPublisherProbe,
        base_backoff_ms: int,
        max_backoff_ms: int,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            probe: Observability probe for delivery outcomes
            base_backoff_ms: Delay after the first failure
            max_backoff_ms: Ceiling for the exponential delay
        """
        self._probe = probe
        self._base_backoff_ms = base_backoff_ms
        self._max_backoff_ms = max_backoff_ms
        self._handlers: dict[str, DeliveryHandler] = {}

    @property
    def registered_event_types(self) -> frozenset[str]:
        """Event types that have a dedicated handler."""
        return frozenset(self._handlers)

    def register(self, event_type: str, handler: DeliveryHandler) -> None:
        """Register ``handler`` for ``event_type``, replacing any existing one."""
        replaced = event_type in self._handlers
        self._handlers[event_type] = handler
        self._probe.handler_registered(event_type, replaced=replaced)

    def backoff_for(self, retry_count: int) -> timedelta:
        """Delay before the next attempt of an event that failed ``retry_count`` times before.

        Args:
            retry_count: Failed attempts recorded before the current failure

        Returns:
            ``min(base * 2**retry_count, max)`` as a timedelta
        """
        delay_ms = min(self._base_backoff_ms * (2**retry_count), self._max_backoff_ms)
        return timedelta(milliseconds=delay_ms)

    async def dispatch(
        self,
        event: OutboxEvent,
        repository: OutboxEventRepository,
        now: datetime,
    ) -> bool:
        """Attempt delivery of one event and record the outcome.

        Handler errors and store errors are both caught here, so one bad
        event cannot stop the rest of the batch. The outcome is written in
        a savepoint: if the store rejects it, only this event's writes are
        rolled back and the row stays due for the next tick.

        Args:
            event: The due event
            repository: Store bound to the tick's session
            now: Time of the attempt

        Returns:
            True if delivered and recorded, False otherwise
        """
        error: str | None = None
        try:
            envelope = event.to_envelope()
            handler = self._handlers.get(event.event_type)
            if handler is None:
                await self._default_handler(envelope)
            else:
                await handler(envelope)
        except Exception as e:
            error = str(e) or type(e).__name__

        try:
            async with repository.savepoint():
                if error is None:
                    await repository.mark_published(event.event_id, now)
                else:
                    await self._record_failure(event, repository, error, now)
        except Exception as e:
            self._probe.event_bookkeeping_failed(
                event.event_id, event.event_type, str(e) or type(e).__name__
            )
            return False

        if error is not None:
            return False
        self._probe.event_delivered(event.event_id, event.event_type)
        return True

    async def _default_handler(self, envelope: EventEnvelope) -> None:
        """Fallback for event types nobody subscribed to."""
        self._probe.default_handler_used(envelope.event_id, envelope.event_type)

    async def _record_failure(
        self,
        event: OutboxEvent,
        repository: OutboxEventRepository,
        error: str,
        now: datetime,
    ) -> None:
        """Increment the retry count and push the schedule out by the backoff."""
        new_retry_count = event.retry_count + 1
        next_attempt_at = now + self.backoff_for(event.retry_count)

        await repository.record_failure(
            event.event_id,
            retry_count=new_retry_count,
            error=error,
            next_attempt_at=next_attempt_at,
            now=now,
        )

        if new_retry_count >= event.max_retries:
            self._probe.event_dead_lettered(
                event.event_id, event.event_type, error, new_retry_count
            )
        else:
            self._probe.event_delivery_failed(
                event.event_id, event.event_type, error, new_retry_count, next_attempt_at
            )
