"""Protocols (ports) for the outbox pattern.

These protocols define the interfaces that producers and integrations
depend on. Bounded contexts publish through ``DomainEventPublisher`` and
register their own ``EventSerializer`` without shared_kernel knowing
about their event types.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shared_kernel.outbox.value_objects import (
        BatchPublishResult,
        CancelResult,
        EventEnvelope,
        PublishOptions,
        PublishResult,
    )


DeliveryHandler = Callable[["EventEnvelope"], Awaitable[None]]
"""Delivers one event downstream. Raising signals a failed delivery."""


@runtime_checkable
class DomainEventPublisher(Protocol):
    """Publishes domain events with at-least-once delivery.

    Every method returns a structured result. Storage problems are reported
    through the result, never raised to the caller.
    """

    async def publish(
        self,
        event: "EventEnvelope",
        options: "PublishOptions | None" = None,
    ) -> "PublishResult":
        """Store one event for delivery.

        Args:
            event: The event to store
            options: Optional retry, scheduling and metadata options

        Returns:
            Result carrying the event id and the storage time
        """
        ...

    async def publish_batch(
        self,
        events: Sequence["EventEnvelope"],
        options: "PublishOptions | None" = None,
    ) -> "BatchPublishResult":
        """Store several events in one all-or-nothing transaction."""
        ...

    async def publish_and_wait(
        self,
        event: "EventEnvelope",
        timeout_ms: int = 30000,
        options: "PublishOptions | None" = None,
    ) -> "PublishResult":
        """Store one event and return its (currently empty) acknowledgments."""
        ...

    async def schedule_event(
        self,
        event: "EventEnvelope",
        schedule_time: datetime,
        options: "PublishOptions | None" = None,
    ) -> "PublishResult":
        """Store one event that becomes deliverable at ``schedule_time``."""
        ...

    async def cancel_scheduled_event(self, event_id: str) -> "CancelResult":
        """Delete an event that has not been delivered yet."""
        ...

    def register_delivery_handler(
        self, event_type: str, handler: DeliveryHandler
    ) -> None:
        """Route events of ``event_type`` to ``handler``, replacing any previous one."""
        ...

    def request_processing(self, source: str = "hint") -> bool:
        """Hint that stored events should be delivered without waiting for the timer.

        Returns:
            True if a new delivery pass was requested
        """
        ...


@runtime_checkable
class EventSerializer(Protocol):
    """Converts a bounded context's domain events into envelopes.

    Each bounded context provides its own implementation that knows how to
    serialize its domain events to JSON-compatible dictionaries. This keeps
    shared_kernel agnostic of specific domain event structures.
    """

    def supported_event_types(self) -> frozenset[str]:
        """Return the event type tags this serializer handles.

        Returns:
            Frozenset of event type tags (e.g., {"student.enrolled"})
        """
        ...

    def to_envelope(self, event: Any) -> "EventEnvelope":
        """Wrap a domain event in an envelope ready for the outbox.

        Args:
            event: The domain event to serialize

        Returns:
            Envelope whose ``event_data`` holds the JSON-safe event fields

        Raises:
            ValueError: If the event type is not supported
        """
        ...
