"""Student event serializer for outbox persistence.

Converts student domain events into envelopes whose ``event_data`` holds
the JSON-safe event fields. Fields already carried by the envelope are
left out of ``event_data``.
"""

from __future__ import annotations

from typing import get_args

from shared_kernel.outbox import EventEnvelope, serialize_event_fields
from students.domain.events import DomainEvent

AGGREGATE_TYPE = "Student"

# Fields promoted to the envelope itself
_ENVELOPE_FIELDS = frozenset(
    {"event_id", "student_id", "tenant_id", "version", "occurred_at"}
)

# Derive supported events from the DomainEvent type alias
_EVENT_CLASSES: tuple[type, ...] = get_args(DomainEvent)
_SUPPORTED_EVENTS: frozenset[str] = frozenset(cls.event_type for cls in _EVENT_CLASSES)


class StudentEventSerializer:
    """Serializes student domain events into outbox envelopes.

    This serializer handles all student events defined in the DomainEvent
    type alias.
    """

    def supported_event_types(self) -> frozenset[str]:
        """Return the event type tags this serializer handles."""
        return _SUPPORTED_EVENTS

    def to_envelope(self, event: DomainEvent) -> EventEnvelope:
        """Wrap a student event in an envelope.

        Args:
            event: The domain event to serialize

        Returns:
            Envelope with aggregate_type "Student"

        Raises:
            ValueError: If the event type is not supported
        """
        if not isinstance(event, _EVENT_CLASSES):
            raise ValueError(f"Unsupported event type: {type(event).__name__}")

        return EventEnvelope(
            event_id=event.event_id,
            event_type=event.event_type,
            aggregate_id=event.student_id,
            aggregate_type=AGGREGATE_TYPE,
            tenant_id=event.tenant_id,
            occurred_on=event.occurred_at,
            version=event.version,
            event_data=serialize_event_fields(event, exclude=_ENVELOPE_FIELDS),
        )
