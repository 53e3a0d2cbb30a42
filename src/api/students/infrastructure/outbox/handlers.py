"""Delivery handlers for student events.

Status changes that a family needs to hear about (graduation, transfer,
suspension) are routed to the guardian notification handler. Every other
student event falls through to the publisher's default handler.
"""

from __future__ import annotations

from shared_kernel.outbox import DomainEventPublisher, EventEnvelope
from students.domain.events import (
    StudentGraduated,
    StudentSuspended,
    StudentTransferred,
)
from students.infrastructure.observability import (
    DefaultStudentDeliveryProbe,
    StudentDeliveryProbe,
)

GUARDIAN_NOTIFICATION_EVENTS: frozenset[str] = frozenset(
    {
        StudentGraduated.event_type,
        StudentTransferred.event_type,
        StudentSuspended.event_type,
    }
)


class GuardianNotificationHandler:
    """Hands status-change events to the primary guardian's contact channel.

    The guardian snapshot travels inside the event, so delivery never reads
    the student back. An event without one is a delivery failure and goes
    through the publisher's retry path.
    """

    def __init__(self, probe: StudentDeliveryProbe | None = None) -> None:
        self._probe = probe or DefaultStudentDeliveryProbe()

    async def __call__(self, envelope: EventEnvelope) -> None:
        guardian = envelope.event_data.get("primary_guardian")
        if not guardian or not guardian.get("email"):
            raise ValueError(
                f"Event {envelope.event_id} ({envelope.event_type}) has no "
                "primary guardian to notify"
            )
        self._probe.guardian_notified(
            event_id=envelope.event_id,
            event_type=envelope.event_type,
            student_id=envelope.aggregate_id,
            guardian_email=guardian["email"],
        )


def register_student_handlers(
    publisher: DomainEventPublisher,
    probe: StudentDeliveryProbe | None = None,
) -> frozenset[str]:
    """Register the students context's delivery handlers.

    Returns:
        The event types that now have a dedicated handler
    """
    handler = GuardianNotificationHandler(probe=probe)
    for event_type in sorted(GUARDIAN_NOTIFICATION_EVENTS):
        publisher.register_delivery_handler(event_type, handler)
    return GUARDIAN_NOTIFICATION_EVENTS
