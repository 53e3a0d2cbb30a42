"""Outbox integration for the students context."""

from students.infrastructure.outbox.handlers import (
    GUARDIAN_NOTIFICATION_EVENTS,
    GuardianNotificationHandler,
    register_student_handlers,
)
from students.infrastructure.outbox.serializer import StudentEventSerializer

__all__ = [
    "GUARDIAN_NOTIFICATION_EVENTS",
    "GuardianNotificationHandler",
    "StudentEventSerializer",
    "register_student_handlers",
]
