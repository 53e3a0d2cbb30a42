"""Domain events for the students bounded context.

Domain events capture facts about things that have happened in the domain.
They are appended to the outbox in the same transaction as the student
change that raised them.
"""

from students.domain.events.student import (
    ContactType,
    GuardianSnapshot,
    StudentContactUpdated,
    StudentDeleted,
    StudentEnrolled,
    StudentGraduated,
    StudentReactivated,
    StudentSuspended,
    StudentTransferred,
    StudentUpdated,
)

DomainEvent = (
    StudentEnrolled
    | StudentUpdated
    | StudentGraduated
    | StudentTransferred
    | StudentSuspended
    | StudentReactivated
    | StudentContactUpdated
    | StudentDeleted
)

__all__ = [
    "ContactType",
    "DomainEvent",
    "GuardianSnapshot",
    "StudentContactUpdated",
    "StudentDeleted",
    "StudentEnrolled",
    "StudentGraduated",
    "StudentReactivated",
    "StudentSuspended",
    "StudentTransferred",
    "StudentUpdated",
]
