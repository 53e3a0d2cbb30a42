"""Student domain events.

Domain events capture facts about things that have happened to a student.
They are immutable value objects carrying everything an integration needs,
so delivery handlers never have to read the student back.

Every event carries the aggregate version it describes: the version the
student will have once the change that raised it is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import ClassVar

from ulid import ULID

from students.domain.value_objects import Address, StudentStatus


def _new_event_id() -> str:
    return str(ULID())


class ContactType(StrEnum):
    """Which contact detail a StudentContactUpdated event refers to."""

    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    GUARDIAN = "guardian"


@dataclass(frozen=True)
class GuardianSnapshot:
    """The primary guardian's contact details at the time of the event."""

    full_name: str
    email: str
    phone_number: str
    relationship: str


@dataclass(frozen=True)
class StudentEnrolled:
    """Event raised when a student is enrolled.

    Attributes:
        student_id: The ULID of the enrolled student
        tenant_id: The owning tenant
        version: Aggregate version (always 1 for a new student)
        student_number: The assigned student number
        first_name: Student first name
        last_name: Student last name
        date_of_birth: Student date of birth
        gender: Recorded gender
        enrollment_date: Date of enrollment
        primary_guardian: Primary contact at enrollment
        address: Home address at enrollment
        occurred_at: When the event occurred (UTC)
    """

    event_type: ClassVar[str] = "student.enrolled"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str
    enrollment_date: date
    primary_guardian: GuardianSnapshot
    address: Address
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)


@dataclass(frozen=True)
class StudentUpdated:
    """Event raised when student details change.

    Attributes:
        updated_fields: Names of the fields whose values actually changed
        current_status: Status after the update
    """

    event_type: ClassVar[str] = "student.updated"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    full_name: str
    updated_fields: tuple[str, ...]
    current_status: StudentStatus
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)


@dataclass(frozen=True)
class StudentGraduated:
    """Event raised when a student graduates.

    ``years_enrolled`` counts whole years between enrollment and graduation.
    """

    event_type: ClassVar[str] = "student.graduated"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    full_name: str
    enrollment_date: date
    graduation_date: date
    years_enrolled: int
    primary_guardian: GuardianSnapshot
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)


@dataclass(frozen=True)
class StudentTransferred:
    """Event raised when a student transfers to another school."""

    event_type: ClassVar[str] = "student.transferred"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    full_name: str
    enrollment_date: date
    reason: str
    primary_guardian: GuardianSnapshot
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)


@dataclass(frozen=True)
class StudentSuspended:
    """Event raised when a student is suspended."""

    event_type: ClassVar[str] = "student.suspended"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    full_name: str
    reason: str
    primary_guardian: GuardianSnapshot
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)


@dataclass(frozen=True)
class StudentReactivated:
    """Event raised when a suspended, transferred or inactive student returns."""

    event_type: ClassVar[str] = "student.reactivated"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    full_name: str
    previous_status: StudentStatus
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)


@dataclass(frozen=True)
class StudentContactUpdated:
    """Event raised when the student's email, phone, address or guardians change."""

    event_type: ClassVar[str] = "student.contact_updated"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    contact_type: ContactType
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)


@dataclass(frozen=True)
class StudentDeleted:
    """Event raised when a student record is soft-deleted."""

    event_type: ClassVar[str] = "student.deleted"

    student_id: str
    tenant_id: str
    version: int
    student_number: str
    full_name: str
    deleted_by: str | None
    occurred_at: datetime
    event_id: str = field(default_factory=_new_event_id)
