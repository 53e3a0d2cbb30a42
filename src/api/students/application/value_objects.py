"""Application-layer value objects for the students bounded context.

These carry command input into the service and results back out. They
hold domain value objects, so the presentation layer does the parsing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from students.domain.aggregates import Student
from students.domain.policies import GraduationSummary
from students.domain.value_objects import (
    Address,
    Email,
    Gender,
    GuardianInfo,
    PhoneNumber,
    StudentNumber,
)


@dataclass(frozen=True)
class RequestScope:
    """Tenant and actor a request runs as.

    Taken from the X-Tenant-ID and X-User-ID headers, with configured
    defaults when they are absent.
    """

    tenant_id: str
    user_id: str


@dataclass(frozen=True)
class EnrollmentData:
    """Everything needed to enroll a student.

    A missing ``student_number`` is generated.
    """

    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    address: Address
    guardians: list[GuardianInfo]
    enrollment_date: date
    student_number: StudentNumber | None = None
    email: Email | None = None
    phone_number: PhoneNumber | None = None
    national_id: str | None = None
    blood_type: str | None = None
    allergies: list[str] = field(default_factory=list)
    medical_conditions: list[str] = field(default_factory=list)
    notes: str | None = None


@dataclass(frozen=True)
class StudentUpdateResult:
    student: Student
    changed_fields: list[str]


@dataclass(frozen=True)
class GraduationResult:
    student: Student
    summary: GraduationSummary


@dataclass(frozen=True)
class StudentPage:
    """One page of a student search.

    Attributes:
        students: Students on this page
        total: Students matching the search
        page: 1-based page number
        limit: Page size
        total_pages: Pages needed for ``total`` at this size
        has_next: Whether a later page exists
        has_previous: Whether an earlier page exists
        total_students: All live students in the tenant, unfiltered
    """

    students: list[Student]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_previous: bool
    total_students: int
