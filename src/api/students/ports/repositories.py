"""Repository protocols (ports) for the students bounded context.

Repository protocols define the interface for persisting and retrieving
Student aggregates. Implementations write the student row and the
aggregate's domain events to the outbox in the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable

from students.domain.aggregates import Student
from students.domain.value_objects import StudentStatus


class StudentSortField(StrEnum):
    """Columns a student search can be ordered by."""

    LAST_NAME = "last_name"
    FIRST_NAME = "first_name"
    STUDENT_NUMBER = "student_number"
    ENROLLMENT_DATE = "enrollment_date"
    CREATED_AT = "created_at"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class StudentSearchCriteria:
    """Filters for a tenant-scoped student search.

    All filters are optional and combine with AND. Name filters are
    case-insensitive substring matches.
    """

    first_name: str | None = None
    last_name: str | None = None
    status: StudentStatus | None = None
    enrollment_year: int | None = None
    graduation_year: int | None = None
    min_age: int | None = None
    max_age: int | None = None
    has_allergies: bool | None = None
    has_medical_conditions: bool | None = None
    sort_by: StudentSortField = StudentSortField.LAST_NAME
    sort_order: SortOrder = SortOrder.ASC


@runtime_checkable
class IStudentRepository(Protocol):
    """Repository for Student aggregate persistence.

    Every query is scoped to a tenant and ignores soft-deleted students.
    Writes use compare-and-swap on the aggregate version.
    """

    async def save(self, student: Student) -> None:
        """Persist a student aggregate.

        Inserts a new student at version 1, or updates an existing one when
        the stored version matches the aggregate's. Collected domain events
        are appended to the outbox in the same transaction. On success the
        aggregate's version advances.

        Args:
            student: The Student aggregate to persist

        Raises:
            DuplicateStudentError: If a tenant-unique field is already taken
            ConcurrencyError: If the stored version differs
            StudentNotFoundError: If the stored row is gone
        """
        ...

    async def get_by_id(self, student_id: str, tenant_id: str) -> Student | None:
        """Retrieve a student by ULID or student number.

        Args:
            student_id: The student's ULID, or a student number
            tenant_id: The owning tenant

        Returns:
            The Student aggregate, or None if not found or deleted
        """
        ...

    async def find_by_student_number(
        self, student_number: str, tenant_id: str
    ) -> Student | None:
        ...

    async def find_by_email(self, email: str, tenant_id: str) -> Student | None:
        ...

    async def find_by_national_id(
        self, national_id: str, tenant_id: str
    ) -> Student | None:
        ...

    async def list_by_status(
        self, status: StudentStatus, tenant_id: str
    ) -> list[Student]:
        """List every student in a status, ordered by last then first name."""
        ...

    async def search(
        self,
        criteria: StudentSearchCriteria,
        tenant_id: str,
        limit: int,
        offset: int,
    ) -> tuple[list[Student], int]:
        """Search students.

        Args:
            criteria: Filters and ordering
            tenant_id: The tenant to search within
            limit: Maximum students to return
            offset: Number of matching students to skip

        Returns:
            The page of students and the total number of matches
        """
        ...

    async def count(self, tenant_id: str) -> int:
        """Count all live students in a tenant."""
        ...

    async def is_student_number_unique(
        self, student_number: str, tenant_id: str, exclude_id: str | None = None
    ) -> bool:
        ...

    async def is_email_unique(
        self, email: str, tenant_id: str, exclude_id: str | None = None
    ) -> bool:
        ...

    async def is_national_id_unique(
        self, national_id: str, tenant_id: str, exclude_id: str | None = None
    ) -> bool:
        ...

    async def delete(self, student: Student) -> None:
        """Soft-delete a student.

        The student should have mark_for_deletion() called before this method
        to record the StudentDeleted event. Uses the same compare-and-swap
        guard as save().

        Args:
            student: The Student aggregate to delete (with deletion event recorded)

        Raises:
            ConcurrencyError: If the stored version differs
            StudentNotFoundError: If the stored row is gone
        """
        ...
