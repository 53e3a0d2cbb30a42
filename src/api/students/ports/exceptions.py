"""Domain exceptions for the students bounded context.

These exceptions represent domain-level errors raised by value objects,
the Student aggregate, enrollment policies and the repository. They
should be caught and handled by the application and presentation layers.
"""

from __future__ import annotations

from typing import Any


class StudentValidationError(ValueError):
    """Raised when a value fails a domain validation rule.

    Attributes:
        field: Name of the offending field
        value: The rejected value
        reason: Human-readable explanation
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.value = value
        self.reason = reason


class StudentNotFoundError(Exception):
    """Raised when a student does not exist in the tenant (or was deleted)."""

    def __init__(self, student_id: str, tenant_id: str) -> None:
        super().__init__(f"Student {student_id} not found in tenant {tenant_id}")
        self.student_id = student_id
        self.tenant_id = tenant_id


class DuplicateStudentError(Exception):
    """Raised when a tenant-unique student field is already taken.

    This exception indicates that the business rule of unique student
    numbers, emails and national ids per tenant has been violated.
    """

    def __init__(self, field: str, value: str, tenant_id: str) -> None:
        super().__init__(f"A student with {field} '{value}' already exists")
        self.field = field
        self.value = value
        self.tenant_id = tenant_id


class ConcurrencyError(Exception):
    """Raised when a compare-and-swap write finds a different version.

    Attributes:
        entity: Aggregate type name
        entity_id: Aggregate identifier
        expected_version: Version the writer read
        actual_version: Version currently stored (None if unknown)
    """

    def __init__(
        self,
        entity: str,
        entity_id: str,
        expected_version: int,
        actual_version: int | None,
    ) -> None:
        super().__init__(
            f"{entity} {entity_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class BusinessRuleViolationError(Exception):
    """Raised when an operation is valid in shape but forbidden by policy."""

    def __init__(
        self, rule: str, message: str, details: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.rule = rule
        self.message = message
        self.details = details or {}
