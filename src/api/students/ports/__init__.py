"""Ports (interfaces) for the students bounded context.

Ports define the contracts for repositories without specifying
implementation details. This keeps the domain and application layers
independent of infrastructure.

Only the exceptions are re-exported here: the domain layer raises them,
and the repository protocol in ``students.ports.repositories`` depends on
the domain, so importing it from this package would be circular.
"""

from students.ports.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
    StudentValidationError,
)

__all__ = [
    "BusinessRuleViolationError",
    "ConcurrencyError",
    "DuplicateStudentError",
    "StudentNotFoundError",
    "StudentValidationError",
]
