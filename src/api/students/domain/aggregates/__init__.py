"""Domain aggregates for the students context.

Aggregates are the core business objects containing state and business logic.
They enforce invariants and business rules without depending on infrastructure.
"""

from students.domain.aggregates.student import Student

__all__ = [
    "Student",
]
