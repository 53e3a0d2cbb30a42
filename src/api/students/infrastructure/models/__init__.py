"""SQLAlchemy ORM models for the students bounded context.

These models map to database tables and are used by repository implementations.
"""

from students.infrastructure.models.student import StudentModel

__all__ = ["StudentModel"]
