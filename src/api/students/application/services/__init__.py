"""Application services for the students bounded context.

Application services orchestrate the Student aggregate, its repository
and the outbox publisher to fulfill use cases.
"""

from students.application.services.student_service import StudentService

__all__ = ["StudentService"]
