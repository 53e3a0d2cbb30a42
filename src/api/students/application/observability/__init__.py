"""Domain-Oriented Observability for the students application layer."""

from students.application.observability.student_service_probe import (
    DefaultStudentServiceProbe,
    StudentServiceProbe,
)

__all__ = [
    "DefaultStudentServiceProbe",
    "StudentServiceProbe",
]
