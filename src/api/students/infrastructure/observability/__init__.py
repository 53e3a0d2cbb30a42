"""Domain-Oriented Observability for students infrastructure."""

from students.infrastructure.observability.delivery_probe import (
    DefaultStudentDeliveryProbe,
    StudentDeliveryProbe,
)
from students.infrastructure.observability.repository_probe import (
    DefaultStudentRepositoryProbe,
    StudentRepositoryProbe,
)

__all__ = [
    "DefaultStudentDeliveryProbe",
    "DefaultStudentRepositoryProbe",
    "StudentDeliveryProbe",
    "StudentRepositoryProbe",
]
