"""Protocol for student application service observability.

Defines the interface for domain probes that capture application-level
domain events for student service operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class StudentServiceProbe(Protocol):
    """Domain probe for student application service operations."""

    def student_enrolled(self, student_id: str, student_number: str) -> None:
        """Record that a student was enrolled."""
        ...

    def student_retrieved(self, student_id: str) -> None:
        """Record that a student was retrieved."""
        ...

    def student_not_found(self, student_id: str) -> None:
        """Record that a student was not found."""
        ...

    def student_updated(
        self, student_id: str, changed_fields: list[str], version: int
    ) -> None:
        """Record that student details changed."""
        ...

    def student_status_changed(
        self, student_id: str, from_status: str, to_status: str
    ) -> None:
        """Record a status transition (suspend, transfer, reactivate, graduate)."""
        ...

    def student_graduated(self, student_id: str, academic_year: str) -> None:
        """Record that a student graduated."""
        ...

    def student_deleted(self, student_id: str) -> None:
        """Record that a student was soft-deleted."""
        ...

    def students_searched(self, returned: int, total: int) -> None:
        """Record that a search ran."""
        ...

    def operation_failed(
        self, operation: str, error: Exception, student_id: str | None = None
    ) -> None:
        """Record that a command was rejected or failed."""
        ...

    def with_context(self, context: ObservationContext) -> StudentServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultStudentServiceProbe:
    """Default implementation of StudentServiceProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultStudentServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultStudentServiceProbe(logger=self._logger, context=context)

    def student_enrolled(self, student_id: str, student_number: str) -> None:
        """Record that a student was enrolled."""
        self._logger.info(
            "student_enrolled",
            student_id=student_id,
            student_number=student_number,
            **self._get_context_kwargs(),
        )

    def student_retrieved(self, student_id: str) -> None:
        """Record that a student was retrieved."""
        self._logger.debug(
            "student_retrieved",
            student_id=student_id,
            **self._get_context_kwargs(),
        )

    def student_not_found(self, student_id: str) -> None:
        """Record that a student was not found."""
        self._logger.debug(
            "student_not_found",
            student_id=student_id,
            **self._get_context_kwargs(),
        )

    def student_updated(
        self, student_id: str, changed_fields: list[str], version: int
    ) -> None:
        """Record that student details changed."""
        self._logger.info(
            "student_updated",
            student_id=student_id,
            changed_fields=changed_fields,
            version=version,
            **self._get_context_kwargs(),
        )

    def student_status_changed(
        self, student_id: str, from_status: str, to_status: str
    ) -> None:
        """Record a status transition."""
        self._logger.info(
            "student_status_changed",
            student_id=student_id,
            from_status=from_status,
            to_status=to_status,
            **self._get_context_kwargs(),
        )

    def student_graduated(self, student_id: str, academic_year: str) -> None:
        """Record that a student graduated."""
        self._logger.info(
            "student_graduated",
            student_id=student_id,
            academic_year=academic_year,
            **self._get_context_kwargs(),
        )

    def student_deleted(self, student_id: str) -> None:
        """Record that a student was soft-deleted."""
        self._logger.info(
            "student_deleted",
            student_id=student_id,
            **self._get_context_kwargs(),
        )

    def students_searched(self, returned: int, total: int) -> None:
        """Record that a search ran."""
        self._logger.debug(
            "students_searched",
            returned=returned,
            total=total,
            **self._get_context_kwargs(),
        )

    def operation_failed(
        self, operation: str, error: Exception, student_id: str | None = None
    ) -> None:
        """Record that a command was rejected or failed."""
        self._logger.warning(
            "student_operation_failed",
            operation=operation,
            student_id=student_id,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )
