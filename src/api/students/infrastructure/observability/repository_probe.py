"""Domain probe for student repository operations.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events related to student persistence.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class StudentRepositoryProbe(Protocol):
    """Domain probe for student repository operations.

    Records domain events during student persistence operations.
    """

    def student_saved(
        self, student_id: str, tenant_id: str, version: int, event_count: int
    ) -> None:
        """Record that a student and its events were written."""
        ...

    def student_not_found(self, student_id: str, tenant_id: str) -> None:
        """Record that a lookup found no live student."""
        ...

    def student_deleted(self, student_id: str, tenant_id: str) -> None:
        """Record that a student was soft-deleted."""
        ...

    def version_conflict(
        self,
        student_id: str,
        expected_version: int,
        actual_version: int | None,
    ) -> None:
        """Record that a compare-and-swap write lost a race."""
        ...

    def duplicate_student_number(self, student_number: str, tenant_id: str) -> None:
        """Record that an insert collided on the student number."""
        ...

    def with_context(self, context: ObservationContext) -> StudentRepositoryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultStudentRepositoryProbe:
    """Default implementation of StudentRepositoryProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging.

        Methods pass tenant_id explicitly, so the context's copy is dropped.
        """
        if self._context is None:
            return {}
        kwargs = self._context.as_dict()
        kwargs.pop("tenant_id", None)
        return kwargs

    def with_context(
        self, context: ObservationContext
    ) -> DefaultStudentRepositoryProbe:
        """Create a new probe with observation context bound."""
        return DefaultStudentRepositoryProbe(logger=self._logger, context=context)

    def student_saved(
        self, student_id: str, tenant_id: str, version: int, event_count: int
    ) -> None:
        self._logger.info(
            "student_saved",
            student_id=student_id,
            tenant_id=tenant_id,
            version=version,
            event_count=event_count,
            **self._get_context_kwargs(),
        )

    def student_not_found(self, student_id: str, tenant_id: str) -> None:
        self._logger.debug(
            "student_not_found",
            student_id=student_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def student_deleted(self, student_id: str, tenant_id: str) -> None:
        self._logger.info(
            "student_deleted",
            student_id=student_id,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def version_conflict(
        self,
        student_id: str,
        expected_version: int,
        actual_version: int | None,
    ) -> None:
        self._logger.warning(
            "student_version_conflict",
            student_id=student_id,
            expected_version=expected_version,
            actual_version=actual_version,
            **self._get_context_kwargs(),
        )

    def duplicate_student_number(self, student_number: str, tenant_id: str) -> None:
        self._logger.warning(
            "duplicate_student_number",
            student_number=student_number,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )
