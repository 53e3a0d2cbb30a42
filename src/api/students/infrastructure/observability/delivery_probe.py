"""Domain probe for student event delivery.

Following Domain-Oriented Observability patterns, this probe captures
what the students context's delivery handlers do with outbox events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class StudentDeliveryProbe(Protocol):
    """Domain probe for student delivery handlers."""

    def guardian_notified(
        self,
        event_id: str,
        event_type: str,
        student_id: str,
        guardian_email: str,
    ) -> None:
        """Record that a guardian notification was handed off."""
        ...

    def with_context(self, context: ObservationContext) -> StudentDeliveryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultStudentDeliveryProbe:
    """Default implementation of StudentDeliveryProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultStudentDeliveryProbe:
        """Create a new probe with observation context bound."""
        return DefaultStudentDeliveryProbe(logger=self._logger, context=context)

    def guardian_notified(
        self,
        event_id: str,
        event_type: str,
        student_id: str,
        guardian_email: str,
    ) -> None:
        self._logger.info(
            "guardian_notified",
            event_id=event_id,
            event_type=event_type,
            student_id=student_id,
            guardian_email=guardian_email,
            **self._get_context_kwargs(),
        )
