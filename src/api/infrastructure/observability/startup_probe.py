"""Domain probe for application startup and lifecycle events.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events during application initialization and shutdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class StartupProbe(Protocol):
    """Domain probe for application startup operations."""

    def application_starting(self, version: str) -> None:
        """Record that the application lifespan began."""
        ...

    def delivery_handlers_registered(
        self, context_name: str, event_types: frozenset[str]
    ) -> None:
        """Record that a bounded context registered its outbox handlers."""
        ...

    def outbox_autostart_disabled(self) -> None:
        """Record that the outbox poller was left stopped by configuration."""
        ...

    def application_stopped(self) -> None:
        """Record that shutdown finished."""
        ...

    def with_context(self, context: ObservationContext) -> StartupProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultStartupProbe:
    """Default implementation of StartupProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultStartupProbe:
        """Create a new probe with observation context bound."""
        return DefaultStartupProbe(logger=self._logger, context=context)

    def application_starting(self, version: str) -> None:
        """Record that the application lifespan began."""
        self._logger.info(
            "application_starting",
            version=version,
            **self._get_context_kwargs(),
        )

    def delivery_handlers_registered(
        self, context_name: str, event_types: frozenset[str]
    ) -> None:
        """Record that a bounded context registered its outbox handlers."""
        self._logger.info(
            "delivery_handlers_registered",
            context=context_name,
            event_types=sorted(event_types),
            event_count=len(event_types),
            **self._get_context_kwargs(),
        )

    def outbox_autostart_disabled(self) -> None:
        """Record that the outbox poller was left stopped by configuration."""
        self._logger.info(
            "outbox_autostart_disabled",
            **self._get_context_kwargs(),
        )

    def application_stopped(self) -> None:
        """Record that shutdown finished."""
        self._logger.info(
            "application_stopped",
            **self._get_context_kwargs(),
        )
