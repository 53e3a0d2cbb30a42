"""Domain probe for the database engine lifecycle.

The engine is created lazily on the first session request (or by the
outbox publisher at startup) and disposed on shutdown. Both ends of that
lifecycle, and a failed creation, are reported here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class DatabaseEngineProbe(Protocol):
    """Reports creation and disposal of the shared write engine."""

    def engine_created(self, target: str, dialect: str, pool_size: int | None) -> None:
        """Record a new engine. ``pool_size`` is None for dialect-default pooling."""
        ...

    def engine_creation_failed(self, target: str, error: Exception) -> None:
        ...

    def engine_disposed(self, target: str) -> None:
        ...

    def with_context(self, context: ObservationContext) -> DatabaseEngineProbe:
        ...


class DefaultDatabaseEngineProbe:
    """structlog-backed DatabaseEngineProbe.

    ``target`` is always the password-free connection string.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultDatabaseEngineProbe:
        return DefaultDatabaseEngineProbe(logger=self._logger, context=context)

    def engine_created(self, target: str, dialect: str, pool_size: int | None) -> None:
        self._logger.info(
            "database_engine_created",
            target=target,
            dialect=dialect,
            pool_size=pool_size,
            **self._get_context_kwargs(),
        )

    def engine_creation_failed(self, target: str, error: Exception) -> None:
        self._logger.error(
            "database_engine_creation_failed",
            target=target,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def engine_disposed(self, target: str) -> None:
        self._logger.info(
            "database_engine_disposed",
            target=target,
            **self._get_context_kwargs(),
        )
