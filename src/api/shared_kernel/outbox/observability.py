"""Observability probes for the outbox publisher.

Following Domain Oriented Observability, probes capture domain-significant
events and metrics without cluttering business logic with logging concerns.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class OutboxPublisherProbe(Protocol):
    """Protocol for outbox publisher observability.

    Implementations can log, emit metrics, or send traces.
    """

    def publisher_started(self, processing_interval_ms: int, batch_size: int) -> None:
        """Called when the background poller starts."""
        ...

    def publisher_stopped(self) -> None:
        """Called when the background poller has stopped."""
        ...

    def event_stored(
        self,
        event_id: str,
        event_type: str,
        priority: str,
        scheduled_for: datetime,
    ) -> None:
        """Called when an event row is stored."""
        ...

    def event_storage_failed(self, event_id: str, event_type: str, error: str) -> None:
        """Called when storing an event row fails."""
        ...

    def batch_stored(self, count: int) -> None:
        """Called when a batch of events is stored atomically."""
        ...

    def batch_storage_failed(self, count: int, error: str) -> None:
        """Called when a batch transaction fails and nothing is stored."""
        ...

    def event_scheduled(
        self, event_id: str, event_type: str, scheduled_for: datetime
    ) -> None:
        """Called when an event is stored for delayed delivery."""
        ...

    def event_cancelled(self, event_id: str) -> None:
        """Called when a pending event is cancelled."""
        ...

    def event_cancel_rejected(self, event_id: str, reason: str) -> None:
        """Called when a cancel request matches no pending event."""
        ...

    def event_delivered(self, event_id: str, event_type: str) -> None:
        """Called when a handler accepted an event."""
        ...

    def event_delivery_failed(
        self,
        event_id: str,
        event_type: str,
        error: str,
        retry_count: int,
        next_attempt_at: datetime,
    ) -> None:
        """Called when a handler rejected an event that will be retried."""
        ...

    def event_dead_lettered(
        self, event_id: str, event_type: str, error: str, retry_count: int
    ) -> None:
        """Called when an event exhausts its retry budget."""
        ...

    def event_bookkeeping_failed(
        self, event_id: str, event_type: str, error: str
    ) -> None:
        """Called when a delivery outcome could not be written to the store."""
        ...

    def default_handler_used(self, event_id: str, event_type: str) -> None:
        """Called when no handler is registered for an event type."""
        ...

    def handler_registered(self, event_type: str, replaced: bool) -> None:
        """Called when a delivery handler is registered."""
        ...

    def tick_completed(self, claimed: int, delivered: int, failed: int) -> None:
        """Called when a poll tick finishes."""
        ...

    def tick_skipped(self, reason: str) -> None:
        """Called when a poll tick is skipped because another is in flight."""
        ...

    def poll_error(self, error: str) -> None:
        """Called when a poll tick fails as a whole."""
        ...

    def processing_requested(self, source: str) -> None:
        """Called when an immediate processing hint is enqueued."""
        ...

    def failed_events_reset(self, count: int) -> None:
        """Called when dead-lettered events are reset for redelivery."""
        ...

    def diagnostics_failed(self, operation: str, error: str) -> None:
        """Called when a health or statistics query fails."""
        ...

    def with_context(self, context: ObservationContext) -> OutboxPublisherProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultOutboxPublisherProbe:
    """Default implementation using structlog.

    Logs all publisher events with appropriate log levels.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ) -> None:
        self._logger = logger or structlog.get_logger()
        self._log = self._logger.bind(component="outbox_publisher")
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultOutboxPublisherProbe:
        """Create a new probe with observation context bound."""
        return DefaultOutboxPublisherProbe(logger=self._logger, context=context)

    def publisher_started(self, processing_interval_ms: int, batch_size: int) -> None:
        """Log poller start."""
        self._log.info(
            "outbox_publisher_started",
            processing_interval_ms=processing_interval_ms,
            batch_size=batch_size,
            **self._get_context_kwargs(),
        )

    def publisher_stopped(self) -> None:
        """Log poller stop."""
        self._log.info("outbox_publisher_stopped", **self._get_context_kwargs())

    def event_stored(
        self,
        event_id: str,
        event_type: str,
        priority: str,
        scheduled_for: datetime,
    ) -> None:
        """Log event storage."""
        self._log.info(
            "outbox_event_stored",
            event_id=event_id,
            event_type=event_type,
            priority=priority,
            scheduled_for=scheduled_for.isoformat(),
            **self._get_context_kwargs(),
        )

    def event_storage_failed(self, event_id: str, event_type: str, error: str) -> None:
        """Log failed event storage."""
        self._log.error(
            "outbox_event_storage_failed",
            event_id=event_id,
            event_type=event_type,
            error=error,
            **self._get_context_kwargs(),
        )

    def batch_stored(self, count: int) -> None:
        """Log batch storage."""
        self._log.info("outbox_batch_stored", count=count, **self._get_context_kwargs())

    def batch_storage_failed(self, count: int, error: str) -> None:
        """Log failed batch storage."""
        self._log.error(
            "outbox_batch_storage_failed",
            count=count,
            error=error,
            **self._get_context_kwargs(),
        )

    def event_scheduled(
        self, event_id: str, event_type: str, scheduled_for: datetime
    ) -> None:
        """Log delayed delivery."""
        self._log.info(
            "outbox_event_scheduled",
            event_id=event_id,
            event_type=event_type,
            scheduled_for=scheduled_for.isoformat(),
            **self._get_context_kwargs(),
        )

    def event_cancelled(self, event_id: str) -> None:
        """Log cancellation."""
        self._log.info(
            "outbox_event_cancelled", event_id=event_id, **self._get_context_kwargs()
        )

    def event_cancel_rejected(self, event_id: str, reason: str) -> None:
        """Log rejected cancellation."""
        self._log.warning(
            "outbox_event_cancel_rejected",
            event_id=event_id,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def event_delivered(self, event_id: str, event_type: str) -> None:
        """Log successful delivery."""
        self._log.info(
            "outbox_event_delivered",
            event_id=event_id,
            event_type=event_type,
            **self._get_context_kwargs(),
        )

    def event_delivery_failed(
        self,
        event_id: str,
        event_type: str,
        error: str,
        retry_count: int,
        next_attempt_at: datetime,
    ) -> None:
        """Log failed delivery that will be retried."""
        self._log.warning(
            "outbox_event_delivery_failed",
            event_id=event_id,
            event_type=event_type,
            error=error,
            retry_count=retry_count,
            next_attempt_at=next_attempt_at.isoformat(),
            **self._get_context_kwargs(),
        )

    def event_dead_lettered(
        self, event_id: str, event_type: str, error: str, retry_count: int
    ) -> None:
        """Log event moved out of automatic delivery."""
        self._log.error(
            "outbox_event_dead_lettered",
            event_id=event_id,
            event_type=event_type,
            error=error,
            retry_count=retry_count,
            **self._get_context_kwargs(),
        )

    def event_bookkeeping_failed(
        self, event_id: str, event_type: str, error: str
    ) -> None:
        """Log a delivery outcome the store rejected. The row stays due."""
        self._log.error(
            "outbox_event_bookkeeping_failed",
            event_id=event_id,
            event_type=event_type,
            error=error,
            **self._get_context_kwargs(),
        )

    def default_handler_used(self, event_id: str, event_type: str) -> None:
        """Log delivery through the fallback handler."""
        self._log.warning(
            "outbox_default_handler_used",
            event_id=event_id,
            event_type=event_type,
            **self._get_context_kwargs(),
        )

    def handler_registered(self, event_type: str, replaced: bool) -> None:
        """Log handler registration."""
        self._log.info(
            "outbox_handler_registered",
            event_type=event_type,
            replaced=replaced,
            **self._get_context_kwargs(),
        )

    def tick_completed(self, claimed: int, delivered: int, failed: int) -> None:
        """Log tick completion."""
        if claimed > 0:
            self._log.info(
                "outbox_tick_completed",
                claimed=claimed,
                delivered=delivered,
                failed=failed,
                **self._get_context_kwargs(),
            )

    def tick_skipped(self, reason: str) -> None:
        """Log skipped tick."""
        self._log.debug(
            "outbox_tick_skipped", reason=reason, **self._get_context_kwargs()
        )

    def poll_error(self, error: str) -> None:
        """Log poll tick error."""
        self._log.warning("outbox_poll_error", error=error, **self._get_context_kwargs())

    def processing_requested(self, source: str) -> None:
        """Log processing hint."""
        self._log.debug(
            "outbox_processing_requested", source=source, **self._get_context_kwargs()
        )

    def failed_events_reset(self, count: int) -> None:
        """Log dead-letter reset."""
        self._log.info(
            "outbox_failed_events_reset", count=count, **self._get_context_kwargs()
        )

    def diagnostics_failed(self, operation: str, error: str) -> None:
        """Log failed diagnostics query."""
        self._log.error(
            "outbox_diagnostics_failed",
            operation=operation,
            error=error,
            **self._get_context_kwargs(),
        )


class NullOutboxPublisherProbe:
    """Probe that records nothing.

    Used when publisher logging is disabled in configuration.
    """

    def with_context(self, context: ObservationContext) -> NullOutboxPublisherProbe:
        return self

    def publisher_started(self, processing_interval_ms: int, batch_size: int) -> None:
        pass

    def publisher_stopped(self) -> None:
        pass

    def event_stored(
        self,
        event_id: str,
        event_type: str,
        priority: str,
        scheduled_for: datetime,
    ) -> None:
        pass

    def event_storage_failed(self, event_id: str, event_type: str, error: str) -> None:
        pass

    def batch_stored(self, count: int) -> None:
        pass

    def batch_storage_failed(self, count: int, error: str) -> None:
        pass

    def event_scheduled(
        self, event_id: str, event_type: str, scheduled_for: datetime
    ) -> None:
        pass

    def event_cancelled(self, event_id: str) -> None:
        pass

    def event_cancel_rejected(self, event_id: str, reason: str) -> None:
        pass

    def event_delivered(self, event_id: str, event_type: str) -> None:
        pass

    def event_delivery_failed(
        self,
        event_id: str,
        event_type: str,
        error: str,
        retry_count: int,
        next_attempt_at: datetime,
    ) -> None:
        pass

    def event_dead_lettered(
        self, event_id: str, event_type: str, error: str, retry_count: int
    ) -> None:
        pass

    def event_bookkeeping_failed(
        self, event_id: str, event_type: str, error: str
    ) -> None:
        pass

    def default_handler_used(self, event_id: str, event_type: str) -> None:
        pass

    def handler_registered(self, event_type: str, replaced: bool) -> None:
        pass

    def tick_completed(self, claimed: int, delivered: int, failed: int) -> None:
        pass

    def tick_skipped(self, reason: str) -> None:
        pass

    def poll_error(self, error: str) -> None:
        pass

    def processing_requested(self, source: str) -> None:
        pass

    def failed_events_reset(self, count: int) -> None:
        pass

    def diagnostics_failed(self, operation: str, error: str) -> None:
        pass
