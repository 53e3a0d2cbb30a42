"""Outbox event publisher.

Stores domain events in the outbox_events table and delivers them in the
background through registered handlers, retrying failures with
exponential backoff. All public methods report problems through their
return values instead of raising.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.models import as_utc
from infrastructure.outbox.dispatcher import DeliveryDispatcher
from infrastructure.outbox.poller import OutboxPoller, TickOutcome
from infrastructure.outbox.repository import OutboxEventRepository
from infrastructure.settings import OutboxSettings
from shared_kernel.outbox.observability import (
    DefaultOutboxPublisherProbe,
    NullOutboxPublisherProbe,
    OutboxPublisherProbe,
)
from shared_kernel.outbox.ports import DeliveryHandler
from shared_kernel.outbox.value_objects import (
    BatchPublishResult,
    CancelResult,
    EventEnvelope,
    FailedEvent,
    FailedEventsPage,
    HealthReport,
    PublisherStatistics,
    PublishOptions,
    PublishResult,
)

Clock = Callable[[], datetime]

CANCEL_REJECTED_MESSAGE = "Event not found or already published"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class OutboxEventPublisher:
    """Database-backed implementation of the DomainEventPublisher port.

    The publisher owns its session factory, dispatcher and poller. Nothing
    here reads global configuration: everything arrives through the
    constructor, which keeps instances independent in tests.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: OutboxSettings,
        probe: OutboxPublisherProbe | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the publisher.

        Args:
            session_factory: Factory for the publisher's own sessions
            settings: Retry, batching, polling and health configuration
            probe: Observability probe; defaults to structlog output, or to
                a silent probe when ``settings.enable_logging`` is False
            clock: Source of the current time (UTC-aware)
        """
        if probe is None:
            probe = (
                DefaultOutboxPublisherProbe()
                if settings.enable_logging
                else NullOutboxPublisherProbe()
            )
        self._session_factory = session_factory
        self._settings = settings
        self._probe = probe
        self._clock = clock or _utc_now
        self._dispatcher = DeliveryDispatcher(
            probe=probe,
            base_backoff_ms=settings.base_backoff_ms,
            max_backoff_ms=settings.max_backoff_ms,
        )
        self._poller = OutboxPoller(
            tick=self._process_due_events,
            probe=probe,
            interval_seconds=settings.processing_interval_seconds,
        )

    @property
    def is_running(self) -> bool:
        """Whether the background poller is active."""
        return self._poller.is_running

    @property
    def settings(self) -> OutboxSettings:
        return self._settings

    # Storage

    async def publish(
        self,
        event: EventEnvelope,
        options: PublishOptions | None = None,
    ) -> PublishResult:
        """Store one event for delivery.

        The event becomes due immediately, or after the retry policy's
        backoff when ``options.immediate`` is False. Immediate events also
        hint the poller to run without waiting for the timer.

        Args:
            event: The event to store
            options: Optional publish options

        Returns:
            Result with ``published_at`` set to the storage time
        """
        options = options or PublishOptions()
        now = self._clock()
        if options.immediate:
            scheduled_for = now
        else:
            scheduled_for = now + self._initial_delay(options)

        result = await self._store(event, options, now, scheduled_for)
        if result.success and options.immediate:
            self.request_processing("publish")
        return result

    async def publish_batch(
        self,
        events: Sequence[EventEnvelope],
        options: PublishOptions | None = None,
    ) -> BatchPublishResult:
        """Store several events in one transaction.

        Either every event is stored or none is. A failed transaction
        reports the same error for each event. A successful batch hints
        the poller once.

        Args:
            events: Events to store
            options: Options applied to every event

        Returns:
            Per-event results with success and failure counts
        """
        started = time.perf_counter()
        options = options or PublishOptions()
        if not events:
            return BatchPublishResult(total_events=0, success_count=0, failure_count=0)

        now = self._clock()
        if options.immediate:
            scheduled_for = now
        else:
            scheduled_for = now + self._initial_delay(options)

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    repository = self._repository(session)
                    for event in events:
                        await repository.append(
                            event.with_metadata(options.metadata),
                            now=now,
                            scheduled_for=scheduled_for,
                            max_retries=self._max_retries_for(options),
                        )
        except Exception as e:
            error = str(e)
            self._probe.batch_storage_failed(len(events), error)
            results = tuple(
                PublishResult(
                    success=False,
                    event_id=event.event_id,
                    published_at=now,
                    error=error,
                )
                for event in events
            )
            return BatchPublishResult(
                total_events=len(events),
                success_count=0,
                failure_count=len(events),
                results=results,
                processing_time_ms=_elapsed_ms(started),
                error=error,
            )

        self._probe.batch_stored(len(events))
        if options.immediate:
            self.request_processing("publish_batch")

        results = tuple(
            PublishResult(
                success=True,
                event_id=event.event_id,
                published_at=now,
                scheduled_for=scheduled_for,
            )
            for event in events
        )
        return BatchPublishResult(
            total_events=len(events),
            success_count=len(events),
            failure_count=0,
            results=results,
            processing_time_ms=_elapsed_ms(started),
        )

    async def publish_and_wait(
        self,
        event: EventEnvelope,
        timeout_ms: int = 30000,
        options: PublishOptions | None = None,
    ) -> PublishResult:
        """Store one event and return without waiting for subscribers.

        There is no subscriber acknowledgment protocol, so the result
        always carries an empty ``acknowledgments`` tuple. ``timeout_ms``
        is accepted for interface compatibility.
        """
        return await self.publish(event, options)

    async def schedule_event(
        self,
        event: EventEnvelope,
        schedule_time: datetime,
        options: PublishOptions | None = None,
    ) -> PublishResult:
        """Store one event that becomes due at ``schedule_time``.

        Args:
            event: The event to store
            schedule_time: Earliest delivery time (naive values are read as UTC)
            options: Optional retry and metadata options

        Returns:
            Result whose ``scheduled_for`` is the resolved schedule time
        """
        options = options or PublishOptions()
        now = self._clock()
        scheduled_for = as_utc(schedule_time)

        result = await self._store(event, options, now, scheduled_for)
        if result.success:
            self._probe.event_scheduled(event.event_id, event.event_type, scheduled_for)
            if scheduled_for <= now:
                self.request_processing("schedule")
        return result

    async def cancel_scheduled_event(self, event_id: str) -> CancelResult:
        """Delete an event that has not been delivered.

        Delivered events are history and cannot be cancelled.

        Returns:
            Success, or a failure with "Event not found or already published"
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    deleted = await self._repository(session).delete_unpublished(
                        event_id
                    )
        except Exception as e:
            self._probe.event_cancel_rejected(event_id, str(e))
            return CancelResult(success=False, error=str(e))

        if not deleted:
            self._probe.event_cancel_rejected(event_id, CANCEL_REJECTED_MESSAGE)
            return CancelResult(success=False, error=CANCEL_REJECTED_MESSAGE)

        self._probe.event_cancelled(event_id)
        return CancelResult(success=True)

    # Delivery

    def register_delivery_handler(
        self, event_type: str, handler: DeliveryHandler
    ) -> None:
        """Route ``event_type`` to ``handler``. The last registration wins."""
        self._dispatcher.register(event_type, handler)

    def request_processing(self, source: str = "hint") -> bool:
        """Ask the running poller to process due events soon.

        Returns:
            True if a new tick was requested, False if one was already
            pending or the poller is not running
        """
        return self._poller.request(source)

    async def process_pending(self) -> TickOutcome | None:
        """Run one poll tick now, unless a tick is already in flight."""
        return await self._poller.run_once()

    async def start(self) -> None:
        """Start background polling. Calling it again does nothing."""
        if self._poller.is_running:
            return
        await self._poller.start()
        self._probe.publisher_started(
            self._settings.processing_interval_ms, self._settings.batch_size
        )

    async def stop(self) -> None:
        """Stop background polling after the in-flight tick completes."""
        if not self._poller.is_running:
            return
        await self._poller.stop()
        self._probe.publisher_stopped()

    # Diagnostics

    async def health_check(self) -> HealthReport:
        """Report backlog and recent error rate against the configured thresholds."""
        now = self._clock()
        since = now - timedelta(hours=1)
        try:
            async with self._session_factory() as session:
                repository = self._repository(session)
                pending = await repository.count_pending(now)
                total_recent = await repository.count_created_since(since)
                failed_recent = await repository.count_dead_lettered_since(since)
                last_publish_time = await repository.last_published_at()
        except Exception as e:
            self._probe.diagnostics_failed("health_check", str(e))
            return HealthReport(
                healthy=False,
                pending_events=-1,
                error_rate=-1.0,
                last_publish_time=None,
                details={"error": str(e)},
            )

        error_rate = (failed_recent / total_recent) * 100 if total_recent else 0.0
        healthy = (
            error_rate < self._settings.health_max_error_rate
            and pending < self._settings.health_max_pending
        )
        return HealthReport(
            healthy=healthy,
            pending_events=pending,
            error_rate=error_rate,
            last_publish_time=last_publish_time,
            details={
                "processing_active": self.is_running,
                "total_recent_events": total_recent,
                "failed_recent_events": failed_recent,
            },
        )

    async def get_statistics(self, time_range_ms: int = 3_600_000) -> PublisherStatistics:
        """Summarize delivery over the last ``time_range_ms`` milliseconds.

        ``average_latency_ms`` is an estimate: the mean retry count of
        delivered events multiplied by the base backoff.
        """
        try:
            if time_range_ms <= 0:
                raise ValueError("time_range_ms must be positive")
            since = self._clock() - timedelta(milliseconds=time_range_ms)
            async with self._session_factory() as session:
                repository = self._repository(session)
                published = await repository.count_published_since(since)
                failed = await repository.count_dead_lettered_since(since)
                average_retries = (
                    await repository.average_retry_count_published_since(since)
                )
        except Exception as e:
            self._probe.diagnostics_failed("get_statistics", str(e))
            return PublisherStatistics(
                events_published=0,
                success_rate=0.0,
                average_latency_ms=0.0,
                error_count=-1,
                throughput_per_second=0.0,
            )

        total = published + failed
        return PublisherStatistics(
            events_published=published,
            success_rate=(published / total) * 100 if total else 100.0,
            average_latency_ms=average_retries * self._settings.base_backoff_ms,
            error_count=failed,
            throughput_per_second=published / (time_range_ms / 1000),
        )

    async def get_failed_events(self, limit: int = 50, offset: int = 0) -> FailedEventsPage:
        """List dead-lettered events, most recently failed first."""
        try:
            async with self._session_factory() as session:
                repository = self._repository(session)
                rows = await repository.list_dead_lettered(limit, offset)
                total = await repository.count_dead_lettered()
        except Exception as e:
            self._probe.diagnostics_failed("get_failed_events", str(e))
            return FailedEventsPage(events=(), total=0)

        return FailedEventsPage(
            events=tuple(
                FailedEvent(
                    event=row,
                    failure_reason=row.last_error or "Unknown error",
                    failure_time=row.updated_at,
                    retry_count=row.retry_count,
                )
                for row in rows
            ),
            total=total,
        )

    async def retry_failed_events(
        self, event_ids: Sequence[str] | None = None
    ) -> BatchPublishResult:
        """Return dead-lettered events to the due set.

        Resets ``retry_count`` to 0, ``scheduled_for`` to now and clears
        ``last_error``, then hints the poller.

        Args:
            event_ids: Events to reset; None resets all dead-lettered events

        Returns:
            Counts of reset events. Ids that were not dead-lettered count
            as failures.
        """
        started = time.perf_counter()
        requested = len(event_ids) if event_ids is not None else 0
        now = self._clock()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    reset = await self._repository(session).reset_dead_lettered(
                        event_ids, now
                    )
        except Exception as e:
            self._probe.diagnostics_failed("retry_failed_events", str(e))
            return BatchPublishResult(
                total_events=requested,
                success_count=0,
                failure_count=requested,
                processing_time_ms=_elapsed_ms(started),
                error=str(e),
            )

        self._probe.failed_events_reset(reset)
        if reset:
            self.request_processing("retry")

        total = requested if event_ids is not None else reset
        return BatchPublishResult(
            total_events=total,
            success_count=reset,
            failure_count=max(total - reset, 0),
            processing_time_ms=_elapsed_ms(started),
        )

    # Internals

    def _repository(self, session: AsyncSession) -> OutboxEventRepository:
        return OutboxEventRepository(session, self._settings.max_retries)

    def _max_retries_for(self, options: PublishOptions) -> int:
        policy = options.retry_policy
        if policy is not None and policy.max_retries is not None:
            return policy.max_retries
        return self._settings.max_retries

    def _initial_delay(self, options: PublishOptions) -> timedelta:
        policy = options.retry_policy
        if policy is not None and policy.backoff_ms is not None:
            return timedelta(milliseconds=policy.backoff_ms)
        return timedelta(milliseconds=self._settings.base_backoff_ms)

    async def _store(
        self,
        event: EventEnvelope,
        options: PublishOptions,
        now: datetime,
        scheduled_for: datetime,
    ) -> PublishResult:
        """Store one row in its own transaction and convert errors to a result."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._repository(session).append(
                        event.with_metadata(options.metadata),
                        now=now,
                        scheduled_for=scheduled_for,
                        max_retries=self._max_retries_for(options),
                    )
        except Exception as e:
            self._probe.event_storage_failed(event.event_id, event.event_type, str(e))
            return PublishResult(
                success=False,
                event_id=event.event_id,
                published_at=now,
                error=str(e),
            )

        self._probe.event_stored(
            event.event_id, event.event_type, options.priority.value, scheduled_for
        )
        return PublishResult(
            success=True,
            event_id=event.event_id,
            published_at=now,
            scheduled_for=scheduled_for,
        )

    async def _process_due_events(self) -> TickOutcome:
        """Claim one batch of due events and dispatch them in order.

        Each outcome is written in its own savepoint and all of them are
        committed together at the end of the tick.
        """
        async with self._session_factory() as session:
            repository = self._repository(session)
            events = await repository.fetch_due(self._clock(), self._settings.batch_size)

            delivered = 0
            for event in events:
                if await self._dispatcher.dispatch(event, repository, self._clock()):
                    delivered += 1

            if events:
                await session.commit()

        return TickOutcome(
            claimed=len(events),
            delivered=delivered,
            failed=len(events) - delivered,
        )


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
