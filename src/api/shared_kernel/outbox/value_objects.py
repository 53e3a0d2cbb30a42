"""Value objects for the outbox pattern.

Value objects are immutable descriptors that provide type safety and
domain semantics for outbox events, publish options and the results
and reports the publisher hands back to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


@dataclass(frozen=True)
class EventEnvelope:
    """A domain event ready to be stored in the outbox.

    The envelope is what producers publish and what delivery handlers
    receive. Handlers get an envelope rebuilt from the stored row, so
    anything they need must survive a round trip through ``to_payload``.

    Attributes:
        event_id: Globally unique identifier (ULID) for this event
        event_type: Routing tag used to select a delivery handler
        aggregate_id: Identifier of the aggregate that produced the event
        aggregate_type: Type of that aggregate (e.g., "Student")
        tenant_id: Tenant that owns the aggregate
        occurred_on: When the domain event happened
        version: Aggregate version the event describes
        event_data: Serialized domain event fields
        metadata: Optional caller-supplied metadata stored alongside the event
    """

    event_id: str
    event_type: str
    aggregate_id: str
    aggregate_type: str
    tenant_id: str
    occurred_on: datetime
    version: int
    event_data: dict[str, Any]
    metadata: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Convert the envelope to the JSON document stored in the outbox row."""
        payload: dict[str, Any] = {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "tenant_id": self.tenant_id,
            "occurred_on": self.occurred_on.isoformat(),
            "version": self.version,
            "event_data": self.event_data,
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        return payload

    def with_metadata(self, metadata: dict[str, Any] | None) -> EventEnvelope:
        """Return a copy carrying the given metadata (merged over any existing)."""
        if not metadata:
            return self
        return EventEnvelope(
            event_id=self.event_id,
            event_type=self.event_type,
            aggregate_id=self.aggregate_id,
            aggregate_type=self.aggregate_type,
            tenant_id=self.tenant_id,
            occurred_on=self.occurred_on,
            version=self.version,
            event_data=self.event_data,
            metadata={**(self.metadata or {}), **metadata},
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> EventEnvelope:
        """Rebuild an envelope from a stored payload.

        Raises:
            KeyError: If a required key is missing from the payload
        """
        return cls(
            event_id=payload["event_id"],
            event_type=payload["event_type"],
            aggregate_id=payload["aggregate_id"],
            aggregate_type=payload["aggregate_type"],
            tenant_id=payload["tenant_id"],
            occurred_on=datetime.fromisoformat(payload["occurred_on"]),
            version=payload.get("version", 1),
            event_data=payload.get("event_data", {}),
            metadata=payload.get("metadata"),
        )


@dataclass(frozen=True)
class RetryPolicy:
    """Per-event override of the publisher's retry configuration.

    Attributes:
        max_retries: Retry ceiling for the event (None uses the configured default)
        backoff_ms: Initial delay when the event is not processed immediately
    """

    max_retries: int | None = None
    backoff_ms: int | None = None

    def __post_init__(self) -> None:
        if self.max_retries is not None and self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.backoff_ms is not None and self.backoff_ms < 0:
            raise ValueError("backoff_ms must not be negative")


class EventPriority(StrEnum):
    """Advisory priority attached to a published event."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class PublishOptions:
    """Options accepted by the publish family of operations.

    Attributes:
        immediate: When False, the first delivery attempt is delayed by the
            retry policy's backoff
        retry_policy: Optional per-event retry override
        priority: Advisory priority, reported to observability only
        metadata: Optional metadata stored in the event payload
    """

    immediate: bool = True
    retry_policy: RetryPolicy | None = None
    priority: EventPriority = EventPriority.NORMAL
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class OutboxEvent:
    """Snapshot of one stored outbox row.

    Attributes:
        event_id: Primary key (ULID)
        event_type: Routing tag
        aggregate_id: Producing aggregate
        tenant_id: Owning tenant
        event_data: Stored payload (see EventEnvelope.to_payload)
        published: Whether delivery succeeded
        published_at: When delivery succeeded
        retry_count: Failed delivery attempts so far
        max_retries: Retry ceiling for this row
        scheduled_for: Earliest time the row may be delivered
        last_error: Most recent failure message
        created_at: When the row was stored
        updated_at: When the row last changed
    """

    event_id: str
    event_type: str
    aggregate_id: str
    tenant_id: str
    event_data: dict[str, Any]
    published: bool
    published_at: datetime | None
    retry_count: int
    max_retries: int
    scheduled_for: datetime
    last_error: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_dead_lettered(self) -> bool:
        """Check if the row exhausted its retry budget without delivery."""
        return not self.published and self.retry_count >= self.max_retries

    def is_due(self, now: datetime) -> bool:
        """Check if the poller would select this row at ``now``."""
        return (
            not self.published
            and self.scheduled_for <= now
            and self.retry_count < self.max_retries
        )

    def to_envelope(self) -> EventEnvelope:
        """Rebuild the published envelope from the stored payload."""
        return EventEnvelope.from_payload(self.event_data)


@dataclass(frozen=True)
class PublishResult:
    """Outcome of storing one event.

    ``published_at`` is the time the event was stored, not delivered.
    """

    success: bool
    event_id: str
    published_at: datetime
    error: str | None = None
    scheduled_for: datetime | None = None
    acknowledgments: tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchPublishResult:
    """Outcome of an all-or-nothing batch publish or a bulk retry reset."""

    total_events: int
    success_count: int
    failure_count: int
    results: tuple[PublishResult, ...] = ()
    processing_time_ms: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class CancelResult:
    """Outcome of cancelling a scheduled event."""

    success: bool
    error: str | None = None


@dataclass(frozen=True)
class HealthReport:
    """Point-in-time health of the outbox."""

    healthy: bool
    pending_events: int
    error_rate: float
    last_publish_time: datetime | None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PublisherStatistics:
    """Delivery statistics over a time window."""

    events_published: int
    success_rate: float
    average_latency_ms: float
    error_count: int
    throughput_per_second: float


@dataclass(frozen=True)
class FailedEvent:
    """A dead-lettered event with its failure diagnostics."""

    event: OutboxEvent
    failure_reason: str
    failure_time: datetime
    retry_count: int


@dataclass(frozen=True)
class FailedEventsPage:
    """One page of dead-lettered events."""

    events: tuple[FailedEvent, ...]
    total: int
