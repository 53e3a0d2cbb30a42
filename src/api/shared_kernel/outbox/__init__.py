"""Outbox pattern contracts.

This module provides the framework-free side of the transactional outbox:
the publisher port, the delivery handler type, value objects for options,
results and reports, and the observability probes.
"""

from shared_kernel.outbox.observability import (
    DefaultOutboxPublisherProbe,
    NullOutboxPublisherProbe,
    OutboxPublisherProbe,
)
from shared_kernel.outbox.ports import (
    DeliveryHandler,
    DomainEventPublisher,
    EventSerializer,
)
from shared_kernel.outbox.serialization import serialize_event_fields, to_json_safe
from shared_kernel.outbox.value_objects import (
    BatchPublishResult,
    CancelResult,
    EventEnvelope,
    EventPriority,
    FailedEvent,
    FailedEventsPage,
    HealthReport,
    OutboxEvent,
    PublisherStatistics,
    PublishOptions,
    PublishResult,
    RetryPolicy,
)

__all__ = [
    "BatchPublishResult",
    "CancelResult",
    "DefaultOutboxPublisherProbe",
    "DeliveryHandler",
    "DomainEventPublisher",
    "EventEnvelope",
    "EventPriority",
    "EventSerializer",
    "FailedEvent",
    "FailedEventsPage",
    "HealthReport",
    "NullOutboxPublisherProbe",
    "OutboxEvent",
    "OutboxPublisherProbe",
    "PublishOptions",
    "PublishResult",
    "PublisherStatistics",
    "RetryPolicy",
    "serialize_event_fields",
    "to_json_safe",
]
