"""Infrastructure layer for the outbox pattern.

Contains the SQLAlchemy model, the event store, the delivery dispatcher,
the background poller and the publisher that ties them together.
"""

from infrastructure.outbox.dispatcher import DeliveryDispatcher
from infrastructure.outbox.models import OutboxEventModel
from infrastructure.outbox.poller import OutboxPoller, TickOutcome
from infrastructure.outbox.publisher import OutboxEventPublisher
from infrastructure.outbox.repository import OutboxEventRepository

__all__ = [
    "DeliveryDispatcher",
    "OutboxEventModel",
    "OutboxEventPublisher",
    "OutboxEventRepository",
    "OutboxPoller",
    "TickOutcome",
]
