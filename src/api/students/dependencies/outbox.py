"""Outbox dependencies for the students context."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import get_write_session
from infrastructure.outbox.publisher import OutboxEventPublisher
from infrastructure.outbox.repository import OutboxEventRepository
from infrastructure.settings import get_outbox_settings


def get_outbox_publisher(request: Request) -> OutboxEventPublisher:
    """Get the application's OutboxEventPublisher.

    The publisher is created in the application lifespan and kept on
    ``app.state``.

    Raises:
        HTTPException: 503 if the application has not started a publisher
    """
    publisher = getattr(request.app.state, "outbox_publisher", None)
    if publisher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Outbox publisher is not available",
        )
    return publisher


def get_outbox_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> OutboxEventRepository:
    """Get OutboxEventRepository instance.

    Args:
        session: Async database session (shared with calling repository)

    Returns:
        OutboxEventRepository using the configured retry ceiling
    """
    return OutboxEventRepository(
        session=session,
        default_max_retries=get_outbox_settings().max_retries,
    )
