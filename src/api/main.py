"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from infrastructure.database.dependencies import (
    close_database_connections,
    get_sessionmaker,
)
from infrastructure.logging import configure_logging
from infrastructure.observability.startup_probe import DefaultStartupProbe
from infrastructure.outbox.publisher import OutboxEventPublisher
from infrastructure.settings import get_outbox_settings, get_settings
from infrastructure.version import get_version
from students.dependencies.outbox import get_outbox_publisher
from students.infrastructure.outbox import register_student_handlers
from students.presentation import routes as student_routes


class RetryFailedEventsRequest(BaseModel):
    """Dead-lettered events to return to the due set; omit to retry all."""

    event_ids: list[str] | None = None


@asynccontextmanager
async def student_records_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Logging configuration
    - Outbox publisher creation, handler registration and polling
    - Database engine disposal on shutdown
    """
    configure_logging(get_settings().log_level)
    probe = DefaultStartupProbe()
    probe.application_starting(get_version())

    outbox_settings = get_outbox_settings()
    publisher = OutboxEventPublisher(get_sessionmaker(), outbox_settings)
    app.state.outbox_publisher = publisher
    probe.delivery_handlers_registered("students", register_student_handlers(publisher))

    if outbox_settings.autostart:
        await publisher.start()
    else:
        probe.outbox_autostart_disabled()

    try:
        yield
    finally:
        await publisher.stop()
        app.state.outbox_publisher = None
        await close_database_connections()
        probe.application_stopped()


app = FastAPI(
    title="Student Records API",
    description="Multi-tenant student records with transactional event publishing",
    version=get_version(),
    lifespan=student_records_lifespan,
)

# Include Students bounded context routes
app.include_router(student_routes.router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/health/outbox")
async def health_outbox(
    publisher: Annotated[OutboxEventPublisher, Depends(get_outbox_publisher)],
) -> JSONResponse:
    """Report outbox backlog and error rate.

    Responds 503 when the publisher reports itself unhealthy.
    """
    report = await publisher.health_check()
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if report.healthy else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content=jsonable_encoder(report),
    )


@app.get("/outbox/statistics")
async def outbox_statistics(
    publisher: Annotated[OutboxEventPublisher, Depends(get_outbox_publisher)],
    time_range_ms: Annotated[int, Query(gt=0)] = 3_600_000,
) -> dict:
    """Summarize delivery over a trailing window."""
    return jsonable_encoder(await publisher.get_statistics(time_range_ms))


@app.get("/outbox/failed")
async def outbox_failed_events(
    publisher: Annotated[OutboxEventPublisher, Depends(get_outbox_publisher)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> dict:
    """List dead-lettered events, most recently failed first."""
    return jsonable_encoder(await publisher.get_failed_events(limit, offset))


@app.post("/outbox/retry")
async def outbox_retry_failed(
    publisher: Annotated[OutboxEventPublisher, Depends(get_outbox_publisher)],
    request: RetryFailedEventsRequest | None = None,
) -> dict:
    """Return dead-lettered events to the due set."""
    event_ids = request.event_ids if request is not None else None
    return jsonable_encoder(await publisher.retry_failed_events(event_ids))


@app.delete("/outbox/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def outbox_cancel_event(
    event_id: str,
    publisher: Annotated[OutboxEventPublisher, Depends(get_outbox_publisher)],
) -> None:
    """Cancel an event that has not been delivered yet.

    Raises:
        HTTPException: 404 if the event does not exist or was already delivered
    """
    result = await publisher.cancel_scheduled_event(event_id)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=result.error,
        )
