"""Student service dependencies.

Resolves the request scope from the X-Tenant-ID and X-User-ID headers
and builds a StudentService scoped to that tenant.
"""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import get_write_session
from infrastructure.outbox.publisher import OutboxEventPublisher
from infrastructure.outbox.repository import OutboxEventRepository
from infrastructure.settings import get_settings
from shared_kernel.observability_context import ObservationContext
from students.application.observability import (
    DefaultStudentServiceProbe,
    StudentServiceProbe,
)
from students.application.services import StudentService
from students.application.value_objects import RequestScope
from students.dependencies.outbox import get_outbox_publisher, get_outbox_repository
from students.infrastructure.student_repository import StudentRepository


def get_request_scope(
    x_tenant_id: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
) -> RequestScope:
    """Resolve tenant and actor from request headers.

    Missing or blank headers fall back to the configured defaults.
    """
    settings = get_settings()
    tenant_id = (x_tenant_id or "").strip() or settings.default_tenant_id
    user_id = (x_user_id or "").strip() or settings.default_user_id
    return RequestScope(tenant_id=tenant_id, user_id=user_id)


def get_student_service_probe(
    scope: Annotated[RequestScope, Depends(get_request_scope)],
) -> StudentServiceProbe:
    """Get a StudentServiceProbe bound to the request's tenant and actor."""
    context = ObservationContext(tenant_id=scope.tenant_id, user_id=scope.user_id)
    return DefaultStudentServiceProbe().with_context(context)


def get_student_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
    outbox: Annotated[OutboxEventRepository, Depends(get_outbox_repository)],
) -> StudentRepository:
    """Get StudentRepository instance.

    Args:
        session: Async database session
        outbox: Outbox repository for the transactional outbox pattern

    Returns:
        StudentRepository instance with outbox pattern enabled
    """
    return StudentRepository(session=session, outbox=outbox)


def get_student_service(
    student_repo: Annotated[StudentRepository, Depends(get_student_repository)],
    session: Annotated[AsyncSession, Depends(get_write_session)],
    publisher: Annotated[OutboxEventPublisher, Depends(get_outbox_publisher)],
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    probe: Annotated[StudentServiceProbe, Depends(get_student_service_probe)],
) -> StudentService:
    """Get StudentService instance scoped to the request's tenant.

    Args:
        student_repo: Student repository (shares session via FastAPI dependency caching)
        session: Database session for transaction management
        publisher: Outbox publisher from the application state
        scope: Tenant and actor of the request
        probe: Student service probe for observability

    Returns:
        StudentService instance
    """
    return StudentService(
        session=session,
        student_repository=student_repo,
        publisher=publisher,
        scope_to_tenant=scope.tenant_id,
        probe=probe,
    )
