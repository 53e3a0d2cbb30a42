"""HTTP routes for the students bounded context.

Provides the REST API for enrollment, record maintenance and status
changes. Domain errors map to HTTP statuses:

- StudentNotFoundError: 404
- DuplicateStudentError, ConcurrencyError: 409
- StudentValidationError: 400
- BusinessRuleViolationError: 422
- anything else: 500 with a generic detail
"""

from __future__ import annotations

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from students.application.services import StudentService
from students.application.value_objects import RequestScope
from students.dependencies.student import get_request_scope, get_student_service
from students.domain.value_objects import StudentStatus
from students.ports.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
    StudentValidationError,
)
from students.ports.repositories import (
    SortOrder,
    StudentSearchCriteria,
    StudentSortField,
)
from students.presentation.models import (
    EnrollStudentRequest,
    GraduateStudentRequest,
    GraduationResponse,
    StatusChangeRequest,
    StudentListResponse,
    StudentResponse,
    StudentUpdateResponse,
    UpdateStudentRequest,
)

router = APIRouter(
    prefix="/students",
    tags=["students"],
)


def _raise_http_error(error: Exception, action: str) -> NoReturn:
    """Translate a service exception into an HTTPException."""
    if isinstance(error, StudentNotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student {error.student_id} not found",
        ) from error
    if isinstance(error, DuplicateStudentError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(error),
        ) from error
    if isinstance(error, ConcurrencyError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Student was modified by another request",
                "expected_version": error.expected_version,
                "actual_version": error.actual_version,
            },
        ) from error
    if isinstance(error, StudentValidationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"field": error.field, "message": error.reason},
        ) from error
    if isinstance(error, BusinessRuleViolationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "rule": error.rule,
                "message": error.message,
                "details": error.details,
            },
        ) from error
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    ) from error


@router.post("", status_code=status.HTTP_201_CREATED)
async def enroll_student(
    request: EnrollStudentRequest,
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    service: Annotated[StudentService, Depends(get_student_service)],
) -> StudentResponse:
    """Enroll a new student.

    Raises:
        HTTPException: 400 if a field fails validation
        HTTPException: 409 if the student number, email or national id is taken
        HTTPException: 422 if an enrollment rule is violated
        HTTPException: 500 for unexpected errors
    """
    try:
        student = await service.enroll_student(
            request.to_domain(), performed_by=scope.user_id
        )
        return StudentResponse.from_domain(student)
    except Exception as e:
        _raise_http_error(e, "enroll student")


@router.get("")
async def search_students(
    service: Annotated[StudentService, Depends(get_student_service)],
    first_name: str | None = None,
    last_name: str | None = None,
    status_filter: Annotated[StudentStatus | None, Query(alias="status")] = None,
    enrollment_year: int | None = None,
    graduation_year: int | None = None,
    min_age: Annotated[int | None, Query(ge=0)] = None,
    max_age: Annotated[int | None, Query(ge=0)] = None,
    has_allergies: bool | None = None,
    has_medical_conditions: bool | None = None,
    sort_by: StudentSortField = StudentSortField.LAST_NAME,
    sort_order: SortOrder = SortOrder.ASC,
    page: int = 1,
    limit: int = 20,
) -> StudentListResponse:
    """Search students in the tenant.

    Raises:
        HTTPException: 400 if paging parameters are out of range
        HTTPException: 500 for unexpected errors
    """
    criteria = StudentSearchCriteria(
        first_name=first_name,
        last_name=last_name,
        status=status_filter,
        enrollment_year=enrollment_year,
        graduation_year=graduation_year,
        min_age=min_age,
        max_age=max_age,
        has_allergies=has_allergies,
        has_medical_conditions=has_medical_conditions,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    try:
        result = await service.search_students(criteria, page=page, limit=limit)
        return StudentListResponse.from_page(result)
    except Exception as e:
        _raise_http_error(e, "search students")


@router.get("/{student_id}")
async def get_student(
    student_id: str,
    service: Annotated[StudentService, Depends(get_student_service)],
) -> StudentResponse:
    """Get a student by ULID or student number.

    Raises:
        HTTPException: 404 if the student does not exist in the tenant
        HTTPException: 500 for unexpected errors
    """
    try:
        student = await service.get_student(student_id)
        return StudentResponse.from_domain(student)
    except Exception as e:
        _raise_http_error(e, "retrieve student")


@router.put("/{student_id}")
async def update_student(
    student_id: str,
    request: UpdateStudentRequest,
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    service: Annotated[StudentService, Depends(get_student_service)],
) -> StudentUpdateResponse:
    """Update student details.

    The body must carry the ``expected_version`` the client last read.

    Raises:
        HTTPException: 400 if a field fails validation
        HTTPException: 404 if the student does not exist
        HTTPException: 409 on a version conflict or a taken email or national id
        HTTPException: 422 if the student has graduated
        HTTPException: 500 for unexpected errors
    """
    try:
        result = await service.update_student(
            student_id,
            changes=request.to_changes(),
            expected_version=request.expected_version,
            performed_by=scope.user_id,
        )
        return StudentUpdateResponse.from_result(result)
    except Exception as e:
        _raise_http_error(e, "update student")


@router.delete(
    "/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
    responses={
        204: {"description": "Student deleted successfully"},
        404: {"description": "Student not found"},
        409: {"description": "Student was modified concurrently"},
        500: {"description": "Internal server error"},
    },
)
async def delete_student(
    student_id: str,
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    service: Annotated[StudentService, Depends(get_student_service)],
) -> None:
    """Soft-delete a student."""
    try:
        await service.delete_student(student_id, performed_by=scope.user_id)
    except Exception as e:
        _raise_http_error(e, "delete student")


@router.post("/{student_id}/graduate")
async def graduate_student(
    student_id: str,
    request: GraduateStudentRequest,
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    service: Annotated[StudentService, Depends(get_student_service)],
) -> GraduationResponse:
    """Graduate an active student.

    Raises:
        HTTPException: 400 if the graduation date is invalid
        HTTPException: 404 if the student does not exist
        HTTPException: 422 if the student is not eligible to graduate
        HTTPException: 500 for unexpected errors
    """
    try:
        result = await service.graduate_student(
            student_id,
            graduation_date=request.graduation_date,
            performed_by=scope.user_id,
        )
        return GraduationResponse.from_result(result)
    except Exception as e:
        _raise_http_error(e, "graduate student")


@router.post("/{student_id}/suspend")
async def suspend_student(
    student_id: str,
    request: StatusChangeRequest,
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    service: Annotated[StudentService, Depends(get_student_service)],
) -> StudentResponse:
    """Suspend a student."""
    try:
        student = await service.suspend_student(
            student_id, reason=request.reason, performed_by=scope.user_id
        )
        return StudentResponse.from_domain(student)
    except Exception as e:
        _raise_http_error(e, "suspend student")


@router.post("/{student_id}/reactivate")
async def reactivate_student(
    student_id: str,
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    service: Annotated[StudentService, Depends(get_student_service)],
) -> StudentResponse:
    """Return a suspended, transferred or inactive student to active."""
    try:
        student = await service.reactivate_student(
            student_id, performed_by=scope.user_id
        )
        return StudentResponse.from_domain(student)
    except Exception as e:
        _raise_http_error(e, "reactivate student")


@router.post("/{student_id}/transfer")
async def transfer_student(
    student_id: str,
    request: StatusChangeRequest,
    scope: Annotated[RequestScope, Depends(get_request_scope)],
    service: Annotated[StudentService, Depends(get_student_service)],
) -> StudentResponse:
    """Mark a student as transferred to another school."""
    try:
        student = await service.transfer_student(
            student_id, reason=request.reason, performed_by=scope.user_id
        )
        return StudentResponse.from_domain(student)
    except Exception as e:
        _raise_http_error(e, "transfer student")
