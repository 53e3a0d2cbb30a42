"""Student application service for the students bounded context.

Handles enrollment, record maintenance and status changes. Every command
runs in one database transaction that writes the student row and its
outbox events together. After the commit the publisher is asked to
deliver without waiting for its timer.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from shared_kernel.outbox import DomainEventPublisher
from students.application.observability import (
    DefaultStudentServiceProbe,
    StudentServiceProbe,
)
from students.application.value_objects import (
    EnrollmentData,
    GraduationResult,
    StudentPage,
    StudentUpdateResult,
)
from students.domain.aggregates import Student
from students.domain.policies import (
    graduation_summary,
    validate_enrollment_eligibility,
    validate_graduation_date,
    validate_graduation_eligibility,
    validate_guardian_requirements,
    validate_reactivation_eligibility,
)
from students.domain.value_objects import StudentNumber
from students.ports.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
    StudentValidationError,
)
from students.ports.repositories import IStudentRepository, StudentSearchCriteria

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Attempts at drawing an unused random student number before giving up
STUDENT_NUMBER_ATTEMPTS = 10

_DOMAIN_ERRORS = (
    BusinessRuleViolationError,
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
    StudentValidationError,
)


class StudentService:
    """Application service for student management.

    Scoped to one tenant: every lookup and every new student uses
    ``scope_to_tenant``.
    """

    def __init__(
        self,
        session: AsyncSession,
        student_repository: IStudentRepository,
        publisher: DomainEventPublisher,
        scope_to_tenant: str,
        probe: StudentServiceProbe | None = None,
    ):
        """Initialize StudentService with dependencies.

        Args:
            session: Database session for transaction management
            student_repository: Repository for student persistence
            publisher: Outbox publisher, nudged after each commit
            scope_to_tenant: Tenant ID to which this service is scoped
            probe: Optional domain probe for observability
        """
        self._session = session
        self._student_repository = student_repository
        self._publisher = publisher
        self._scope_to_tenant = scope_to_tenant
        self._probe = probe or DefaultStudentServiceProbe()

    async def enroll_student(self, data: EnrollmentData, performed_by: str) -> Student:
        """Enroll a new student.

        Args:
            data: Enrollment details
            performed_by: Actor performing the enrollment

        Returns:
            The enrolled Student at version 1

        Raises:
            BusinessRuleViolationError: If the age or guardian rules fail
            StudentValidationError: If a field is invalid
            DuplicateStudentError: If the student number, email or national
                id is already used in the tenant
        """
        try:
            async with self._session.begin():
                validate_enrollment_eligibility(data.date_of_birth, data.enrollment_date)
                validate_guardian_requirements(data.guardians)

                student_number = data.student_number
                if student_number is None:
                    student_number = await self._generate_student_number()
                elif not await self._student_repository.is_student_number_unique(
                    student_number.value, self._scope_to_tenant
                ):
                    raise DuplicateStudentError(
                        "student_number", student_number.value, self._scope_to_tenant
                    )

                await self._check_unique_contact(
                    email=data.email.value if data.email else None,
                    national_id=data.national_id,
                )

                student = Student.create(
                    tenant_id=self._scope_to_tenant,
                    student_number=student_number,
                    first_name=data.first_name,
                    last_name=data.last_name,
                    date_of_birth=data.date_of_birth,
                    gender=data.gender,
                    address=data.address,
                    guardians=data.guardians,
                    enrollment_date=data.enrollment_date,
                    email=data.email,
                    phone_number=data.phone_number,
                    national_id=data.national_id,
                    blood_type=data.blood_type,
                    allergies=data.allergies,
                    medical_conditions=data.medical_conditions,
                    notes=data.notes,
                    created_by=performed_by,
                )
                await self._student_repository.save(student)
        except _DOMAIN_ERRORS as e:
            self._probe.operation_failed("enroll_student", e)
            raise

        self._probe.student_enrolled(
            student_id=student.id.value,
            student_number=student.student_number.value,
        )
        self._publisher.request_processing()
        return student

    async def get_student(self, student_id: str) -> Student:
        """Retrieve a student by ULID or student number.

        Raises:
            StudentNotFoundError: If no live student matches in the tenant
        """
        student = await self._require_student(student_id)
        self._probe.student_retrieved(student_id=student.id.value)
        return student

    async def update_student(
        self,
        student_id: str,
        changes: Mapping[str, Any],
        expected_version: int,
        performed_by: str,
    ) -> StudentUpdateResult:
        """Apply field changes to a student.

        Args:
            student_id: ULID or student number
            changes: New values keyed by field name, already parsed into
                domain value objects
            expected_version: Version the caller last read
            performed_by: Actor performing the update

        Returns:
            The student and the fields whose values actually changed

        Raises:
            StudentNotFoundError: If the student does not exist
            ConcurrencyError: If ``expected_version`` is stale
            BusinessRuleViolationError: If the student has graduated
            DuplicateStudentError: If the new email or national id is taken
            StudentValidationError: If the result violates an invariant
        """
        try:
            async with self._session.begin():
                student = await self._require_student(student_id)
                if student.version != expected_version:
                    raise ConcurrencyError(
                        "Student", student.id.value, expected_version, student.version
                    )
                if student.is_graduated:
                    raise BusinessRuleViolationError(
                        "GraduatedStudentImmutable",
                        "Graduated students cannot be modified",
                        {"current_status": student.status.value},
                    )

                email = changes.get("email")
                national_id = changes.get("national_id")
                await self._check_unique_contact(
                    email=email.value if email and email != student.email else None,
                    national_id=(
                        national_id
                        if national_id and national_id != student.national_id
                        else None
                    ),
                    exclude_id=student.id.value,
                )

                changed = student.apply_update(changes, updated_by=performed_by)
                if changed:
                    await self._student_repository.save(student)
        except _DOMAIN_ERRORS as e:
            self._probe.operation_failed("update_student", e, student_id=student_id)
            raise

        if changed:
            self._probe.student_updated(student.id.value, changed, student.version)
            self._publisher.request_processing()
        return StudentUpdateResult(student=student, changed_fields=changed)

    async def search_students(
        self,
        criteria: StudentSearchCriteria,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> StudentPage:
        """Search students in the tenant, one page at a time.

        Raises:
            StudentValidationError: If ``page`` or ``limit`` is out of range
        """
        if page < 1:
            raise StudentValidationError("page", page, "Page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise StudentValidationError(
                "limit", limit, f"Limit must be between 1 and {MAX_PAGE_SIZE}"
            )

        students, total = await self._student_repository.search(
            criteria,
            self._scope_to_tenant,
            limit=limit,
            offset=(page - 1) * limit,
        )
        total_students = await self._student_repository.count(self._scope_to_tenant)
        total_pages = math.ceil(total / limit)

        self._probe.students_searched(returned=len(students), total=total)
        return StudentPage(
            students=students,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
            total_students=total_students,
        )

    async def graduate_student(
        self, student_id: str, graduation_date: date, performed_by: str
    ) -> GraduationResult:
        """Graduate an active student.

        Raises:
            StudentNotFoundError: If the student does not exist
            BusinessRuleViolationError: If the student is not eligible
            StudentValidationError: If the graduation date is invalid
        """
        try:
            async with self._session.begin():
                student = await self._require_student(student_id)
                validate_graduation_eligibility(student)
                validate_graduation_date(student, graduation_date)
                summary = graduation_summary(student, graduation_date)

                previous_status = student.status
                student.graduate(graduation_date, updated_by=performed_by)
                await self._student_repository.save(student)
        except _DOMAIN_ERRORS as e:
            self._probe.operation_failed("graduate_student", e, student_id=student_id)
            raise

        self._probe.student_status_changed(
            student.id.value, previous_status.value, student.status.value
        )
        self._probe.student_graduated(student.id.value, summary.academic_year)
        self._publisher.request_processing()
        return GraduationResult(student=student, summary=summary)

    async def suspend_student(
        self, student_id: str, reason: str, performed_by: str
    ) -> Student:
        """Suspend a student.

        Raises:
            StudentNotFoundError: If the student does not exist
            StudentValidationError: If the reason is blank or the student
                has graduated
        """
        return await self._change_status(
            "suspend_student",
            student_id,
            lambda student: student.suspend(
                self._require_reason(reason), updated_by=performed_by
            ),
        )

    async def transfer_student(
        self, student_id: str, reason: str, performed_by: str
    ) -> Student:
        """Mark a student as transferred.

        Raises:
            StudentNotFoundError: If the student does not exist
            StudentValidationError: If the reason is blank or the student
                has graduated
        """
        return await self._change_status(
            "transfer_student",
            student_id,
            lambda student: student.transfer(
                self._require_reason(reason), updated_by=performed_by
            ),
        )

    async def reactivate_student(self, student_id: str, performed_by: str) -> Student:
        """Return a suspended, transferred or inactive student to active.

        Raises:
            StudentNotFoundError: If the student does not exist
            BusinessRuleViolationError: If the student is graduated or active
        """

        def reactivate(student: Student) -> None:
            validate_reactivation_eligibility(student)
            student.reactivate(updated_by=performed_by)

        return await self._change_status("reactivate_student", student_id, reactivate)

    async def delete_student(self, student_id: str, performed_by: str) -> None:
        """Soft-delete a student.

        Raises:
            StudentNotFoundError: If the student does not exist
            ConcurrencyError: If the student changed since it was read
        """
        try:
            async with self._session.begin():
                student = await self._require_student(student_id)
                student.mark_for_deletion(deleted_by=performed_by)
                await self._student_repository.delete(student)
        except _DOMAIN_ERRORS as e:
            self._probe.operation_failed("delete_student", e, student_id=student_id)
            raise

        self._probe.student_deleted(student.id.value)
        self._publisher.request_processing()

    async def _change_status(self, operation: str, student_id: str, change) -> Student:
        try:
            async with self._session.begin():
                student = await self._require_student(student_id)
                previous_status = student.status
                change(student)
                await self._student_repository.save(student)
        except _DOMAIN_ERRORS as e:
            self._probe.operation_failed(operation, e, student_id=student_id)
            raise

        self._probe.student_status_changed(
            student.id.value, previous_status.value, student.status.value
        )
        self._publisher.request_processing()
        return student

    async def _require_student(self, student_id: str) -> Student:
        student = await self._student_repository.get_by_id(
            student_id, self._scope_to_tenant
        )
        if student is None:
            self._probe.student_not_found(student_id)
            raise StudentNotFoundError(student_id, self._scope_to_tenant)
        return student

    async def _check_unique_contact(
        self,
        email: str | None,
        national_id: str | None,
        exclude_id: str | None = None,
    ) -> None:
        if email and not await self._student_repository.is_email_unique(
            email, self._scope_to_tenant, exclude_id
        ):
            raise DuplicateStudentError("email", email, self._scope_to_tenant)
        if national_id and not await self._student_repository.is_national_id_unique(
            national_id, self._scope_to_tenant, exclude_id
        ):
            raise DuplicateStudentError("national_id", national_id, self._scope_to_tenant)

    async def _generate_student_number(self) -> StudentNumber:
        for _ in range(STUDENT_NUMBER_ATTEMPTS):
            candidate = StudentNumber.generate()
            if await self._student_repository.is_student_number_unique(
                candidate.value, self._scope_to_tenant
            ):
                return candidate
        raise BusinessRuleViolationError(
            "StudentNumberExhausted",
            "Could not allocate a unique student number",
            {"attempts": STUDENT_NUMBER_ATTEMPTS},
        )

    @staticmethod
    def _require_reason(reason: str) -> str:
        if not reason or not reason.strip():
            raise StudentValidationError("reason", reason, "Reason is required")
        return reason.strip()
