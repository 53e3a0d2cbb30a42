"""Unit tests for StudentService.

The repository and publisher are mocked; the session's begin() works as
an async context manager (see the unit conftest).
"""

from datetime import date
from unittest.mock import MagicMock, create_autospec

import pytest

from students.application.services import StudentService
from students.application.value_objects import EnrollmentData
from students.domain.value_objects import (
    Email,
    Gender,
    StudentNumber,
    StudentStatus,
)
from students.ports.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
    StudentValidationError,
)
from students.ports.repositories import IStudentRepository, StudentSearchCriteria

TENANT = "tenant-a"


@pytest.fixture
def mock_repository():
    repository = create_autospec(IStudentRepository, instance=True)
    repository.is_student_number_unique.return_value = True
    repository.is_email_unique.return_value = True
    repository.is_national_id_unique.return_value = True
    repository.get_by_id.return_value = None
    return repository


@pytest.fixture
def mock_publisher():
    return MagicMock()


@pytest.fixture
def mock_probe():
    return MagicMock()


@pytest.fixture
def service(mock_session, mock_repository, mock_publisher, mock_probe):
    return StudentService(
        session=mock_session,
        student_repository=mock_repository,
        publisher=mock_publisher,
        scope_to_tenant=TENANT,
        probe=mock_probe,
    )


@pytest.fixture
def enrollment(make_address, make_guardian):
    def build(**overrides) -> EnrollmentData:
        values = {
            "first_name": "Alex",
            "last_name": "Smith",
            "date_of_birth": date(2014, 3, 2),
            "gender": Gender.OTHER,
            "address": make_address(),
            "guardians": [make_guardian()],
            "enrollment_date": date(2024, 9, 1),
        }
        values.update(overrides)
        return EnrollmentData(**values)

    return build


def _with_dates(make_persisted_student, **overrides):
    values = {"date_of_birth": date(2006, 1, 1), "enrollment_date": date(2022, 9, 1)}
    values.update(overrides)
    return make_persisted_student(**values)


class TestEnrollStudent:
    @pytest.mark.asyncio
    async def test_enrolls_and_nudges_publisher(
        self, service, enrollment, mock_repository, mock_publisher, mock_probe, mock_session
    ):
        student = await service.enroll_student(
            enrollment(student_number=StudentNumber("STU123456")), performed_by="registrar"
        )

        assert student.tenant_id == TENANT
        assert student.student_number.value == "STU123456"
        assert student.created_by == "registrar"
        mock_session.begin.assert_called_once()
        mock_repository.save.assert_awaited_once_with(student)
        mock_publisher.request_processing.assert_called_once()
        mock_probe.student_enrolled.assert_called_once_with(
            student_id=student.id.value, student_number="STU123456"
        )

    @pytest.mark.asyncio
    async def test_generates_missing_student_number(self, service, enrollment, mock_repository):
        mock_repository.is_student_number_unique.side_effect = [False, True]

        student = await service.enroll_student(enrollment(), performed_by="registrar")

        assert StudentNumber.is_valid(student.student_number.value)
        assert mock_repository.is_student_number_unique.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_when_numbers_are_exhausted(
        self, service, enrollment, mock_repository
    ):
        mock_repository.is_student_number_unique.return_value = False

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.enroll_student(enrollment(), performed_by="registrar")

        assert exc_info.value.rule == "StudentNumberExhausted"
        mock_repository.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_taken_student_number_is_rejected(
        self, service, enrollment, mock_repository, mock_publisher, mock_probe
    ):
        mock_repository.is_student_number_unique.return_value = False

        with pytest.raises(DuplicateStudentError) as exc_info:
            await service.enroll_student(
                enrollment(student_number=StudentNumber("STU123456")),
                performed_by="registrar",
            )

        assert exc_info.value.field == "student_number"
        mock_publisher.request_processing.assert_not_called()
        assert mock_probe.operation_failed.call_args[0][0] == "enroll_student"

    @pytest.mark.asyncio
    async def test_taken_email_is_rejected(self, service, enrollment, mock_repository):
        mock_repository.is_email_unique.return_value = False

        with pytest.raises(DuplicateStudentError) as exc_info:
            await service.enroll_student(
                enrollment(email=Email("alex@example.com")), performed_by="registrar"
            )

        assert exc_info.value.field == "email"

    @pytest.mark.asyncio
    async def test_taken_national_id_is_rejected(self, service, enrollment, mock_repository):
        mock_repository.is_national_id_unique.return_value = False

        with pytest.raises(DuplicateStudentError) as exc_info:
            await service.enroll_student(
                enrollment(national_id="123-45-6789"), performed_by="registrar"
            )

        assert exc_info.value.field == "national_id"

    @pytest.mark.asyncio
    async def test_too_young_at_enrollment(self, service, enrollment):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.enroll_student(
                enrollment(date_of_birth=date(2023, 1, 1)), performed_by="registrar"
            )

        assert exc_info.value.rule == "MinimumEnrollmentAge"

    @pytest.mark.asyncio
    async def test_guardian_without_emergency_contact(
        self, service, enrollment, make_guardian
    ):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.enroll_student(
                enrollment(guardians=[make_guardian(emergency=False)]),
                performed_by="registrar",
            )

        assert exc_info.value.rule == "EmergencyContactRequirement"


class TestGetStudent:
    @pytest.mark.asyncio
    async def test_returns_student(self, service, mock_repository, make_persisted_student):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        assert await service.get_student(student.id.value) is student
        mock_repository.get_by_id.assert_awaited_once_with(student.id.value, TENANT)

    @pytest.mark.asyncio
    async def test_missing_student(self, service, mock_probe):
        with pytest.raises(StudentNotFoundError):
            await service.get_student("STU999999")

        mock_probe.student_not_found.assert_called_once_with("STU999999")


class TestUpdateStudent:
    @pytest.mark.asyncio
    async def test_saves_changed_fields(
        self, service, mock_repository, mock_publisher, make_persisted_student
    ):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        result = await service.update_student(
            student.id.value, {"last_name": "Jones"}, expected_version=1, performed_by="clerk"
        )

        assert result.changed_fields == ["last_name"]
        assert result.student.updated_by == "clerk"
        mock_repository.save.assert_awaited_once_with(student)
        mock_publisher.request_processing.assert_called_once()

    @pytest.mark.asyncio
    async def test_unchanged_values_skip_the_save(
        self, service, mock_repository, mock_publisher, make_persisted_student
    ):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        result = await service.update_student(
            student.id.value, {"last_name": "Smith"}, expected_version=1, performed_by="clerk"
        )

        assert result.changed_fields == []
        mock_repository.save.assert_not_awaited()
        mock_publisher.request_processing.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(
        self, service, mock_repository, make_persisted_student
    ):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        with pytest.raises(ConcurrencyError) as exc_info:
            await service.update_student(
                student.id.value, {"last_name": "Jones"}, expected_version=4, performed_by="clerk"
            )

        assert exc_info.value.expected_version == 4
        assert exc_info.value.actual_version == 1

    @pytest.mark.asyncio
    async def test_graduated_students_are_immutable(
        self, service, mock_repository, make_persisted_student
    ):
        student = _with_dates(make_persisted_student)
        student.graduate(date(2024, 9, 1))
        mock_repository.get_by_id.return_value = student

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.update_student(
                student.id.value, {"notes": "x"}, expected_version=1, performed_by="clerk"
            )

        assert exc_info.value.rule == "GraduatedStudentImmutable"

    @pytest.mark.asyncio
    async def test_email_uniqueness_excludes_the_student(
        self, service, mock_repository, make_persisted_student
    ):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        await service.update_student(
            student.id.value,
            {"email": Email("alex@example.com")},
            expected_version=1,
            performed_by="clerk",
        )

        mock_repository.is_email_unique.assert_awaited_once_with(
            "alex@example.com", TENANT, student.id.value
        )


class TestSearchStudents:
    @pytest.mark.asyncio
    async def test_pagination(self, service, mock_repository, make_persisted_student):
        students = [make_persisted_student() for _ in range(2)]
        mock_repository.search.return_value = (students, 45)
        mock_repository.count.return_value = 60
        criteria = StudentSearchCriteria(status=StudentStatus.ACTIVE)

        page = await service.search_students(criteria, page=2, limit=20)

        mock_repository.search.assert_awaited_once_with(criteria, TENANT, limit=20, offset=20)
        assert page.total == 45
        assert page.total_pages == 3
        assert page.has_next
        assert page.has_previous
        assert page.total_students == 60

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page,limit", [(0, 20), (1, 0), (1, 101)])
    async def test_rejects_out_of_range_paging(self, service, page, limit):
        with pytest.raises(StudentValidationError):
            await service.search_students(StudentSearchCriteria(), page=page, limit=limit)


class TestGraduateStudent:
    @pytest.mark.asyncio
    async def test_graduates_with_summary(
        self, service, mock_repository, mock_publisher, mock_probe, make_persisted_student
    ):
        student = _with_dates(make_persisted_student)
        mock_repository.get_by_id.return_value = student

        result = await service.graduate_student(
            student.id.value, date(2025, 6, 15), performed_by="registrar"
        )

        assert result.student.is_graduated
        assert result.summary.academic_year == "2024-2025"
        assert result.summary.age_at_graduation == 19
        mock_repository.save.assert_awaited_once_with(student)
        mock_probe.student_status_changed.assert_called_once_with(
            student.id.value, "active", "graduated"
        )
        mock_publisher.request_processing.assert_called_once()

    @pytest.mark.asyncio
    async def test_short_enrollment_is_rejected(
        self, service, mock_repository, make_persisted_student
    ):
        student = _with_dates(make_persisted_student, enrollment_date=date.today())
        mock_repository.get_by_id.return_value = student

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.graduate_student(
                student.id.value, date.today(), performed_by="registrar"
            )

        assert exc_info.value.rule == "MinimumEnrollmentPeriod"
        mock_repository.save.assert_not_awaited()


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_suspend(self, service, mock_repository, mock_probe, make_persisted_student):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        result = await service.suspend_student(
            student.id.value, "  attendance ", performed_by="dean"
        )

        assert result.status is StudentStatus.SUSPENDED
        assert result.notes == "Suspended: attendance"
        mock_probe.student_status_changed.assert_called_once_with(
            student.id.value, "active", "suspended"
        )

    @pytest.mark.asyncio
    async def test_blank_reason_is_rejected(
        self, service, mock_repository, make_persisted_student
    ):
        mock_repository.get_by_id.return_value = make_persisted_student()

        with pytest.raises(StudentValidationError) as exc_info:
            await service.transfer_student("STU000001", "   ", performed_by="dean")

        assert exc_info.value.field == "reason"
        mock_repository.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transfer(self, service, mock_repository, make_persisted_student):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        result = await service.transfer_student(student.id.value, "moved", performed_by="dean")

        assert result.status is StudentStatus.TRANSFERRED

    @pytest.mark.asyncio
    async def test_reactivate_active_student_is_rejected(
        self, service, mock_repository, make_persisted_student
    ):
        mock_repository.get_by_id.return_value = make_persisted_student()

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.reactivate_student("STU000001", performed_by="dean")

        assert exc_info.value.message == "Student is already active"

    @pytest.mark.asyncio
    async def test_reactivate_suspended_student(
        self, service, mock_repository, make_persisted_student
    ):
        student = make_persisted_student()
        student.suspend("conduct")
        student.collect_events()
        mock_repository.get_by_id.return_value = student

        result = await service.reactivate_student(student.id.value, performed_by="dean")

        assert result.is_active


class TestDeleteStudent:
    @pytest.mark.asyncio
    async def test_soft_deletes(
        self, service, mock_repository, mock_publisher, mock_probe, make_persisted_student
    ):
        student = make_persisted_student()
        mock_repository.get_by_id.return_value = student

        await service.delete_student(student.id.value, performed_by="admin")

        mock_repository.delete.assert_awaited_once_with(student)
        assert student.deleted_at is not None
        mock_probe.student_deleted.assert_called_once_with(student.id.value)
        mock_publisher.request_processing.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_student(self, service, mock_repository, mock_probe):
        with pytest.raises(StudentNotFoundError):
            await service.delete_student("STU999999", performed_by="admin")

        mock_repository.delete.assert_not_awaited()
        assert mock_probe.operation_failed.call_args[0][0] == "delete_student"
