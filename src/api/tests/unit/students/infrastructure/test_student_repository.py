"""Unit tests for StudentRepository.

Storage itself is covered by the integration suite; these tests check the
repository's control flow and column mapping with a mocked session.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from students.domain.value_objects import Gender, StudentStatus
from students.infrastructure.models import StudentModel
from students.infrastructure.student_repository import (
    StudentRepository,
    gender_from_column,
    gender_to_column,
    status_from_column,
    status_to_column,
)
from students.ports.exceptions import (
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
)
from students.ports.repositories import IStudentRepository


@pytest.fixture
def mock_probe():
    return MagicMock()


@pytest.fixture
def mock_outbox():
    outbox = MagicMock()
    outbox.append = AsyncMock()
    return outbox


@pytest.fixture
def repository(mock_session, mock_outbox, mock_probe):
    return StudentRepository(session=mock_session, outbox=mock_outbox, probe=mock_probe)


def _update_result(rowcount: int) -> MagicMock:
    result = MagicMock()
    result.rowcount = rowcount
    return result


def _version_result(version: int | None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = version
    return result


class TestColumnMapping:
    @pytest.mark.parametrize("status", list(StudentStatus))
    def test_status_round_trip(self, status):
        column = status_to_column(status)
        assert column == status.value.upper()
        assert status_from_column(column) is status

    @pytest.mark.parametrize("gender", list(Gender))
    def test_gender_round_trip(self, gender):
        assert gender_from_column(gender_to_column(gender)) is gender

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown student status"):
            status_from_column("active")

    def test_unknown_gender_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown gender"):
            gender_from_column("X")


class TestProtocolCompliance:
    def test_implements_protocol(self, repository):
        assert isinstance(repository, IStudentRepository)


class TestSaveNewStudent:
    @pytest.mark.asyncio
    async def test_inserts_row_and_appends_events(
        self, repository, mock_session, mock_outbox, mock_probe, make_student
    ):
        student = make_student()

        await repository.save(student)

        model = mock_session.add.call_args[0][0]
        assert isinstance(model, StudentModel)
        assert model.version == 1
        assert model.status == "ACTIVE"
        assert model.gender == "OTHER"
        assert model.guardians[0]["email"] == "pat.smith@example.com"
        mock_session.flush.assert_awaited_once()

        envelope = mock_outbox.append.await_args[0][0]
        assert envelope.event_type == "student.enrolled"
        assert envelope.aggregate_id == student.id.value

        assert student.version == 1
        assert not student.is_new
        assert student.created_at is not None
        mock_probe.student_saved.assert_called_once_with(
            student.id.value, student.tenant_id, 1, 1
        )

    @pytest.mark.asyncio
    async def test_duplicate_number_is_translated(
        self, repository, mock_session, mock_outbox, mock_probe, make_student
    ):
        mock_session.flush.side_effect = IntegrityError(
            "INSERT INTO students",
            {},
            Exception("UNIQUE constraint failed: students.tenant_id, students.student_number"),
        )
        student = make_student()

        with pytest.raises(DuplicateStudentError) as exc_info:
            await repository.save(student)

        assert exc_info.value.field == "student_number"
        assert exc_info.value.value == "STU000001"
        mock_outbox.append.assert_not_awaited()
        mock_probe.duplicate_student_number.assert_called_once()
        assert student.is_new

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(
        self, repository, mock_session, make_student
    ):
        mock_session.flush.side_effect = IntegrityError(
            "INSERT INTO students", {}, Exception("NOT NULL constraint failed: students.city")
        )

        with pytest.raises(IntegrityError):
            await repository.save(make_student())


class TestSaveExistingStudent:
    @pytest.mark.asyncio
    async def test_compare_and_swap_advances_version(
        self, repository, mock_session, mock_outbox, make_persisted_student
    ):
        student = make_persisted_student()
        student.suspend("conduct")
        mock_session.execute.return_value = _update_result(1)

        await repository.save(student)

        assert student.version == 2
        mock_session.add.assert_not_called()
        envelope = mock_outbox.append.await_args[0][0]
        assert envelope.event_type == "student.suspended"
        assert envelope.version == 2

    @pytest.mark.asyncio
    async def test_stale_version_raises_concurrency_error(
        self, repository, mock_session, mock_outbox, mock_probe, make_persisted_student
    ):
        student = make_persisted_student()
        student.suspend("conduct")
        mock_session.execute.side_effect = [_update_result(0), _version_result(5)]

        with pytest.raises(ConcurrencyError) as exc_info:
            await repository.save(student)

        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 5
        assert student.version == 1
        mock_outbox.append.assert_not_awaited()
        mock_probe.version_conflict.assert_called_once_with(student.id.value, 1, 5)

    @pytest.mark.asyncio
    async def test_missing_row_raises_not_found(
        self, repository, mock_session, make_persisted_student
    ):
        student = make_persisted_student()
        student.suspend("conduct")
        mock_session.execute.side_effect = [_update_result(0), _version_result(None)]

        with pytest.raises(StudentNotFoundError):
            await repository.save(student)


class TestDelete:
    @pytest.mark.asyncio
    async def test_soft_delete_appends_deleted_event(
        self, repository, mock_session, mock_outbox, mock_probe, make_persisted_student
    ):
        student = make_persisted_student()
        student.mark_for_deletion(deleted_by="admin")
        mock_session.execute.return_value = _update_result(1)

        await repository.delete(student)

        envelope = mock_outbox.append.await_args[0][0]
        assert envelope.event_type == "student.deleted"
        mock_probe.student_deleted.assert_called_once_with(
            student.id.value, student.tenant_id
        )
