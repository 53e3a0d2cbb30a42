"""Unit tests for the students HTTP routes."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from students.application.services import StudentService
from students.application.value_objects import (
    GraduationResult,
    RequestScope,
    StudentPage,
    StudentUpdateResult,
)
from students.domain.policies import GraduationSummary
from students.domain.value_objects import StudentStatus
from students.ports.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    DuplicateStudentError,
    StudentNotFoundError,
    StudentValidationError,
)
from students.ports.repositories import SortOrder, StudentSortField

SCOPE = RequestScope(tenant_id="tenant-a", user_id="registrar")


@pytest.fixture
def mock_student_service() -> AsyncMock:
    return AsyncMock(spec=StudentService)


@pytest.fixture
def test_client(mock_student_service: AsyncMock) -> TestClient:
    """Create TestClient with mocked dependencies."""
    from students.dependencies.student import get_request_scope, get_student_service
    from students.presentation.routes import router

    app = FastAPI()
    app.dependency_overrides[get_student_service] = lambda: mock_student_service
    app.dependency_overrides[get_request_scope] = lambda: SCOPE
    app.include_router(router)

    return TestClient(app)


def enroll_body(**overrides) -> dict:
    body = {
        "first_name": "Alex",
        "last_name": "Smith",
        "date_of_birth": "2014-03-02",
        "gender": "other",
        "address": {
            "street": "12 Elm Street",
            "city": "Springfield",
            "state": "IL",
            "zip_code": "62701",
        },
        "guardians": [
            {
                "first_name": "Pat",
                "last_name": "Smith",
                "relationship": "Parent",
                "email": "Pat.Smith@Example.com",
                "phone_number": "+15551234567",
                "is_emergency_contact": True,
                "is_primary_contact": True,
            }
        ],
        "enrollment_date": "2024-09-01",
    }
    body.update(overrides)
    return body


class TestEnrollStudentRoute:
    def test_returns_201_with_student(
        self, test_client, mock_student_service, make_persisted_student
    ):
        student = make_persisted_student()
        mock_student_service.enroll_student.return_value = student

        response = test_client.post("/students", json=enroll_body())

        assert response.status_code == status.HTTP_201_CREATED
        result = response.json()
        assert result["id"] == student.id.value
        assert result["student_number"] == "STU000001"
        assert result["status"] == "active"
        assert result["version"] == 1

        data = mock_student_service.enroll_student.call_args[0][0]
        assert data.guardians[0].email.value == "pat.smith@example.com"
        assert data.student_number is None
        assert mock_student_service.enroll_student.call_args[1] == {
            "performed_by": "registrar"
        }

    def test_missing_guardians_is_422(self, test_client, mock_student_service):
        response = test_client.post("/students", json=enroll_body(guardians=[]))

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        mock_student_service.enroll_student.assert_not_called()

    def test_malformed_student_number_is_400(self, test_client, mock_student_service):
        response = test_client.post(
            "/students", json=enroll_body(student_number="12345")
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["field"] == "student_number"
        mock_student_service.enroll_student.assert_not_called()

    def test_duplicate_is_409(self, test_client, mock_student_service):
        mock_student_service.enroll_student.side_effect = DuplicateStudentError(
            "student_number", "STU000001", "tenant-a"
        )

        response = test_client.post("/students", json=enroll_body())

        assert response.status_code == status.HTTP_409_CONFLICT
        assert "STU000001" in response.json()["detail"]

    def test_business_rule_is_422_with_details(self, test_client, mock_student_service):
        mock_student_service.enroll_student.side_effect = BusinessRuleViolationError(
            "MinimumEnrollmentAge",
            "Student must be at least 3 years old at enrollment",
            {"age_at_enrollment": 1},
        )

        response = test_client.post("/students", json=enroll_body())

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        detail = response.json()["detail"]
        assert detail["rule"] == "MinimumEnrollmentAge"
        assert detail["details"] == {"age_at_enrollment": 1}

    def test_unexpected_error_is_500_without_internals(
        self, test_client, mock_student_service
    ):
        mock_student_service.enroll_student.side_effect = RuntimeError("pool exhausted")

        response = test_client.post("/students", json=enroll_body())

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Failed to enroll student"


class TestGetStudentRoute:
    def test_returns_student(self, test_client, mock_student_service, make_persisted_student):
        student = make_persisted_student()
        mock_student_service.get_student.return_value = student

        response = test_client.get("/students/STU000001")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["full_name"] == "Alex Smith"
        mock_student_service.get_student.assert_awaited_once_with("STU000001")

    def test_not_found_is_404(self, test_client, mock_student_service):
        mock_student_service.get_student.side_effect = StudentNotFoundError(
            "STU999999", "tenant-a"
        )

        response = test_client.get("/students/STU999999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Student STU999999 not found"


class TestSearchStudentsRoute:
    def test_passes_filters_and_paging(
        self, test_client, mock_student_service, make_persisted_student
    ):
        mock_student_service.search_students.return_value = StudentPage(
            students=[make_persisted_student()],
            total=1,
            page=1,
            limit=10,
            total_pages=1,
            has_next=False,
            has_previous=False,
            total_students=4,
        )

        response = test_client.get(
            "/students",
            params={
                "status": "active",
                "last_name": "smi",
                "has_allergies": "false",
                "sort_by": "enrollment_date",
                "sort_order": "desc",
                "limit": 10,
            },
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["total_students"] == 4
        assert len(body["students"]) == 1

        criteria = mock_student_service.search_students.call_args[0][0]
        assert criteria.status is StudentStatus.ACTIVE
        assert criteria.last_name == "smi"
        assert criteria.has_allergies is False
        assert criteria.sort_by is StudentSortField.ENROLLMENT_DATE
        assert criteria.sort_order is SortOrder.DESC
        assert mock_student_service.search_students.call_args[1] == {"page": 1, "limit": 10}

    def test_unknown_status_is_422(self, test_client, mock_student_service):
        response = test_client.get("/students", params={"status": "asleep"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_bad_paging_is_400(self, test_client, mock_student_service):
        mock_student_service.search_students.side_effect = StudentValidationError(
            "limit", 500, "Limit must be between 1 and 100"
        )

        response = test_client.get("/students", params={"limit": 500})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"]["field"] == "limit"


class TestUpdateStudentRoute:
    def test_sends_only_present_fields(
        self, test_client, mock_student_service, make_persisted_student
    ):
        student = make_persisted_student()
        mock_student_service.update_student.return_value = StudentUpdateResult(
            student=student, changed_fields=["last_name"]
        )

        response = test_client.put(
            f"/students/{student.id.value}",
            json={"expected_version": 1, "last_name": "Jones", "email": None},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["changed_fields"] == ["last_name"]
        kwargs = mock_student_service.update_student.call_args[1]
        assert kwargs["changes"] == {"last_name": "Jones", "email": None}
        assert kwargs["expected_version"] == 1
        assert kwargs["performed_by"] == "registrar"

    def test_requires_expected_version(self, test_client, mock_student_service):
        response = test_client.put("/students/STU000001", json={"last_name": "Jones"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_version_conflict_is_409(self, test_client, mock_student_service):
        mock_student_service.update_student.side_effect = ConcurrencyError(
            "Student", "01ABC", 1, 2
        )

        response = test_client.put(
            "/students/STU000001", json={"expected_version": 1, "notes": "x"}
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        detail = response.json()["detail"]
        assert detail["expected_version"] == 1
        assert detail["actual_version"] == 2


class TestDeleteStudentRoute:
    def test_returns_204(self, test_client, mock_student_service):
        mock_student_service.delete_student.return_value = None

        response = test_client.delete("/students/STU000001")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        mock_student_service.delete_student.assert_awaited_once_with(
            "STU000001", performed_by="registrar"
        )

    def test_not_found_is_404(self, test_client, mock_student_service):
        mock_student_service.delete_student.side_effect = StudentNotFoundError(
            "STU000001", "tenant-a"
        )

        response = test_client.delete("/students/STU000001")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestStatusRoutes:
    def test_graduate(self, test_client, mock_student_service, make_persisted_student):
        student = make_persisted_student(
            date_of_birth=date(2006, 1, 1), enrollment_date=date(2022, 9, 1)
        )
        student.graduate(date(2025, 6, 15))
        mock_student_service.graduate_student.return_value = GraduationResult(
            student=student,
            summary=GraduationSummary(
                years_enrolled=2.8, academic_year="2024-2025", age_at_graduation=19
            ),
        )

        response = test_client.post(
            f"/students/{student.id.value}/graduate",
            json={"graduation_date": "2025-06-15"},
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["academic_year"] == "2024-2025"
        assert body["student"]["status"] == "graduated"
        assert body["message"] == "Alex Smith has been successfully graduated on 2025-06-15"

    def test_suspend(self, test_client, mock_student_service, make_persisted_student):
        student = make_persisted_student()
        student.suspend("conduct")
        mock_student_service.suspend_student.return_value = student

        response = test_client.post(
            f"/students/{student.id.value}/suspend", json={"reason": "conduct"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "suspended"
        mock_student_service.suspend_student.assert_awaited_once_with(
            student.id.value, reason="conduct", performed_by="registrar"
        )

    def test_suspend_requires_reason(self, test_client, mock_student_service):
        response = test_client.post("/students/STU000001/suspend", json={"reason": ""})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        mock_student_service.suspend_student.assert_not_called()

    def test_transfer(self, test_client, mock_student_service, make_persisted_student):
        student = make_persisted_student()
        student.transfer("moved")
        mock_student_service.transfer_student.return_value = student

        response = test_client.post(
            f"/students/{student.id.value}/transfer", json={"reason": "moved"}
        )

        assert response.json()["status"] == "transferred"

    def test_reactivate_graduated_is_422(self, test_client, mock_student_service):
        mock_student_service.reactivate_student.side_effect = BusinessRuleViolationError(
            "ReactivationEligibility", "Graduated students cannot be reactivated"
        )

        response = test_client.post("/students/STU000001/reactivate")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["rule"] == "ReactivationEligibility"
