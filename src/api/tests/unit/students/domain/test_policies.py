"""Unit tests for enrollment and graduation policies."""

from datetime import date, timedelta

import pytest

from students.domain import policies
from students.domain.value_objects import StudentStatus
from students.ports.exceptions import (
    BusinessRuleViolationError,
    StudentValidationError,
)

TODAY = date(2026, 6, 1)


class TestEnrollmentEligibility:
    def test_accepts_age_in_range(self):
        policies.validate_enrollment_eligibility(date(2015, 1, 1), TODAY)

    def test_too_young(self):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_enrollment_eligibility(date(2024, 1, 1), TODAY)
        assert exc_info.value.rule == "MinimumEnrollmentAge"
        assert exc_info.value.details["age_at_enrollment"] == 2

    def test_too_old(self):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_enrollment_eligibility(date(1990, 1, 1), TODAY)
        assert exc_info.value.rule == "MaximumEnrollmentAge"


class TestGuardianRequirements:
    def test_single_primary_emergency_guardian_is_valid(self, make_guardian):
        policies.validate_guardian_requirements([make_guardian()])

    def test_empty_list(self):
        with pytest.raises(StudentValidationError):
            policies.validate_guardian_requirements([])

    def test_more_than_five(self, make_guardian):
        guardians = [
            make_guardian(
                primary=i == 0, email=f"g{i}@example.com", phone=f"+1555000000{i}"
            )
            for i in range(6)
        ]
        with pytest.raises(StudentValidationError) as exc_info:
            policies.validate_guardian_requirements(guardians)
        assert "Maximum of 5" in exc_info.value.reason

    def test_two_primaries(self, make_guardian):
        guardians = [
            make_guardian(),
            make_guardian(email="other@example.com", phone="+15559990000"),
        ]
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_guardian_requirements(guardians)
        assert exc_info.value.rule == "PrimaryContactRequirement"

    def test_no_emergency_contact(self, make_guardian):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_guardian_requirements([make_guardian(emergency=False)])
        assert exc_info.value.rule == "EmergencyContactRequirement"

    def test_duplicate_email(self, make_guardian):
        guardians = [make_guardian(), make_guardian(primary=False, phone="+15559990000")]
        with pytest.raises(StudentValidationError) as exc_info:
            policies.validate_guardian_requirements(guardians)
        assert "emails" in exc_info.value.reason

    def test_duplicate_phone(self, make_guardian):
        guardians = [make_guardian(), make_guardian(primary=False, email="b@example.com")]
        with pytest.raises(StudentValidationError) as exc_info:
            policies.validate_guardian_requirements(guardians)
        assert "phone" in exc_info.value.reason


class TestGraduationEligibility:
    def test_active_student_enrolled_over_a_year(self, make_student):
        student = make_student(
            date_of_birth=date(2012, 1, 1),
            enrollment_date=TODAY - timedelta(days=400),
            today=TODAY,
        )
        policies.validate_graduation_eligibility(student, today=TODAY)

    def test_inactive_student(self, make_student):
        student = make_student(
            date_of_birth=date(2012, 1, 1),
            enrollment_date=date(2024, 1, 1),
            today=TODAY,
        )
        student.status = StudentStatus.SUSPENDED
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_graduation_eligibility(student, today=TODAY)
        assert exc_info.value.rule == "GraduationEligibility"

    def test_recent_enrollment(self, make_student):
        student = make_student(
            date_of_birth=date(2012, 1, 1),
            enrollment_date=TODAY - timedelta(days=100),
            today=TODAY,
        )
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_graduation_eligibility(student, today=TODAY)
        assert exc_info.value.rule == "MinimumEnrollmentPeriod"


class TestGraduationDate:
    @pytest.fixture
    def student(self, make_student):
        return make_student(
            date_of_birth=date(2008, 1, 1),
            enrollment_date=date(2022, 9, 1),
            today=TODAY,
        )

    def test_valid_date(self, student):
        policies.validate_graduation_date(student, date(2026, 5, 30), today=TODAY)

    def test_future_date(self, student):
        with pytest.raises(StudentValidationError):
            policies.validate_graduation_date(student, TODAY + timedelta(days=1), today=TODAY)

    def test_not_after_enrollment(self, student):
        with pytest.raises(StudentValidationError):
            policies.validate_graduation_date(student, date(2022, 9, 1), today=TODAY)

    def test_less_than_a_year_after_enrollment(self, student):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_graduation_date(student, date(2023, 6, 1), today=TODAY)
        assert exc_info.value.rule == "MinimumEnrollmentPeriod"

    def test_too_young_to_graduate(self, make_student):
        student = make_student(
            date_of_birth=date(2016, 1, 1),
            enrollment_date=date(2022, 9, 1),
            today=TODAY,
        )
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            policies.validate_graduation_date(student, date(2026, 5, 1), today=TODAY)
        assert exc_info.value.rule == "MinimumGraduationAge"


class TestReactivationEligibility:
    def test_suspended_student_can_return(self, make_student):
        student = make_student()
        student.suspend("conduct")
        policies.validate_reactivation_eligibility(student)

    def test_active_student(self, make_student):
        with pytest.raises(BusinessRuleViolationError):
            policies.validate_reactivation_eligibility(make_student())

    def test_graduated_student(self, make_student):
        student = make_student()
        student.status = StudentStatus.GRADUATED
        with pytest.raises(BusinessRuleViolationError):
            policies.validate_reactivation_eligibility(student)


class TestGraduationSummary:
    @pytest.mark.parametrize(
        ("on", "expected"),
        [(date(2026, 7, 31), "2025-2026"), (date(2026, 8, 1), "2026-2027")],
    )
    def test_academic_year_starts_in_august(self, on, expected):
        assert policies.academic_year(on) == expected

    def test_summary_figures(self, make_student):
        student = make_student(
            date_of_birth=date(2008, 3, 1),
            enrollment_date=date(2022, 9, 1),
            today=TODAY,
        )

        summary = policies.graduation_summary(student, date(2026, 5, 30))

        assert summary.years_enrolled == 3.7
        assert summary.academic_year == "2025-2026"
        assert summary.age_at_graduation == 18
