"""Enrollment and graduation policies for the students context.

Policies are stateless rules that span more than one field of the Student
aggregate, or that depend on the date an operation happens. They raise
domain exceptions and never touch persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from students.domain.aggregates import Student
from students.domain.value_objects import GuardianInfo, calculate_age
from students.ports.exceptions import (
    BusinessRuleViolationError,
    StudentValidationError,
)

MIN_ENROLLMENT_AGE = 3
MAX_ENROLLMENT_AGE = 25
MAX_GUARDIANS = 5
MIN_ENROLLMENT_DAYS = 365
MIN_GRADUATION_AGE = 16
MAX_GRADUATION_LOOKBACK_YEARS = 100

# Academic years start in August
ACADEMIC_YEAR_START_MONTH = 8


@dataclass(frozen=True)
class GraduationSummary:
    """Figures reported alongside a graduation.

    Attributes:
        years_enrolled: Enrollment length in years, one decimal place
        academic_year: Academic year label, e.g. "2023-2024"
        age_at_graduation: Whole years of age on the graduation date
    """

    years_enrolled: float
    academic_year: str
    age_at_graduation: int


def validate_enrollment_eligibility(date_of_birth: date, enrollment_date: date) -> None:
    """Require the student to be 3-25 years old on the enrollment date.

    Raises:
        BusinessRuleViolationError: If the age is outside the range
    """
    age = calculate_age(date_of_birth, enrollment_date)
    if age < MIN_ENROLLMENT_AGE:
        raise BusinessRuleViolationError(
            "MinimumEnrollmentAge",
            f"Student must be at least {MIN_ENROLLMENT_AGE} years old at enrollment",
            {"age_at_enrollment": age, "minimum_age": MIN_ENROLLMENT_AGE},
        )
    if age > MAX_ENROLLMENT_AGE:
        raise BusinessRuleViolationError(
            "MaximumEnrollmentAge",
            f"Student cannot be older than {MAX_ENROLLMENT_AGE} years at enrollment",
            {"age_at_enrollment": age, "maximum_age": MAX_ENROLLMENT_AGE},
        )


def validate_guardian_requirements(guardians: list[GuardianInfo]) -> None:
    """Check the guardian list of a new enrollment.

    Raises:
        StudentValidationError: On a missing, oversized or duplicated list
        BusinessRuleViolationError: On primary or emergency contact rules
    """
    if not guardians:
        raise StudentValidationError(
            "guardians", guardians, "At least one guardian is required"
        )
    if len(guardians) > MAX_GUARDIANS:
        raise StudentValidationError(
            "guardians", guardians, f"Maximum of {MAX_GUARDIANS} guardians allowed"
        )

    primary_count = sum(1 for g in guardians if g.is_primary_contact)
    if primary_count != 1:
        raise BusinessRuleViolationError(
            "PrimaryContactRequirement",
            "Exactly one guardian must be designated as primary contact",
            {"primary_contact_count": primary_count},
        )
    if not any(g.is_emergency_contact for g in guardians):
        raise BusinessRuleViolationError(
            "EmergencyContactRequirement",
            "At least one guardian must be designated as emergency contact",
            {"emergency_contact_count": 0},
        )

    emails = [g.email.value for g in guardians]
    if len(set(emails)) != len(emails):
        raise StudentValidationError(
            "guardians", guardians, "Guardian emails must be unique"
        )
    phones = [g.phone_number.value for g in guardians]
    if len(set(phones)) != len(phones):
        raise StudentValidationError(
            "guardians", guardians, "Guardian phone numbers must be unique"
        )


def validate_graduation_eligibility(student: Student, today: date | None = None) -> None:
    """Require an active student enrolled for at least a year.

    Raises:
        BusinessRuleViolationError: If the student is not eligible
    """
    if not student.is_active:
        raise BusinessRuleViolationError(
            "GraduationEligibility",
            "Only active students can graduate",
            {"current_status": student.status.value},
        )

    enrollment_days = ((today or date.today()) - student.enrollment_date).days
    if enrollment_days < MIN_ENROLLMENT_DAYS:
        raise BusinessRuleViolationError(
            "MinimumEnrollmentPeriod",
            "Student must be enrolled for at least 1 year before graduation",
            {
                "enrollment_days": enrollment_days,
                "minimum_enrollment_days": MIN_ENROLLMENT_DAYS,
            },
        )


def validate_graduation_date(
    student: Student, graduation_date: date, today: date | None = None
) -> None:
    """Check a proposed graduation date against the student's record.

    Raises:
        StudentValidationError: If the date is in the future, not after
            enrollment, or implausibly old
        BusinessRuleViolationError: If the enrollment is shorter than a year
            or the student would be younger than 16
    """
    today = today or date.today()
    if graduation_date > today:
        raise StudentValidationError(
            "graduation_date", graduation_date, "Graduation date cannot be in the future"
        )
    if graduation_date <= student.enrollment_date:
        raise StudentValidationError(
            "graduation_date",
            graduation_date,
            "Graduation date must be after enrollment date",
        )
    if graduation_date.year < today.year - MAX_GRADUATION_LOOKBACK_YEARS:
        raise StudentValidationError(
            "graduation_date",
            graduation_date,
            f"Graduation date cannot be more than {MAX_GRADUATION_LOOKBACK_YEARS} years ago",
        )

    enrollment_days = (graduation_date - student.enrollment_date).days
    if enrollment_days < MIN_ENROLLMENT_DAYS:
        raise BusinessRuleViolationError(
            "MinimumEnrollmentPeriod",
            f"Student must be enrolled for at least 1 year. "
            f"Current enrollment: {enrollment_days} days",
            {
                "enrollment_days": enrollment_days,
                "minimum_enrollment_days": MIN_ENROLLMENT_DAYS,
            },
        )

    age = calculate_age(student.date_of_birth, graduation_date)
    if age < MIN_GRADUATION_AGE:
        raise BusinessRuleViolationError(
            "MinimumGraduationAge",
            f"Student must be at least {MIN_GRADUATION_AGE} years old to graduate. "
            f"Age at graduation would be: {age}",
            {"age_at_graduation": age, "minimum_age": MIN_GRADUATION_AGE},
        )


def validate_reactivation_eligibility(student: Student) -> None:
    """Only suspended, transferred, inactive or expelled students return.

    Raises:
        BusinessRuleViolationError: If the student is graduated or active
    """
    if student.is_graduated:
        raise BusinessRuleViolationError(
            "ReactivationEligibility",
            "Graduated students cannot be reactivated",
            {"current_status": student.status.value},
        )
    if student.is_active:
        raise BusinessRuleViolationError(
            "ReactivationEligibility",
            "Student is already active",
            {"current_status": student.status.value},
        )


def academic_year(on: date) -> str:
    """Academic year label for a date, e.g. "2023-2024"."""
    if on.month >= ACADEMIC_YEAR_START_MONTH:
        return f"{on.year}-{on.year + 1}"
    return f"{on.year - 1}-{on.year}"


def graduation_summary(student: Student, graduation_date: date) -> GraduationSummary:
    """Summarise a graduation on ``graduation_date``."""
    days = (graduation_date - student.enrollment_date).days
    return GraduationSummary(
        years_enrolled=round(days / 365.25, 1),
        academic_year=academic_year(graduation_date),
        age_at_graduation=calculate_age(student.date_of_birth, graduation_date),
    )
