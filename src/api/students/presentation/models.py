"""Pydantic models for student API requests and responses.

Request models check shape only. Domain rules (formats, name lengths,
guardian rules) are enforced when a request is converted to domain
objects, and surface as StudentValidationError.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from students.application.value_objects import (
    EnrollmentData,
    GraduationResult,
    StudentPage,
    StudentUpdateResult,
)
from students.domain.aggregates import Student
from students.domain.value_objects import (
    Address,
    Email,
    Gender,
    GuardianInfo,
    GuardianRelationship,
    PhoneNumber,
    StudentNumber,
)


class GenderEnum(StrEnum):
    """API-level enum for gender.

    Maps to domain Gender values for validation.
    """

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AddressModel(BaseModel):
    """Postal address."""

    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(default="US", min_length=1, max_length=100)

    def to_domain(self) -> Address:
        return Address(
            street=self.street,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            country=self.country,
        )

    @classmethod
    def from_domain(cls, address: Address) -> AddressModel:
        return cls(
            street=address.street,
            city=address.city,
            state=address.state,
            zip_code=address.zip_code,
            country=address.country,
        )


class GuardianModel(BaseModel):
    """A parent or guardian, in requests and responses."""

    first_name: str = Field(..., description="Guardian first name")
    last_name: str = Field(..., description="Guardian last name")
    relationship: str = Field(..., description="Relationship to the student")
    email: str = Field(..., description="Contact email")
    phone_number: str = Field(..., description="Contact phone number")
    is_emergency_contact: bool = False
    is_primary_contact: bool = False
    address: AddressModel | None = None

    def to_domain(self) -> GuardianInfo:
        """Convert to a domain GuardianInfo.

        Raises:
            StudentValidationError: If a field fails a domain rule
        """
        return GuardianInfo(
            first_name=self.first_name,
            last_name=self.last_name,
            relationship=GuardianRelationship.parse(self.relationship),
            email=Email(self.email),
            phone_number=PhoneNumber(self.phone_number),
            is_emergency_contact=self.is_emergency_contact,
            is_primary_contact=self.is_primary_contact,
            address=self.address.to_domain() if self.address else None,
        )

    @classmethod
    def from_domain(cls, guardian: GuardianInfo) -> GuardianModel:
        return cls(
            first_name=guardian.first_name,
            last_name=guardian.last_name,
            relationship=guardian.relationship.value,
            email=guardian.email.value,
            phone_number=guardian.phone_number.value,
            is_emergency_contact=guardian.is_emergency_contact,
            is_primary_contact=guardian.is_primary_contact,
            address=(
                AddressModel.from_domain(guardian.address) if guardian.address else None
            ),
        )


class EnrollStudentRequest(BaseModel):
    """Request model for enrolling a student."""

    student_number: str | None = Field(
        default=None, description="STU followed by six digits; generated if omitted"
    )
    first_name: str
    last_name: str
    date_of_birth: date
    gender: GenderEnum
    address: AddressModel
    guardians: list[GuardianModel] = Field(..., min_length=1)
    enrollment_date: date | None = Field(
        default=None, description="Defaults to today"
    )
    email: str | None = None
    phone_number: str | None = None
    national_id: str | None = None
    blood_type: str | None = Field(default=None, max_length=10)
    allergies: list[str] = Field(default_factory=list)
    medical_conditions: list[str] = Field(default_factory=list)
    notes: str | None = None

    def to_domain(self) -> EnrollmentData:
        """Convert to enrollment data for the service.

        Raises:
            StudentValidationError: If a field fails a domain rule
        """
        return EnrollmentData(
            student_number=(
                StudentNumber(self.student_number) if self.student_number else None
            ),
            first_name=self.first_name,
            last_name=self.last_name,
            date_of_birth=self.date_of_birth,
            gender=Gender(self.gender.value),
            address=self.address.to_domain(),
            guardians=[g.to_domain() for g in self.guardians],
            enrollment_date=self.enrollment_date or date.today(),
            email=Email(self.email) if self.email else None,
            phone_number=PhoneNumber(self.phone_number) if self.phone_number else None,
            national_id=self.national_id,
            blood_type=self.blood_type,
            allergies=list(self.allergies),
            medical_conditions=list(self.medical_conditions),
            notes=self.notes,
        )


class UpdateStudentRequest(BaseModel):
    """Request model for updating a student.

    Only fields present in the body are changed. Sending ``null`` for an
    optional field clears it.
    """

    expected_version: int = Field(..., ge=1, description="Version last read")
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    address: AddressModel | None = None
    national_id: str | None = None
    blood_type: str | None = Field(default=None, max_length=10)
    allergies: list[str] | None = None
    medical_conditions: list[str] | None = None
    notes: str | None = None

    def to_changes(self) -> dict[str, Any]:
        """Build the change set for the fields the client sent.

        Raises:
            StudentValidationError: If a field fails a domain rule
        """
        changes: dict[str, Any] = {}
        for name in self.model_fields_set - {"expected_version"}:
            value = getattr(self, name)
            if name == "email":
                value = Email(value) if value else None
            elif name == "phone_number":
                value = PhoneNumber(value) if value else None
            elif name == "address":
                if value is None:
                    continue
                value = value.to_domain()
            elif name in ("allergies", "medical_conditions"):
                value = list(value or [])
            elif name in ("first_name", "last_name") and value is None:
                continue
            changes[name] = value
        return changes


class GraduateStudentRequest(BaseModel):
    graduation_date: date


class StatusChangeRequest(BaseModel):
    """Request model for suspend and transfer."""

    reason: str = Field(..., min_length=1, max_length=500)


class StudentResponse(BaseModel):
    """Response model for a student."""

    id: str = Field(..., description="Student ID (ULID format)")
    tenant_id: str
    student_number: str
    first_name: str
    last_name: str
    full_name: str
    date_of_birth: date
    age: int
    gender: str
    email: str | None
    phone_number: str | None
    address: AddressModel
    guardians: list[GuardianModel]
    status: str
    enrollment_date: date
    graduation_date: date | None
    national_id: str | None
    blood_type: str | None
    allergies: list[str]
    medical_conditions: list[str]
    notes: str | None
    version: int
    created_at: datetime | None
    updated_at: datetime | None
    created_by: str | None
    updated_by: str | None

    @classmethod
    def from_domain(cls, student: Student) -> StudentResponse:
        """Convert domain Student aggregate to API response.

        Args:
            student: Student domain aggregate

        Returns:
            StudentResponse
        """
        return cls(
            id=student.id.value,
            tenant_id=student.tenant_id,
            student_number=student.student_number.value,
            first_name=student.first_name,
            last_name=student.last_name,
            full_name=student.full_name,
            date_of_birth=student.date_of_birth,
            age=student.age,
            gender=student.gender.value,
            email=student.email.value if student.email else None,
            phone_number=student.phone_number.value if student.phone_number else None,
            address=AddressModel.from_domain(student.address),
            guardians=[GuardianModel.from_domain(g) for g in student.guardians],
            status=student.status.value,
            enrollment_date=student.enrollment_date,
            graduation_date=student.graduation_date,
            national_id=student.national_id,
            blood_type=student.blood_type,
            allergies=list(student.allergies),
            medical_conditions=list(student.medical_conditions),
            notes=student.notes,
            version=student.version,
            created_at=student.created_at,
            updated_at=student.updated_at,
            created_by=student.created_by,
            updated_by=student.updated_by,
        )


class StudentUpdateResponse(BaseModel):
    student: StudentResponse
    changed_fields: list[str]

    @classmethod
    def from_result(cls, result: StudentUpdateResult) -> StudentUpdateResponse:
        return cls(
            student=StudentResponse.from_domain(result.student),
            changed_fields=list(result.changed_fields),
        )


class GraduationResponse(BaseModel):
    """Response model for a graduation."""

    student: StudentResponse
    years_enrolled: float
    academic_year: str
    age_at_graduation: int
    message: str

    @classmethod
    def from_result(cls, result: GraduationResult) -> GraduationResponse:
        student = result.student
        return cls(
            student=StudentResponse.from_domain(student),
            years_enrolled=result.summary.years_enrolled,
            academic_year=result.summary.academic_year,
            age_at_graduation=result.summary.age_at_graduation,
            message=(
                f"{student.full_name} has been successfully graduated on "
                f"{student.graduation_date.isoformat() if student.graduation_date else ''}"
            ),
        )


class StudentListResponse(BaseModel):
    """Response model for a page of students."""

    students: list[StudentResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_previous: bool
    total_students: int

    @classmethod
    def from_page(cls, page: StudentPage) -> StudentListResponse:
        return cls(
            students=[StudentResponse.from_domain(s) for s in page.students],
            total=page.total,
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_previous=page.has_previous,
            total_students=page.total_students,
        )
