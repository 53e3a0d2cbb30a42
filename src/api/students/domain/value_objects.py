"""Value objects for the students domain.

Value objects are immutable descriptors that provide type safety and
domain semantics for identifiers, contact details and enumerations.
Construction validates the value, so an instance is always valid.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from ulid import ULID

from students.ports.exceptions import StudentValidationError

_STUDENT_NUMBER_PATTERN = re.compile(r"^STU\d{6}$")
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_FORMATTING = re.compile(r"[\s\-()]")


def calculate_age(birth_date: date, on: date) -> int:
    """Whole years between ``birth_date`` and ``on``."""
    age = on.year - birth_date.year
    if (on.month, on.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def validate_person_name(field_name: str, value: str, label: str) -> None:
    """Require a trimmed name of 2 to 50 characters."""
    if not value or not value.strip():
        raise StudentValidationError(field_name, value, f"{label} is required")
    if not 2 <= len(value) <= 50:
        raise StudentValidationError(
            field_name, value, f"{label} must be between 2 and 50 characters"
        )


@dataclass(frozen=True)
class StudentId:
    """Identifier for a Student aggregate.

    Uses ULID for sortability and distribution-friendly generation.
    """

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def generate(cls) -> StudentId:
        """Generate a new StudentId using ULID."""
        return cls(value=str(ULID()))

    @classmethod
    def from_string(cls, value: str) -> StudentId:
        """Create StudentId from string value.

        Args:
            value: ULID string

        Returns:
            StudentId instance

        Raises:
            StudentValidationError: If value is not a valid ULID
        """
        try:
            ULID.from_str(value)
        except ValueError as e:
            raise StudentValidationError("id", value, "Invalid student id") from e

        return cls(value=value)

    @staticmethod
    def is_valid(value: str) -> bool:
        """Check whether ``value`` parses as a ULID."""
        try:
            ULID.from_str(value)
        except ValueError:
            return False
        return True


@dataclass(frozen=True)
class StudentNumber:
    """Human-facing student number in the format STU123456.

    Unique within a tenant.
    """

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise StudentValidationError(
                "student_number", self.value, "Student number is required"
            )
        if not _STUDENT_NUMBER_PATTERN.match(self.value):
            raise StudentValidationError(
                "student_number",
                self.value,
                "Student number must be in format STU123456",
            )

    def __str__(self) -> str:
        return self.value

    @classmethod
    def generate(cls) -> StudentNumber:
        """Generate a random student number."""
        return cls(value=f"STU{secrets.randbelow(1_000_000):06d}")

    @staticmethod
    def is_valid(value: str) -> bool:
        """Check whether ``value`` has the student number format."""
        return bool(_STUDENT_NUMBER_PATTERN.match(value))


@dataclass(frozen=True)
class Email:
    """Email address, stored trimmed and lowercase."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise StudentValidationError("email", self.value, "Email is required")
        normalized = self.value.strip().lower()
        if not _EMAIL_PATTERN.match(normalized):
            raise StudentValidationError("email", self.value, "Invalid email format")
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PhoneNumber:
    """Phone number with formatting characters removed."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise StudentValidationError(
                "phone_number", self.value, "Phone number is required"
            )
        normalized = _PHONE_FORMATTING.sub("", self.value)
        if not _PHONE_PATTERN.match(normalized):
            raise StudentValidationError(
                "phone_number", self.value, "Invalid phone number format"
            )
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Address:
    """Postal address. Every part is required."""

    street: str
    city: str
    state: str
    zip_code: str
    country: str = "US"

    def __post_init__(self) -> None:
        for field_name in ("street", "city", "state", "zip_code", "country"):
            value = getattr(self, field_name)
            if not value or not value.strip():
                label = field_name.replace("_", " ").capitalize()
                raise StudentValidationError(field_name, value, f"{label} is required")

    def __str__(self) -> str:
        return f"{self.street}, {self.city}, {self.state} {self.zip_code}, {self.country}"


class GuardianRelationship(StrEnum):
    """How a guardian is related to the student."""

    PARENT = "parent"
    STEPPARENT = "stepparent"
    GRANDPARENT = "grandparent"
    AUNT = "aunt"
    UNCLE = "uncle"
    GUARDIAN = "guardian"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> GuardianRelationship:
        """Parse a relationship name case-insensitively.

        Raises:
            StudentValidationError: If the name is not a known relationship
        """
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError) as e:
            allowed = ", ".join(member.value for member in cls)
            raise StudentValidationError(
                "guardian_relationship",
                value,
                f"Guardian relationship must be one of: {allowed}",
            ) from e


class Gender(StrEnum):
    """Student gender as recorded at enrollment."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class StudentStatus(StrEnum):
    """Enrollment status of a student."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    GRADUATED = "graduated"
    TRANSFERRED = "transferred"
    SUSPENDED = "suspended"
    EXPELLED = "expelled"


@dataclass(frozen=True)
class GuardianInfo:
    """A parent or guardian responsible for a student.

    Attributes:
        first_name: 2-50 characters
        last_name: 2-50 characters
        relationship: Relationship to the student
        email: Contact email
        phone_number: Contact phone
        is_emergency_contact: Whether to call in emergencies
        is_primary_contact: Whether this is the student's primary contact
        address: Optional address when different from the student's
    """

    first_name: str
    last_name: str
    relationship: GuardianRelationship
    email: Email
    phone_number: PhoneNumber
    is_emergency_contact: bool
    is_primary_contact: bool
    address: Address | None = None

    def __post_init__(self) -> None:
        validate_person_name("guardian_first_name", self.first_name, "Guardian first name")
        validate_person_name("guardian_last_name", self.last_name, "Guardian last name")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def as_secondary(self) -> GuardianInfo:
        """Copy of this guardian without primary contact status."""
        return GuardianInfo(
            first_name=self.first_name,
            last_name=self.last_name,
            relationship=self.relationship,
            email=self.email,
            phone_number=self.phone_number,
            is_emergency_contact=self.is_emergency_contact,
            is_primary_contact=False,
            address=self.address,
        )
