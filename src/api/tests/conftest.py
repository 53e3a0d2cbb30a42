"""Shared fixtures for unit and integration tests.

Provides builders for valid student aggregates and their value objects
so individual tests only spell out what they care about.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

import pytest

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

TENANT_ID = "tenant-a"
OTHER_TENANT_ID = "tenant-b"


def build_address(**overrides: Any) -> Address:
    values: dict[str, Any] = {
        "street": "12 Elm Street",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
    }
    values.update(overrides)
    return Address(**values)


def build_guardian(
    email: str = "pat.smith@example.com",
    phone: str = "+15551234567",
    primary: bool = True,
    emergency: bool = True,
    **overrides: Any,
) -> GuardianInfo:
    values: dict[str, Any] = {
        "first_name": "Pat",
        "last_name": "Smith",
        "relationship": GuardianRelationship.PARENT,
        "email": Email(email),
        "phone_number": PhoneNumber(phone),
        "is_emergency_contact": emergency,
        "is_primary_contact": primary,
    }
    values.update(overrides)
    return GuardianInfo(**values)


def years_ago(years: int, today: date | None = None) -> date:
    """The same calendar day ``years`` years before ``today``."""
    today = today or date.today()
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return today.replace(year=today.year - years, day=28)


def build_student(**overrides: Any) -> Student:
    """Create a valid new student with StudentEnrolled recorded."""
    values: dict[str, Any] = {
        "tenant_id": TENANT_ID,
        "student_number": StudentNumber("STU000001"),
        "first_name": "Alex",
        "last_name": "Smith",
        "date_of_birth": years_ago(12),
        "gender": Gender.OTHER,
        "address": build_address(),
        "guardians": [build_guardian()],
        "enrollment_date": years_ago(2),
        "created_by": "registrar",
    }
    values.update(overrides)
    return Student.create(**values)


def build_persisted_student(**overrides: Any) -> Student:
    """Create a student as if it had been loaded from the store at version 1."""
    student = build_student(**overrides)
    student.collect_events()
    student.mark_persisted()
    return student


@pytest.fixture
def make_guardian() -> Callable[..., GuardianInfo]:
    return build_guardian


@pytest.fixture
def make_address() -> Callable[..., Address]:
    return build_address


@pytest.fixture
def make_student() -> Callable[..., Student]:
    return build_student


@pytest.fixture
def make_persisted_student() -> Callable[..., Student]:
    return build_persisted_student
