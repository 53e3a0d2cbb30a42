"""SQLAlchemy ORM model for the students table.

Stores one row per student. Guardians, allergies and medical conditions
are JSON documents; the home address is kept in flat columns so it can
be filtered and indexed.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin


class StudentModel(TimestampMixin, Base):
    """ORM model for the students table.

    Student numbers are unique per tenant. Soft-deleted rows keep their
    number, so a deleted student's number is never reissued.

    Indexes:
    - idx_students_tenant_status: For status listings
    - idx_students_tenant_name: For name ordering and search
    - idx_students_tenant_email: For email uniqueness checks
    """

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "student_number", name="uq_students_tenant_student_number"
        ),
        Index("idx_students_tenant_status", "tenant_id", "status"),
        Index("idx_students_tenant_name", "tenant_id", "last_name", "first_name"),
        Index("idx_students_tenant_email", "tenant_id", "email"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    student_number: Mapped[str] = mapped_column(String(9), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Address
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)

    guardians: Mapped[list] = mapped_column(JSON, nullable=False)
    enrollment_date: Mapped[date] = mapped_column(Date, nullable=False)
    graduation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    national_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    blood_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    allergies: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    medical_conditions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<StudentModel(id={self.id}, student_number={self.student_number}, "
            f"tenant_id={self.tenant_id}, version={self.version})>"
        )
