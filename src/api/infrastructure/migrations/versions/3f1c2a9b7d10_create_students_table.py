"""create_students_table

Create the students table. Student numbers are unique per tenant, and
every write compare-and-swaps on the version column.

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-12 09:15:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "students",
        sa.Column("id", sa.String(length=26), nullable=False),  # ULID
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("student_number", sa.String(length=9), nullable=False),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("street", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("state", sa.String(length=100), nullable=False),
        sa.Column("zip_code", sa.String(length=20), nullable=False),
        sa.Column("country", sa.String(length=100), nullable=False),
        sa.Column("guardians", sa.JSON(), nullable=False),
        sa.Column("enrollment_date", sa.Date(), nullable=False),
        sa.Column("graduation_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("national_id", sa.String(length=50), nullable=True),
        sa.Column("blood_type", sa.String(length=10), nullable=True),
        sa.Column("allergies", sa.JSON(), nullable=False),
        sa.Column("medical_conditions", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_students")),
        sa.UniqueConstraint(
            "tenant_id", "student_number", name="uq_students_tenant_student_number"
        ),
    )
    op.create_index(
        "idx_students_tenant_status", "students", ["tenant_id", "status"], unique=False
    )
    op.create_index(
        "idx_students_tenant_name",
        "students",
        ["tenant_id", "last_name", "first_name"],
        unique=False,
    )
    op.create_index(
        "idx_students_tenant_email", "students", ["tenant_id", "email"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_students_tenant_email", table_name="students")
    op.drop_index("idx_students_tenant_name", table_name="students")
    op.drop_index("idx_students_tenant_status", table_name="students")
    op.drop_table("students")
