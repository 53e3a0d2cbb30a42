"""create_outbox_events_table

Create the outbox_events table for the transactional outbox pattern.
Rows are written in the same transaction as the student change that
produced them and carry their own delivery state (published flag,
retry count, schedule time and last error).

Revision ID: 8b4e0d2c6a51
Revises: 3f1c2a9b7d10
Create Date: 2026-10-12 09:40:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "8b4e0d2c6a51"
down_revision: Union[str, Sequence[str], None] = "3f1c2a9b7d10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "outbox_events",
        sa.Column("event_id", sa.String(length=26), nullable=False),  # ULID
        sa.Column(
            "event_type", sa.String(length=255), nullable=False
        ),  # e.g., "student.enrolled"
        sa.Column("aggregate_id", sa.String(length=64), nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("event_data", sa.JSON(), nullable=False),  # Full envelope
        sa.Column(
            "published", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer(), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
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
        sa.PrimaryKeyConstraint("event_id", name=op.f("pk_outbox_events")),
    )
    # Due-set query: unpublished rows ordered by schedule time
    op.create_index(
        "idx_outbox_events_due",
        "outbox_events",
        ["published", "scheduled_for"],
        unique=False,
    )
    op.create_index(
        "idx_outbox_events_tenant", "outbox_events", ["tenant_id"], unique=False
    )
    op.create_index(
        "idx_outbox_events_aggregate", "outbox_events", ["aggregate_id"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_outbox_events_aggregate", table_name="outbox_events")
    op.drop_index("idx_outbox_events_tenant", table_name="outbox_events")
    op.drop_index("idx_outbox_events_due", table_name="outbox_events")
    op.drop_table("outbox_events")
