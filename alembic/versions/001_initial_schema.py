"""Initial schema: bookings and preferences.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reserved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_for", sa.String(32), nullable=False),
        sa.Column("booking_by", sa.String(32), nullable=False),
        sa.Column("region", sa.String(64), nullable=False),
        sa.Column("tier", sa.String(64), nullable=False),
        sa.Column("variant", sa.String(64), nullable=False),
        sa.Column("server", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="STARTING"),
        sa.Column("messages", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('RESERVED', 'RESERVING', 'STARTING', 'RUNNING', 'CLOSING', 'CLOSED', 'FAILED')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    # One-active-booking and reservation checks filter by user then status
    op.create_index("ix_bookings_booking_for", "bookings", ["booking_for"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    # Status callbacks look bookings up by provisioned server id
    op.create_index("ix_bookings_server", "bookings", ["server"])
    # Capacity checks count active bookings per region and tier
    op.create_index("ix_bookings_region_tier", "bookings", ["region", "tier"])

    op.create_table(
        "preferences",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("preferences")
    op.drop_index("ix_bookings_region_tier", table_name="bookings")
    op.drop_index("ix_bookings_server", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_booking_for", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")
