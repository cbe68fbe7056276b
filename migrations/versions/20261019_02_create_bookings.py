"""create bookings

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19 10:10:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_02"
down_revision: Union[str, None] = "20261019_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_SLOT_PREDICATE = sa.text("status IN ('requested', 'accepted') AND \"time\" IS NOT NULL")


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=32), nullable=False),
        sa.Column("provider_id", sa.String(length=32), nullable=False),
        sa.Column("booking_type", sa.String(length=20), nullable=False),
        sa.Column("service_id", sa.String(length=64), nullable=True),
        sa.Column("program_id", sa.String(length=64), nullable=True),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("time", sa.String(length=16), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="requested"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["provider_id"], ["users.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("price > 0", name="ck_bookings_price_positive"),
    )
    op.create_index("ix_bookings_user_created", "bookings", ["user_id", "created_at"], unique=False)
    op.create_index("ix_bookings_provider_created", "bookings", ["provider_id", "created_at"], unique=False)
    op.create_index(
        "uq_bookings_active_slot",
        "bookings",
        ["provider_id", "date", "time"],
        unique=True,
        postgresql_where=ACTIVE_SLOT_PREDICATE,
    )


def downgrade() -> None:
    op.drop_index("uq_bookings_active_slot", table_name="bookings")
    op.drop_index("ix_bookings_provider_created", table_name="bookings")
    op.drop_index("ix_bookings_user_created", table_name="bookings")
    op.drop_table("bookings")
