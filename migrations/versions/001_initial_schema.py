"""Initial schema: riders, bookings, chat channels.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

BOOKING_STATUS = sa.Enum(
    "PENDING",
    "ACCEPTED",
    "IN_PROGRESS",
    "COMPLETED",
    "REJECTED",
    "CANCELLED",
    name="bookingstatus",
)
CANCEL_ACTOR = sa.Enum("RIDER", "DRIVER", "OPERATOR", name="cancelactor")


def upgrade() -> None:
    # ── riders ────────────────────────────────────────────────────────
    op.create_table(
        "riders",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone_number", sa.String(32), unique=True, nullable=False),
        sa.Column("is_phone_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("total_bookings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completed_bookings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cancelled_bookings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("trust_score", sa.Float, nullable=False, server_default="100"),
        sa.Column("is_blocked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("last_booking_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("rider_id", sa.String(64), sa.ForeignKey("riders.id"), nullable=False),
        sa.Column("rider_name", sa.String(120), nullable=False, server_default=""),
        sa.Column("rider_phone", sa.String(32), nullable=False, server_default=""),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("pickup_label", sa.String(255), nullable=False, server_default=""),
        sa.Column("dropoff_label", sa.String(255), nullable=False, server_default=""),
        sa.Column("distance_km", sa.Float, nullable=False, server_default="0"),
        sa.Column("estimated_fare", sa.Float, nullable=False, server_default="0"),
        sa.Column("actual_fare", sa.Float, nullable=True),
        sa.Column("status", BOOKING_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("assigned_driver_id", sa.String(64), nullable=True),
        sa.Column("assigned_tricycle_id", sa.String(64), nullable=True),
        sa.Column("cancelled_by", CANCEL_ACTOR, nullable=True),
        sa.Column("verification_code", sa.String(8), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index(
        "idx_bookings_rider_created", "bookings", ["rider_id", "created_at"]
    )

    # ── chat_channels ─────────────────────────────────────────────────
    op.create_table(
        "chat_channels",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "booking_id",
            sa.String(64),
            sa.ForeignKey("bookings.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("rider_id", sa.String(64), nullable=False),
        sa.Column("driver_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("chat_channels")
    op.drop_index("idx_bookings_rider_created", table_name="bookings")
    op.drop_index("idx_bookings_status", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("riders")
    CANCEL_ACTOR.drop(op.get_bind(), checkfirst=True)
    BOOKING_STATUS.drop(op.get_bind(), checkfirst=True)
