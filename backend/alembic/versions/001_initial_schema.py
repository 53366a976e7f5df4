"""Initial schema: events, slots, bookings, quota lock rows, failed attempts.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Timestamps are stored as naive UTC (see interview_booking.db.types.UTCDateTime)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("phase1_start_at", sa.DateTime(), nullable=True),
        sa.Column("phase2_start_at", sa.DateTime(), nullable=True),
        sa.Column("phase2_end_at", sa.DateTime(), nullable=True),
        sa.Column("phase1_max_bookings", sa.Integer(), nullable=False, server_default=sa.text("3")),
        sa.Column("phase2_max_bookings", sa.Integer(), nullable=False, server_default=sa.text("6")),
        sa.Column("phase_override", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("phase1_max_bookings >= 0", name="check_phase1_limit_non_negative"),
        sa.CheckConstraint("phase2_max_bookings >= 0", name="check_phase2_limit_non_negative"),
        sa.CheckConstraint(
            "phase_override IS NULL OR phase_override IN (0, 1, 2)",
            name="check_phase_override_range",
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_date", "events", ["date"])

    # Event slots table
    op.create_table(
        "event_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("offer_id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("confirmed_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_slot_capacity_positive"),
        sa.CheckConstraint("confirmed_count >= 0", name="check_slot_count_non_negative"),
        # Last line of defence against over-booking
        sa.CheckConstraint("confirmed_count <= capacity", name="check_slot_count_lte_capacity"),
        sa.CheckConstraint("end_time > start_time", name="check_slot_time_order"),
    )
    op.create_index("ix_event_slots_id", "event_slots", ["id"])
    op.create_index("ix_event_slots_event_id", "event_slots", ["event_id"])
    op.create_index("ix_event_slots_company_id", "event_slots", ["company_id"])
    op.create_index("ix_event_slots_event_start", "event_slots", ["event_id", "start_time"])

    # Bookings table (append-only)
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("slot_id", sa.Integer(), sa.ForeignKey("event_slots.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("booking_phase", sa.Integer(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
        sa.CheckConstraint("booking_phase IN (1, 2)", name="check_booking_phase"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"])
    op.create_index("ix_bookings_slot_id", "bookings", ["slot_id"])
    # One confirmed booking per (student, slot); cancelled rows are unlimited history
    op.create_index(
        "uq_confirmed_student_slot",
        "bookings",
        ["student_id", "slot_id"],
        unique=True,
        postgresql_where=sa.text("status = 'confirmed'"),
        sqlite_where=sa.text("status = 'confirmed'"),
    )
    # Covers the per-event quota count
    op.create_index(
        "ix_bookings_student_event_status",
        "bookings",
        ["student_id", "event_id", "status"],
    )

    # Student quota lock rows
    op.create_table(
        "student_quotas",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "event_id", name="uq_student_quota_event"),
    )

    # Failed login/signup attempts (append-only)
    op.create_table(
        "failed_attempts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("identifier", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("attempted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_failed_attempts_identifier_time", "failed_attempts", ["identifier", "attempted_at"])
    op.create_index("ix_failed_attempts_ip_time", "failed_attempts", ["ip_address", "attempted_at"])


def downgrade() -> None:
    op.drop_table("failed_attempts")
    op.drop_table("student_quotas")
    op.drop_table("bookings")
    op.drop_table("event_slots")
    op.drop_table("events")
