"""
Booking of one interview slot by one student.

Key design decisions:
- Append-only history: cancellation flips status, rows are never deleted
- Partial unique index allows at most one *confirmed* booking per
  (student, slot) while keeping any number of cancelled ones
- `event_id` is copied from the slot so the per-event quota count is a single
  indexed lookup
- `booking_phase` records the phase at creation time for audit; quota is
  counted across phases regardless of it
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, text

from interview_booking.db.base import Base, TimestampMixin
from interview_booking.db.types import UTCDateTime

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"

_CONFIRMED_ONLY = text("status = 'confirmed'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("event_slots.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_CONFIRMED)
    booking_phase = Column(Integer, nullable=False)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
        CheckConstraint("booking_phase IN (1, 2)", name="check_booking_phase"),
        Index(
            "uq_confirmed_student_slot",
            "student_id",
            "slot_id",
            unique=True,
            postgresql_where=_CONFIRMED_ONLY,
            sqlite_where=_CONFIRMED_ONLY,
        ),
        Index("ix_bookings_student_event_status", "student_id", "event_id", "status"),
    )

    @property
    def is_confirmed(self) -> bool:
        return self.status == STATUS_CONFIRMED

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, student={self.student_id}, "
            f"slot={self.slot_id}, status={self.status})>"
        )
