"""
Recruiting event with its booking-phase configuration.

Key design decisions:
- Phase boundaries are timestamps; the current phase is computed by the
  phase policy, never stored as a free-floating flag
- `phase_override` is the administrator's manual control: NULL means the
  phase is derived from the clock, 0/1/2 pins the phase
- Per-phase limits are cumulative per student across the whole event
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, String
from sqlalchemy.orm import relationship

from interview_booking.db.base import Base, TimestampMixin
from interview_booking.db.types import UTCDateTime


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    date = Column(UTCDateTime(), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Phase windows (phase 0 has no start: it is everything before phase 1)
    phase1_start_at = Column(UTCDateTime(), nullable=True)
    phase2_start_at = Column(UTCDateTime(), nullable=True)
    phase2_end_at = Column(UTCDateTime(), nullable=True)

    phase1_max_bookings = Column(Integer, nullable=False, default=3)
    phase2_max_bookings = Column(Integer, nullable=False, default=6)

    phase_override = Column(Integer, nullable=True)

    slots = relationship("EventSlot", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("phase1_max_bookings >= 0", name="check_phase1_limit_non_negative"),
        CheckConstraint("phase2_max_bookings >= 0", name="check_phase2_limit_non_negative"),
        CheckConstraint(
            "phase_override IS NULL OR phase_override IN (0, 1, 2)",
            name="check_phase_override_range",
        ),
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name}, override={self.phase_override})>"
