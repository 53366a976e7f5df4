"""
Interview slot offered by one company for one offer at one event.

Key design decisions:
- `confirmed_count` is denormalized occupancy (avoids COUNT over bookings on
  the hot path) and is only ever changed by a conditional UPDATE inside the
  booking/cancellation transaction
- CHECK constraints make over-booking impossible even for a buggy writer
- Companies and offers are owned by the admin layer; only their ids live here
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship

from interview_booking.db.base import Base, TimestampMixin
from interview_booking.db.types import UTCDateTime


class EventSlot(Base, TimestampMixin):
    __tablename__ = "event_slots"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    offer_id = Column(Integer, nullable=False)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    capacity = Column(Integer, nullable=False, default=1)
    confirmed_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    event = relationship("Event", back_populates="slots", lazy="raise")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_slot_capacity_positive"),
        CheckConstraint("confirmed_count >= 0", name="check_slot_count_non_negative"),
        CheckConstraint("confirmed_count <= capacity", name="check_slot_count_lte_capacity"),
        CheckConstraint("end_time > start_time", name="check_slot_time_order"),
        Index("ix_event_slots_event_start", "event_id", "start_time"),
    )

    @property
    def available_spots(self) -> int:
        return self.capacity - self.confirmed_count

    def __repr__(self) -> str:
        return (
            f"<EventSlot(id={self.id}, event={self.event_id}, "
            f"occupancy={self.confirmed_count}/{self.capacity})>"
        )
