"""
Per-(student, event) lock row.

The quota itself is derived (count of the student's confirmed bookings for
the event). This row exists so `Book` can take a row lock that serialises
one student's concurrent bookings within an event without touching any
other student.
"""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from interview_booking.db.base import Base, TimestampMixin


class StudentQuota(Base, TimestampMixin):
    __tablename__ = "student_quotas"

    id = Column(Integer, primary_key=True)
    student_id = Column(String(64), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("student_id", "event_id", name="uq_student_quota_event"),
    )

    def __repr__(self) -> str:
        return f"<StudentQuota(student={self.student_id}, event={self.event_id})>"
