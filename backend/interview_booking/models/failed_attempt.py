"""
Append-only log of failed login/signup attempts used by the request throttle.
Rows older than the throttle window are ignored, not deleted.
"""

from sqlalchemy import Column, Index, Integer, String

from interview_booking.core.clock import utcnow
from interview_booking.db.base import Base
from interview_booking.db.types import UTCDateTime


class FailedAttempt(Base):
    __tablename__ = "failed_attempts"

    id = Column(Integer, primary_key=True)
    identifier = Column(String(255), nullable=True)  # email, when known
    ip_address = Column(String(45), nullable=False)  # fits IPv6 text form
    action = Column(String(20), nullable=False)
    reason = Column(String(255), nullable=True)
    attempted_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_failed_attempts_identifier_time", "identifier", "attempted_at"),
        Index("ix_failed_attempts_ip_time", "ip_address", "attempted_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<FailedAttempt(identifier={self.identifier}, ip={self.ip_address}, "
            f"action={self.action})>"
        )
