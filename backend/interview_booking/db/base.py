"""
Declarative base and shared column mixins.
"""

from sqlalchemy import Column
from sqlalchemy.orm import DeclarativeBase

from interview_booking.core.clock import utcnow
from interview_booking.db.types import UTCDateTime


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
