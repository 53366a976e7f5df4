from interview_booking.models.event import Event
from interview_booking.models.slot import EventSlot
from interview_booking.models.booking import Booking, STATUS_CANCELLED, STATUS_CONFIRMED
from interview_booking.models.student_quota import StudentQuota
from interview_booking.models.failed_attempt import FailedAttempt

__all__ = [
    "Event", "EventSlot", "Booking", "StudentQuota", "FailedAttempt",
    "STATUS_CONFIRMED", "STATUS_CANCELLED",
]
