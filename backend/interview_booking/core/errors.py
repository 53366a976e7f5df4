"""
Error taxonomy for the booking core.

Booking and cancellation precondition failures are not exceptions: they come
back as a `BookingError` inside a `BookingResult`. The exceptions below cover
lookups that have no result type and infrastructure failures.
"""

from enum import Enum

from fastapi import status


class BookingError(str, Enum):
    # Booking path
    BOOKING_CLOSED = "booking_closed"
    DUPLICATE_BOOKING = "duplicate_booking"
    QUOTA_EXCEEDED = "quota_exceeded"
    SLOT_FULL = "slot_full"
    # Cancellation path
    NOT_FOUND = "not_found"
    NOT_OWNER = "not_owner"
    ALREADY_CANCELLED = "already_cancelled"


# HTTP status for each precondition failure. Routes look these up instead of
# hard-coding codes.
BOOKING_ERROR_STATUS: dict[BookingError, int] = {
    BookingError.BOOKING_CLOSED: status.HTTP_403_FORBIDDEN,
    BookingError.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    BookingError.QUOTA_EXCEEDED: status.HTTP_409_CONFLICT,
    BookingError.SLOT_FULL: status.HTTP_409_CONFLICT,
    BookingError.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingError.NOT_OWNER: status.HTTP_403_FORBIDDEN,
    BookingError.ALREADY_CANCELLED: status.HTTP_400_BAD_REQUEST,
}


class BookingCoreError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class EventNotFound(BookingCoreError):
    status_code = status.HTTP_404_NOT_FOUND


class SlotNotFound(BookingCoreError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidPhase(BookingCoreError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InfrastructureUnavailable(BookingCoreError):
    """Storage or transaction layer failed, or retries were exhausted."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class AttemptStoreUnavailable(InfrastructureUnavailable):
    """The throttle's attempt log could not be read or written."""
