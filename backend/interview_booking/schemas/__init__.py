from interview_booking.schemas.event import (
    EventCreate, EventResponse, SlotCreate, SlotResponse, PhaseResponse, PhaseUpdate,
)
from interview_booking.schemas.booking import (
    BookingCreate, BookingResponse, BookingCreatedResponse, BookingCancelResponse,
    BookingErrorResponse, BookingLimitResponse, SlotAvailabilityResponse,
)
from interview_booking.schemas.rate_limit import (
    RateLimitAction, RateLimitCheck, FailedAttemptCreate, RateLimitClear, RateLimitResponse,
)

__all__ = [
    "EventCreate", "EventResponse", "SlotCreate", "SlotResponse", "PhaseResponse", "PhaseUpdate",
    "BookingCreate", "BookingResponse", "BookingCreatedResponse", "BookingCancelResponse",
    "BookingErrorResponse", "BookingLimitResponse", "SlotAvailabilityResponse",
    "RateLimitAction", "RateLimitCheck", "FailedAttemptCreate", "RateLimitClear",
    "RateLimitResponse",
]
