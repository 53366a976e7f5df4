"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class BookingCreate(BaseModel):
    slot_id: int


class BookingResponse(BaseModel):
    id: int
    student_id: str
    slot_id: int
    event_id: int
    status: str
    booking_phase: int
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingCreatedResponse(BookingResponse):
    message: str
    remaining_capacity: Optional[int] = None


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str


class BookingErrorResponse(BaseModel):
    error: str
    message: str


class BookingLimitResponse(BaseModel):
    can_book: bool
    current_count: int
    max_allowed: int
    phase: int
    message: str


class SlotAvailabilityResponse(BaseModel):
    slot_id: int
    is_available: bool
    confirmed_count: int
    capacity: int
    available_spots: int
