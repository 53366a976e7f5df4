"""
Pydantic schemas for event, slot and phase request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    date: datetime
    phase1_start_at: Optional[datetime] = None
    phase2_start_at: Optional[datetime] = None
    phase2_end_at: Optional[datetime] = None
    phase1_max_bookings: Optional[int] = Field(None, ge=0, le=100)
    phase2_max_bookings: Optional[int] = Field(None, ge=0, le=100)
    phase_override: Optional[int] = Field(None, ge=0, le=2)

    @model_validator(mode="after")
    def check_phase_order(self) -> "EventCreate":
        if self.phase1_start_at and self.phase2_start_at and self.phase2_start_at < self.phase1_start_at:
            raise ValueError("phase2_start_at must not be before phase1_start_at")
        if self.phase2_start_at and self.phase2_end_at and self.phase2_end_at <= self.phase2_start_at:
            raise ValueError("phase2_end_at must be after phase2_start_at")
        return self


class EventResponse(BaseModel):
    id: int
    name: str
    date: datetime
    is_active: bool
    phase1_start_at: Optional[datetime]
    phase2_start_at: Optional[datetime]
    phase2_end_at: Optional[datetime]
    phase1_max_bookings: int
    phase2_max_bookings: int
    phase_override: Optional[int]

    model_config = {"from_attributes": True}


class SlotCreate(BaseModel):
    company_id: int
    offer_id: int
    start_time: datetime
    end_time: datetime
    capacity: int = Field(default=1, gt=0, le=1000)
    is_active: bool = True

    @model_validator(mode="after")
    def check_time_order(self) -> "SlotCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SlotResponse(BaseModel):
    id: int
    event_id: int
    company_id: int
    offer_id: int
    start_time: datetime
    end_time: datetime
    capacity: int
    confirmed_count: int
    is_active: bool

    model_config = {"from_attributes": True}


class PhaseResponse(BaseModel):
    event_id: int
    phase: int
    limit: int
    message: str
    overridden: bool


class PhaseUpdate(BaseModel):
    # None returns the event to time-derived phases
    phase: Optional[int] = Field(None, ge=0, le=2)
