"""
Pydantic schemas for the request throttle endpoints.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class RateLimitAction(str, Enum):
    LOGIN = "login"
    SIGNUP = "signup"


class RateLimitCheck(BaseModel):
    email: Optional[EmailStr] = None
    action: RateLimitAction = RateLimitAction.LOGIN


class FailedAttemptCreate(BaseModel):
    email: Optional[EmailStr] = None
    action: RateLimitAction = RateLimitAction.LOGIN
    reason: Optional[str] = Field(None, max_length=255)


class RateLimitClear(BaseModel):
    email: Optional[EmailStr] = None


class RateLimitResponse(BaseModel):
    allowed: bool
    remaining_attempts: int
    wait_time_minutes: int
    message: str
