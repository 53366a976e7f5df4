"""
Booking endpoints with concurrency-safe slot reservation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.db.session import get_db
from interview_booking.core.errors import BOOKING_ERROR_STATUS
from interview_booking.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
)
from interview_booking.services.booking_service import (
    BookingResult,
    book_slot,
    cancel_booking,
    list_student_bookings,
)
from interview_booking.core.security import CallerIdentity, get_current_identity, get_current_student_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _raise_for_failure(result: BookingResult) -> None:
    if result.success:
        return
    raise HTTPException(
        status_code=BOOKING_ERROR_STATUS[result.error],
        detail={"error": result.error.value, "message": result.message},
    )


@router.post("/", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """
    Book one place in an interview slot.

    Phase gate, duplicate check, quota and capacity are decided in a single
    transaction; a rejected request changes nothing. SLOT_FULL and
    QUOTA_EXCEEDED are final answers, not conditions to retry.
    """
    result = await book_slot(
        db, identity.user_id, booking_data.slot_id, deprioritized=identity.deprioritized
    )
    _raise_for_failure(result)

    payload = BookingResponse.model_validate(result.booking).model_dump()
    return BookingCreatedResponse(
        **payload,
        message=result.message,
        remaining_capacity=result.remaining_capacity,
    )


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    student_id: str = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its place back to the slot."""
    result = await cancel_booking(db, student_id, booking_id)
    _raise_for_failure(result)
    return BookingCancelResponse(
        message=result.message,
        booking_id=result.booking_id,
        status=result.booking.status,
    )


@router.get("/", response_model=list[BookingResponse])
async def list_bookings_endpoint(
    event_id: Optional[int] = Query(None),
    student_id: str = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db),
):
    """All of the caller's bookings, newest first, cancelled ones included."""
    return await list_student_bookings(db, student_id, event_id)
