"""
Slot endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.db.session import get_db
from interview_booking.schemas.booking import SlotAvailabilityResponse
from interview_booking.services.booking_service import get_slot_availability

router = APIRouter(prefix="/slots", tags=["Slots"])


@router.get("/{slot_id}/availability", response_model=SlotAvailabilityResponse)
async def slot_availability_endpoint(slot_id: int, db: AsyncSession = Depends(get_db)):
    """Confirmed bookings against capacity for one slot."""
    availability = await get_slot_availability(db, slot_id)
    return SlotAvailabilityResponse(
        slot_id=availability.slot_id,
        is_available=availability.is_available,
        confirmed_count=availability.confirmed_count,
        capacity=availability.capacity,
        available_spots=availability.available_spots,
    )
