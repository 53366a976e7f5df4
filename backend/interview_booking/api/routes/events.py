"""
Event endpoints: phase status, admin phase override, event/slot setup.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.db.session import get_db
from interview_booking.schemas.booking import BookingLimitResponse
from interview_booking.schemas.event import (
    EventCreate,
    EventResponse,
    PhaseResponse,
    PhaseUpdate,
    SlotCreate,
    SlotResponse,
)
from interview_booking.services.booking_service import check_booking_limit
from interview_booking.services.event_service import (
    create_event,
    create_slot,
    get_current_phase,
    list_event_slots,
    set_phase,
)
from interview_booking.core.security import CallerIdentity, get_current_identity, require_admin
from interview_booking.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    admin: CallerIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create an event with its phase configuration. Admin only."""
    return await create_event(db, event_data)


@router.post("/{event_id}/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot_endpoint(
    event_id: int,
    slot_data: SlotCreate,
    admin: CallerIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Add an interview slot to an event. Admin only."""
    return await create_slot(db, event_id, slot_data)


@router.get("/{event_id}/slots", response_model=list[SlotResponse])
async def list_slots_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    return await list_event_slots(db, event_id)


@router.get("/{event_id}/phase", response_model=PhaseResponse)
async def get_phase_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Current booking phase, its per-student limit and a status message."""
    state = await get_current_phase(db, event_id)
    return PhaseResponse(
        event_id=event_id,
        phase=state.phase,
        limit=state.limit,
        message=state.message,
        overridden=state.is_override,
    )


@router.put("/{event_id}/phase", response_model=PhaseResponse)
async def set_phase_endpoint(
    event_id: int,
    update: PhaseUpdate,
    admin: CallerIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Pin the event's phase (0 closes bookings). Send `{"phase": null}` to
    return to time-derived phases. Admin only.
    """
    await set_phase(db, event_id, update.phase)
    logger.info("phase_set_by_admin", event_id=event_id, admin_id=admin.user_id, phase=update.phase)
    state = await get_current_phase(db, event_id)
    return PhaseResponse(
        event_id=event_id,
        phase=state.phase,
        limit=state.limit,
        message=state.message,
        overridden=state.is_override,
    )


@router.get("/{event_id}/booking-limit", response_model=BookingLimitResponse)
async def booking_limit_endpoint(
    event_id: int,
    identity: CallerIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """How many more interviews the caller may book in the current phase."""
    limit = await check_booking_limit(
        db, identity.user_id, event_id, deprioritized=identity.deprioritized
    )
    return BookingLimitResponse(
        can_book=limit.can_book,
        current_count=limit.current_count,
        max_allowed=limit.max_allowed,
        phase=limit.phase,
        message=limit.message,
    )
