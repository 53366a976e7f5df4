"""
Event and slot administration plus phase read/override.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.core.clock import resolve_now
from interview_booking.core.config import get_settings
from interview_booking.core.errors import EventNotFound
from interview_booking.core.logging import get_logger
from interview_booking.models import Event, EventSlot
from interview_booking.schemas.event import EventCreate, SlotCreate
from interview_booking.services.phase_policy import PhaseState, current_phase, validate_phase

logger = get_logger(__name__)


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    settings = get_settings()

    event = Event(
        name=event_data.name,
        date=event_data.date,
        phase1_start_at=event_data.phase1_start_at,
        phase2_start_at=event_data.phase2_start_at,
        phase2_end_at=event_data.phase2_end_at,
        phase1_max_bookings=(
            event_data.phase1_max_bookings
            if event_data.phase1_max_bookings is not None
            else settings.DEFAULT_PHASE1_MAX_BOOKINGS
        ),
        phase2_max_bookings=(
            event_data.phase2_max_bookings
            if event_data.phase2_max_bookings is not None
            else settings.DEFAULT_PHASE2_MAX_BOOKINGS
        ),
        phase_override=event_data.phase_override,
    )
    db.add(event)
    await db.commit()

    if event.phase2_max_bookings < event.phase1_max_bookings:
        # Accepted configuration, but rarely intended.
        logger.warning(
            "phase2_limit_below_phase1",
            event_id=event.id,
            phase1_limit=event.phase1_max_bookings,
            phase2_limit=event.phase2_max_bookings,
        )

    logger.info("event_created", event_id=event.id, name=event.name)
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    event = await db.get(Event, event_id, populate_existing=True)
    if event is None:
        raise EventNotFound(f"Event {event_id} not found")
    return event


async def create_slot(db: AsyncSession, event_id: int, slot_data: SlotCreate) -> EventSlot:
    """New slots start empty: confirmed_count is 0."""
    await get_event(db, event_id)

    slot = EventSlot(
        event_id=event_id,
        company_id=slot_data.company_id,
        offer_id=slot_data.offer_id,
        start_time=slot_data.start_time,
        end_time=slot_data.end_time,
        capacity=slot_data.capacity,
        confirmed_count=0,
        is_active=slot_data.is_active,
    )
    db.add(slot)
    await db.commit()

    logger.info("slot_created", slot_id=slot.id, event_id=event_id, capacity=slot.capacity)
    return slot


async def list_event_slots(db: AsyncSession, event_id: int) -> list[EventSlot]:
    await get_event(db, event_id)
    result = await db.execute(
        select(EventSlot)
        .where(EventSlot.event_id == event_id)
        .order_by(EventSlot.start_time.asc(), EventSlot.id.asc())
    )
    slots = list(result.scalars().all())
    await db.commit()
    return slots


async def get_current_phase(
    db: AsyncSession,
    event_id: int,
    now: Optional[datetime] = None,
) -> PhaseState:
    event = await get_event(db, event_id)
    await db.commit()
    return current_phase(event, resolve_now(now))


async def set_phase(db: AsyncSession, event_id: int, phase: Optional[int]) -> Event:
    """
    Pin the event to `phase`, or pass None to go back to time-derived phases.
    The caller is responsible for checking the admin role.
    """
    if phase is not None:
        validate_phase(phase)

    event = await get_event(db, event_id)
    previous = event.phase_override
    event.phase_override = phase
    await db.commit()

    logger.info(
        "phase_overridden" if phase is not None else "phase_override_cleared",
        event_id=event_id,
        previous_override=previous,
        phase=phase,
    )
    return event
