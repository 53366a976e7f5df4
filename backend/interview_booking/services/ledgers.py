"""
Capacity and booking ledgers: the row-level reads and writes the booking
engine composes into one transaction.

Neither ledger commits. Callers own the transaction boundary, which is what
keeps "check quota, reserve capacity, insert booking" a single atomic step.

Locking discipline (PostgreSQL, READ COMMITTED):
  - student quota: SELECT ... FOR UPDATE on the (student, event) row before
    counting, so one student's bookings in an event run one at a time
  - slot capacity: conditional UPDATE ... WHERE confirmed_count < capacity;
    the row lock is held until commit and a waiting writer re-evaluates the
    predicate against the committed count
Lock order is always quota row, then slot row.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.core.logging import get_logger
from interview_booking.models import (
    Booking,
    Event,
    EventSlot,
    StudentQuota,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
)

logger = get_logger(__name__)


class CapacityLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_slot_with_event(self, slot_id: int) -> Optional[tuple[EventSlot, Event]]:
        result = await self.db.execute(
            select(EventSlot, Event)
            .join(Event, Event.id == EventSlot.event_id)
            .where(EventSlot.id == slot_id)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def reserve(self, slot_id: int) -> bool:
        """Take one unit of capacity. False means the slot is full."""
        result = await self.db.execute(
            update(EventSlot)
            .where(
                EventSlot.id == slot_id,
                EventSlot.confirmed_count < EventSlot.capacity,
            )
            .values(confirmed_count=EventSlot.confirmed_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release(self, slot_id: int) -> bool:
        """Give back one unit of capacity taken by a confirmed booking."""
        result = await self.db.execute(
            update(EventSlot)
            .where(EventSlot.id == slot_id, EventSlot.confirmed_count > 0)
            .values(confirmed_count=EventSlot.confirmed_count - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.error("capacity_release_underflow", slot_id=slot_id)
            return False
        return True

    async def occupancy(self, slot_id: int) -> Optional[tuple[int, int]]:
        """(confirmed_count, capacity) as currently committed or locked by us."""
        result = await self.db.execute(
            select(EventSlot.confirmed_count, EventSlot.capacity)
            .where(EventSlot.id == slot_id)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]


class BookingLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _quota_row(self, student_id: str, event_id: int):
        return (
            select(StudentQuota)
            .where(
                StudentQuota.student_id == student_id,
                StudentQuota.event_id == event_id,
            )
            .with_for_update()
        )

    async def lock_student_quota(self, student_id: str, event_id: int) -> StudentQuota:
        """
        Lock the student's quota row for this event, creating it on first use.
        Two first-time bookings racing on the insert: the loser's savepoint
        rolls back on the unique constraint and it locks the winner's row.
        """
        quota = (await self.db.execute(self._quota_row(student_id, event_id))).scalar_one_or_none()
        if quota is not None:
            return quota

        try:
            async with self.db.begin_nested():
                self.db.add(StudentQuota(student_id=student_id, event_id=event_id))
        except IntegrityError:
            logger.debug("student_quota_created_concurrently", student_id=student_id, event_id=event_id)

        return (await self.db.execute(self._quota_row(student_id, event_id))).scalar_one()

    async def has_confirmed_booking(self, student_id: str, slot_id: int) -> bool:
        result = await self.db.execute(
            select(Booking.id).where(
                Booking.student_id == student_id,
                Booking.slot_id == slot_id,
                Booking.status == STATUS_CONFIRMED,
            )
        )
        return result.first() is not None

    async def count_confirmed(self, student_id: str, event_id: int) -> int:
        """Confirmed bookings for the event, whatever phase they were made in."""
        result = await self.db.execute(
            select(func.count(Booking.id)).where(
                Booking.student_id == student_id,
                Booking.event_id == event_id,
                Booking.status == STATUS_CONFIRMED,
            )
        )
        return result.scalar_one()

    async def add_confirmed(
        self,
        student_id: str,
        slot: EventSlot,
        booking_phase: int,
        now: datetime,
    ) -> Booking:
        booking = Booking(
            student_id=student_id,
            slot_id=slot.id,
            event_id=slot.event_id,
            status=STATUS_CONFIRMED,
            booking_phase=booking_phase,
            created_at=now,
            updated_at=now,
        )
        self.db.add(booking)
        await self.db.flush()
        return booking

    async def get_for_update(self, booking_id: int) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def mark_cancelled(self, booking_id: int, now: datetime) -> bool:
        """Flip confirmed -> cancelled. False if someone else got there first."""
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == STATUS_CONFIRMED)
            .values(status=STATUS_CANCELLED, cancelled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_for_student(self, student_id: str, event_id: Optional[int] = None) -> list[Booking]:
        query = select(Booking).where(Booking.student_id == student_id)
        if event_id is not None:
            query = query.where(Booking.event_id == event_id)
        result = await self.db.execute(
            query.order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(result.scalars().all())
