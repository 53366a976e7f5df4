"""
Booking allocation engine: concurrency-safe Book and Cancel.

CONCURRENCY STRATEGY: one transaction, row locks, conditional updates
=====================================================================

Problem:
  Two students try to take the last unit of a slot at the same time, or one
  student fires bookings for several slots at once to get past the phase
  limit. Read-then-write without mutual exclusion lets both through.

Solution:
  Every Book runs this sequence inside a single transaction:

  1. Read slot + event, ask the phase policy for (phase, limit)
  2. SELECT ... FOR UPDATE the student's (student, event) quota row
     -> concurrent bookings by the same student in this event queue here
  3. Duplicate check and quota count, both now stable under the lock
  4. UPDATE event_slots SET confirmed_count = confirmed_count + 1
     WHERE id = :slot AND confirmed_count < capacity
     -> zero rows means the slot is full; the row stays locked until commit
  5. INSERT the booking, COMMIT

  Any failed precondition rolls the whole transaction back, so an abandoned
  or rejected request never leaves a counter moved without a booking row (or
  the reverse). Unrelated slots and students never touch the same rows.

  Serialization failures and deadlocks (or SQLite's busy lock) are retried a
  few times with backoff; after that the caller gets
  InfrastructureUnavailable. Terminal outcomes such as SLOT_FULL are never
  retried.
"""

import asyncio
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.core.clock import resolve_now
from interview_booking.core.config import get_settings
from interview_booking.core.errors import (
    BookingError,
    EventNotFound,
    InfrastructureUnavailable,
    SlotNotFound,
)
from interview_booking.core.logging import get_logger
from interview_booking.core.metrics import (
    booking_latency,
    db_retries,
    record_booking_attempt,
    record_cancellation,
)
from interview_booking.db.session import STORAGE_ERRORS, rollback_quietly
from interview_booking.models import Booking, Event, EventSlot
from interview_booking.services.ledgers import BookingLedger, CapacityLedger
from interview_booking.services.phase_policy import closed_for_student, current_phase

logger = get_logger(__name__)

# SQLSTATEs worth retrying: serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = {"40001", "40P01"}


@dataclass
class BookingResult:
    success: bool
    error: Optional[BookingError] = None
    message: str = ""
    booking: Optional[Booking] = None
    remaining_capacity: Optional[int] = None

    @property
    def booking_id(self) -> Optional[int]:
        return self.booking.id if self.booking is not None else None

    @classmethod
    def failed(cls, error: BookingError, message: str) -> "BookingResult":
        return cls(success=False, error=error, message=message)


@dataclass
class BookingLimit:
    can_book: bool
    current_count: int
    max_allowed: int
    phase: int
    message: str


@dataclass
class SlotAvailability:
    slot_id: int
    is_available: bool
    confirmed_count: int
    capacity: int
    available_spots: int


def is_transient_conflict(exc: BaseException) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in TRANSIENT_SQLSTATES:
        return True
    return "database is locked" in str(exc).lower()


async def _run_transaction(
    db: AsyncSession,
    unit_of_work: Callable[[], Awaitable[BookingResult]],
    operation: str,
    **log_context,
) -> BookingResult:
    """
    Run one booking/cancellation unit of work: commit on success, roll back
    on any failed precondition, retry transient write conflicts.
    """
    max_attempts = max(1, get_settings().BOOKING_MAX_RETRIES)

    for attempt in range(1, max_attempts + 1):
        try:
            result = await unit_of_work()
            if result.success:
                await db.commit()
            else:
                await db.rollback()
            return result

        except STORAGE_ERRORS as exc:
            await rollback_quietly(db)
            if not is_transient_conflict(exc):
                logger.error(
                    "booking_transaction_failed",
                    operation=operation,
                    error=str(exc),
                    **log_context,
                )
                raise InfrastructureUnavailable(f"{operation} failed: storage unavailable") from exc

            db_retries.inc()
            logger.info(
                "booking_retry",
                operation=operation,
                attempt=attempt,
                reason="write_conflict",
                **log_context,
            )
            if attempt < max_attempts:
                await asyncio.sleep(0.005 * (2 ** attempt) + random.uniform(0, 0.005))

        except asyncio.CancelledError:
            # Client went away mid-transaction: nothing may be half-applied.
            await db.rollback()
            raise

    logger.warning("booking_retries_exhausted", operation=operation, attempts=max_attempts, **log_context)
    raise InfrastructureUnavailable(f"{operation} failed due to high demand. Please try again.")


async def _attempt_booking(
    db: AsyncSession,
    student_id: str,
    slot_id: int,
    now: datetime,
    deprioritized: bool = False,
) -> BookingResult:
    capacity = CapacityLedger(db)
    ledger = BookingLedger(db)

    # Step 1: slot, event and phase gate
    found = await capacity.get_slot_with_event(slot_id)
    if found is None:
        return BookingResult.failed(BookingError.BOOKING_CLOSED, "Slot not found")
    slot, event = found

    if not slot.is_active or not event.is_active:
        return BookingResult.failed(BookingError.BOOKING_CLOSED, "This slot is not open for booking")

    phase = current_phase(event, now)
    closed_reason = closed_for_student(phase, deprioritized)
    if closed_reason is not None:
        return BookingResult.failed(BookingError.BOOKING_CLOSED, closed_reason)

    # Step 2: serialize this student's bookings for the event
    await ledger.lock_student_quota(student_id, event.id)

    # Step 3: duplicate and quota checks under the lock
    if await ledger.has_confirmed_booking(student_id, slot.id):
        return BookingResult.failed(
            BookingError.DUPLICATE_BOOKING,
            "You already have a booking for this time slot",
        )

    current_count = await ledger.count_confirmed(student_id, event.id)
    if current_count >= phase.limit:
        return BookingResult.failed(
            BookingError.QUOTA_EXCEEDED,
            f"You have reached the maximum of {phase.limit} interviews for Phase {phase.phase} "
            f"({current_count}/{phase.limit} booked)",
        )

    # Step 4: compare-and-increment on the slot
    if not await capacity.reserve(slot.id):
        return BookingResult.failed(BookingError.SLOT_FULL, "This slot is fully booked")

    # Step 5: booking row
    try:
        booking = await ledger.add_confirmed(student_id, slot, phase.phase, now)
    except IntegrityError:
        return BookingResult.failed(
            BookingError.DUPLICATE_BOOKING,
            "You already have a booking for this time slot",
        )

    occupancy = await capacity.occupancy(slot.id)
    remaining = occupancy[1] - occupancy[0] if occupancy else None
    return BookingResult(
        success=True,
        message=f"Booking confirmed! ({remaining} spots remaining in this slot)",
        booking=booking,
        remaining_capacity=remaining,
    )


async def book_slot(
    db: AsyncSession,
    student_id: str,
    slot_id: int,
    now: Optional[datetime] = None,
    deprioritized: bool = False,
) -> BookingResult:
    """
    Book one unit of a slot for a student.
    Precondition failures come back as a failed BookingResult; storage
    failures raise InfrastructureUnavailable. Deprioritized students are
    turned away in phase 1 with BOOKING_CLOSED.
    """
    now = resolve_now(now)

    with booking_latency.time():
        try:
            result = await _run_transaction(
                db,
                lambda: _attempt_booking(db, student_id, slot_id, now, deprioritized),
                operation="book",
                student_id=student_id,
                slot_id=slot_id,
            )
        except InfrastructureUnavailable:
            record_booking_attempt("error")
            raise

    if result.success:
        record_booking_attempt("success")
        logger.info(
            "booking_created",
            booking_id=result.booking_id,
            student_id=student_id,
            slot_id=slot_id,
            booking_phase=result.booking.booking_phase,
            remaining_capacity=result.remaining_capacity,
        )
    else:
        record_booking_attempt(result.error.value)
        logger.info(
            "booking_rejected",
            student_id=student_id,
            slot_id=slot_id,
            reason=result.error.value,
        )
    return result


async def _attempt_cancellation(
    db: AsyncSession,
    student_id: str,
    booking_id: int,
    now: datetime,
) -> BookingResult:
    capacity = CapacityLedger(db)
    ledger = BookingLedger(db)

    booking = await ledger.get_for_update(booking_id)
    if booking is None:
        return BookingResult.failed(BookingError.NOT_FOUND, "Booking not found")

    if booking.student_id != student_id:
        return BookingResult.failed(BookingError.NOT_OWNER, "This booking belongs to another student")

    if not booking.is_confirmed:
        return BookingResult.failed(BookingError.ALREADY_CANCELLED, "Booking is already cancelled")

    if not await ledger.mark_cancelled(booking.id, now):
        return BookingResult.failed(BookingError.ALREADY_CANCELLED, "Booking is already cancelled")

    await capacity.release(booking.slot_id)
    await db.refresh(booking)

    occupancy = await capacity.occupancy(booking.slot_id)
    remaining = occupancy[1] - occupancy[0] if occupancy else None
    return BookingResult(
        success=True,
        message="Booking cancelled successfully",
        booking=booking,
        remaining_capacity=remaining,
    )


async def cancel_booking(
    db: AsyncSession,
    student_id: str,
    booking_id: int,
    now: Optional[datetime] = None,
) -> BookingResult:
    """
    Cancel a confirmed booking and release its capacity.
    Allowed in every phase; quota is not re-checked.
    """
    now = resolve_now(now)

    try:
        result = await _run_transaction(
            db,
            lambda: _attempt_cancellation(db, student_id, booking_id, now),
            operation="cancel",
            student_id=student_id,
            booking_id=booking_id,
        )
    except InfrastructureUnavailable:
        record_cancellation("error")
        raise

    if result.success:
        record_cancellation("success")
        logger.info(
            "booking_cancelled",
            booking_id=booking_id,
            student_id=student_id,
            slot_id=result.booking.slot_id,
        )
    else:
        record_cancellation(result.error.value)
        logger.info(
            "cancellation_rejected",
            booking_id=booking_id,
            student_id=student_id,
            reason=result.error.value,
        )
    return result


@asynccontextmanager
async def _storage_guard(db: AsyncSession, operation: str):
    """Surface storage faults in read paths as InfrastructureUnavailable."""
    try:
        yield
    except STORAGE_ERRORS as exc:
        await rollback_quietly(db)
        logger.error("booking_read_failed", operation=operation, error=str(exc))
        raise InfrastructureUnavailable(f"{operation} failed: storage unavailable") from exc


async def check_booking_limit(
    db: AsyncSession,
    student_id: str,
    event_id: int,
    now: Optional[datetime] = None,
    deprioritized: bool = False,
) -> BookingLimit:
    """Read-only view of the student's quota in the event's current phase."""
    now = resolve_now(now)

    async with _storage_guard(db, "check_booking_limit"):
        event = await db.get(Event, event_id, populate_existing=True)
        if event is None:
            raise EventNotFound(f"Event {event_id} not found")

        phase = current_phase(event, now)
        count = await BookingLedger(db).count_confirmed(student_id, event_id)
        await db.commit()

    closed_reason = closed_for_student(phase, deprioritized)
    if closed_reason is not None:
        return BookingLimit(False, count, 0, phase.phase, closed_reason)

    if count >= phase.limit:
        message = f"You have reached the maximum of {phase.limit} interviews for Phase {phase.phase}"
    else:
        message = (
            f"You can book {phase.limit - count} more interview(s). "
            f"Phase {phase.phase}: {count}/{phase.limit} booked"
        )
    return BookingLimit(count < phase.limit, count, phase.limit, phase.phase, message)


async def get_slot_availability(db: AsyncSession, slot_id: int) -> SlotAvailability:
    async with _storage_guard(db, "get_slot_availability"):
        result = await db.execute(
            select(EventSlot)
            .where(EventSlot.id == slot_id, EventSlot.is_active.is_(True))
            .execution_options(populate_existing=True)
        )
        slot = result.scalar_one_or_none()
        await db.commit()

    if slot is None:
        raise SlotNotFound(f"Slot {slot_id} not found or inactive")

    return SlotAvailability(
        slot_id=slot.id,
        is_available=slot.confirmed_count < slot.capacity,
        confirmed_count=slot.confirmed_count,
        capacity=slot.capacity,
        available_spots=slot.available_spots,
    )


async def list_student_bookings(
    db: AsyncSession,
    student_id: str,
    event_id: Optional[int] = None,
) -> list[Booking]:
    """All bookings for a student, newest first, cancelled ones included."""
    async with _storage_guard(db, "list_student_bookings"):
        bookings = await BookingLedger(db).list_for_student(student_id, event_id)
        await db.commit()
    return bookings
