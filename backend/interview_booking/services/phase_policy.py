"""
Phase policy: which booking phase an event is in, and its per-student limit.

An event's phase comes from exactly one source:

  PhaseOverride(phase)  - an administrator pinned the phase
  TimeDerived()         - the phase follows the configured start timestamps

    now < phase1_start_at                      -> phase 0 (closed)
    phase1_start_at <= now < phase2_start_at   -> phase 1
    now >= phase2_start_at                     -> phase 2
    now >= phase2_end_at (when configured)     -> phase 0 again

Phase 0 always carries limit 0. Students who already hold an internship
("deprioritized") may not book in phase 1; they wait for phase 2.

Everything here is pure: no I/O, no clock reads beyond the `now` the caller
passes in.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from interview_booking.core.errors import InvalidPhase

PHASE_CLOSED = 0
PHASE_ONE = 1
PHASE_TWO = 2
VALID_PHASES = (PHASE_CLOSED, PHASE_ONE, PHASE_TWO)

CLOSED_MESSAGE = "Bookings are currently closed for this event"
DEPRIORITIZED_MESSAGE = (
    "You cannot book during Phase 1 because you indicated you already have an internship. "
    "You can book during Phase 2."
)


@dataclass(frozen=True)
class PhaseOverride:
    phase: int


@dataclass(frozen=True)
class TimeDerived:
    pass


PhaseSource = Union[PhaseOverride, TimeDerived]


@dataclass(frozen=True)
class PhaseState:
    phase: int
    limit: int
    message: str
    source: PhaseSource

    @property
    def is_open(self) -> bool:
        return self.phase != PHASE_CLOSED

    @property
    def is_override(self) -> bool:
        return isinstance(self.source, PhaseOverride)


def validate_phase(phase: int) -> int:
    if phase not in VALID_PHASES:
        raise InvalidPhase(f"Phase must be one of {VALID_PHASES}, got {phase}")
    return phase


def phase_source(event) -> PhaseSource:
    if event.phase_override is None:
        return TimeDerived()
    return PhaseOverride(validate_phase(event.phase_override))


def phase_limit(event, phase: int) -> int:
    if phase == PHASE_ONE:
        return event.phase1_max_bookings
    if phase == PHASE_TWO:
        return event.phase2_max_bookings
    return 0


def derive_phase_from_time(event, now: datetime) -> int:
    if event.phase1_start_at is None or now < event.phase1_start_at:
        return PHASE_CLOSED
    if event.phase2_start_at is None or now < event.phase2_start_at:
        return PHASE_ONE
    if event.phase2_end_at is not None and now >= event.phase2_end_at:
        return PHASE_CLOSED
    return PHASE_TWO


def phase_message(phase: int, limit: int) -> str:
    if phase == PHASE_CLOSED:
        return CLOSED_MESSAGE
    return f"Phase {phase} is open: up to {limit} booking(s) per student"


def current_phase(event, now: datetime) -> PhaseState:
    source = phase_source(event)

    if isinstance(source, PhaseOverride):
        phase = source.phase
    else:
        phase = derive_phase_from_time(event, now)

    limit = phase_limit(event, phase)
    return PhaseState(
        phase=phase,
        limit=limit,
        message=phase_message(phase, limit),
        source=source,
    )


def closed_for_student(state: PhaseState, deprioritized: bool = False) -> Optional[str]:
    """Why this student may not book right now, or None if the phase admits them."""
    if not state.is_open:
        return state.message
    if deprioritized and state.phase == PHASE_ONE:
        return DEPRIORITIZED_MESSAGE
    return None
