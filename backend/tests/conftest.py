"""
Pytest fixtures for test database, client, and authentication.

Each test gets a fresh database: a throwaway SQLite file by default, or the
database named by TEST_DATABASE_URL (e.g. a PostgreSQL test database) when
set. Tables are created before and dropped after every test.
"""

import os

# Settings are cached on first import; pin the test environment before that.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("THROTTLE_BACKEND", "database")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from interview_booking.main import app
from interview_booking.db.base import Base
from interview_booking.db.session import build_engine, build_sessionmaker, get_db
from interview_booking.core.security import ROLE_ADMIN, ROLE_STUDENT, create_access_token
from interview_booking.core.errors import AttemptStoreUnavailable
from interview_booking.models import Event, EventSlot
from interview_booking.services.interfaces import AttemptStore

PHASE1_LIMIT = 2
PHASE2_LIMIT = 4


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture(scope="function")
async def engine(database_url: str):
    """Create tables, yield engine, then drop tables for isolation."""
    test_engine = build_engine(database_url, echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session on the test DB."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def bearer(user_id: str, role: str = ROLE_STUDENT, deprioritized: bool = False) -> dict:
    """Authorization headers with a Bearer token for the given caller."""
    token = create_access_token(user_id, role=role, deprioritized=deprioritized)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers() -> dict:
    return bearer("student-1")


@pytest.fixture
def other_student_headers() -> dict:
    return bearer("student-2")


@pytest.fixture
def admin_headers() -> dict:
    return bearer("admin-1", role=ROLE_ADMIN)


@pytest.fixture
def base_time() -> datetime:
    """Phase 1 opens at this instant in the `phased_event` fixture."""
    return datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


async def _add_event(db: AsyncSession, **fields) -> Event:
    event = Event(
        name=fields.pop("name", "Spring Recruiting Fair"),
        date=fields.pop("date", datetime(2026, 3, 20, tzinfo=timezone.utc)),
        phase1_max_bookings=fields.pop("phase1_max_bookings", PHASE1_LIMIT),
        phase2_max_bookings=fields.pop("phase2_max_bookings", PHASE2_LIMIT),
        **fields,
    )
    db.add(event)
    await db.commit()
    return event


@pytest_asyncio.fixture
async def phased_event(db_session: AsyncSession, base_time: datetime) -> Event:
    """Time-derived phases: phase 1 at base_time, phase 2 a day later, closed after a week."""
    return await _add_event(
        db_session,
        phase1_start_at=base_time,
        phase2_start_at=base_time + timedelta(days=1),
        phase2_end_at=base_time + timedelta(days=7),
    )


@pytest_asyncio.fixture
async def open_event(db_session: AsyncSession) -> Event:
    """Event pinned to phase 1 by an administrator, whatever the clock says."""
    return await _add_event(db_session, name="Pinned Fair", phase_override=1)


@pytest_asyncio.fixture
async def closed_event(db_session: AsyncSession) -> Event:
    return await _add_event(db_session, name="Closed Fair", phase_override=0)


@pytest.fixture
def make_slot(db_session: AsyncSession):
    """Factory for slots: `await make_slot(event, capacity=2)`."""
    counter = {"n": 0}

    async def _make(event: Event, capacity: int = 1, is_active: bool = True) -> EventSlot:
        counter["n"] += 1
        start = datetime(2026, 3, 20, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=30 * counter["n"])
        slot = EventSlot(
            event_id=event.id,
            company_id=100 + counter["n"],
            offer_id=200 + counter["n"],
            start_time=start,
            end_time=start + timedelta(minutes=30),
            capacity=capacity,
            confirmed_count=0,
            is_active=is_active,
        )
        db_session.add(slot)
        await db_session.commit()
        return slot

    return _make


@pytest_asyncio.fixture
async def open_slot(open_event: Event, make_slot) -> EventSlot:
    return await make_slot(open_event, capacity=1)


@pytest.fixture
def make_event(db_session: AsyncSession):
    """Factory for events with arbitrary phase configuration."""

    async def _make(**fields) -> Event:
        return await _add_event(db_session, **fields)

    return _make


@pytest.fixture
def make_headers():
    """
    `make_headers("student-7")`, `make_headers("ops", role=ROLE_ADMIN)` or
    `make_headers("student-8", deprioritized=True)`.
    """
    return bearer


class UnavailableStore(AttemptStore):
    """Attempt store whose backend is down."""

    async def window(self, identifier, ip_address, action, since):
        raise AttemptStoreUnavailable("attempt log unreadable")

    async def record(self, identifier, ip_address, action, reason, at):
        raise AttemptStoreUnavailable("attempt log unwritable")

    async def clear(self, identifier, ip_address):
        raise AttemptStoreUnavailable("attempt log unwritable")


@pytest.fixture
def unavailable_store() -> AttemptStore:
    return UnavailableStore()
