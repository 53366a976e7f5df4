"""
Tests for booking and slot endpoints: status codes and error bodies.
"""

import pytest
from httpx import AsyncClient

from interview_booking.api.routes import bookings as bookings_routes
from interview_booking.core.errors import InfrastructureUnavailable


@pytest.mark.asyncio
async def test_book_slot(client: AsyncClient, student_headers, open_slot):
    response = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=student_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["slot_id"] == open_slot.id
    assert data["student_id"] == "student-1"
    assert data["status"] == "confirmed"
    assert data["booking_phase"] == 1
    assert data["remaining_capacity"] == 0
    assert data["message"] == "Booking confirmed! (0 spots remaining in this slot)"

    availability = await client.get(f"/api/v1/slots/{open_slot.id}/availability")
    assert availability.json() == {
        "slot_id": open_slot.id,
        "is_available": False,
        "confirmed_count": 1,
        "capacity": 1,
        "available_spots": 0,
    }


@pytest.mark.asyncio
async def test_book_unauthenticated(client: AsyncClient, open_slot):
    response = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_with_invalid_token(client: AsyncClient, open_slot):
    response = await client.post(
        "/api/v1/bookings/",
        json={"slot_id": open_slot.id},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_full_slot(client: AsyncClient, student_headers, other_student_headers, open_slot):
    await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=student_headers)

    response = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=other_student_headers)

    assert response.status_code == 409
    assert response.json()["detail"] == {"error": "slot_full", "message": "This slot is fully booked"}


@pytest.mark.asyncio
async def test_book_duplicate(client: AsyncClient, student_headers, open_event, make_slot):
    slot = await make_slot(open_event, capacity=3)
    await client.post("/api/v1/bookings/", json={"slot_id": slot.id}, headers=student_headers)

    response = await client.post("/api/v1/bookings/", json={"slot_id": slot.id}, headers=student_headers)

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "duplicate_booking"


@pytest.mark.asyncio
async def test_book_over_quota(client: AsyncClient, student_headers, open_event, make_slot):
    slots = [await make_slot(open_event) for _ in range(3)]
    for slot in slots[:2]:
        ok = await client.post("/api/v1/bookings/", json={"slot_id": slot.id}, headers=student_headers)
        assert ok.status_code == 201

    response = await client.post("/api/v1/bookings/", json={"slot_id": slots[2].id}, headers=student_headers)

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "quota_exceeded"

    limit = await client.get(f"/api/v1/events/{open_event.id}/booking-limit", headers=student_headers)
    assert limit.json()["can_book"] is False
    assert limit.json()["current_count"] == 2


@pytest.mark.asyncio
async def test_book_when_closed(client: AsyncClient, student_headers, closed_event, make_slot):
    slot = await make_slot(closed_event)

    response = await client.post("/api/v1/bookings/", json={"slot_id": slot.id}, headers=student_headers)

    assert response.status_code == 403
    assert response.json()["detail"] == {
        "error": "booking_closed",
        "message": "Bookings are currently closed for this event",
    }


@pytest.mark.asyncio
async def test_deprioritized_student_blocked_in_phase_one(client: AsyncClient, open_slot, make_headers):
    headers = make_headers("student-8", deprioritized=True)

    response = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=headers)
    limit = await client.get(f"/api/v1/events/{open_slot.event_id}/booking-limit", headers=headers)

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "booking_closed"
    assert "internship" in response.json()["detail"]["message"]
    assert limit.json()["can_book"] is False
    assert limit.json()["max_allowed"] == 0


@pytest.mark.asyncio
async def test_deprioritized_student_books_in_phase_two(client: AsyncClient, admin_headers, open_slot, make_headers):
    await client.put(f"/api/v1/events/{open_slot.event_id}/phase", json={"phase": 2}, headers=admin_headers)

    response = await client.post(
        "/api/v1/bookings/",
        json={"slot_id": open_slot.id},
        headers=make_headers("student-8", deprioritized=True),
    )

    assert response.status_code == 201
    assert response.json()["booking_phase"] == 2


@pytest.mark.asyncio
async def test_book_storage_unavailable(client: AsyncClient, student_headers, open_slot, monkeypatch):
    async def unavailable(db, student_id, slot_id, now=None, deprioritized=False):
        raise InfrastructureUnavailable("book failed due to high demand. Please try again.")

    monkeypatch.setattr(bookings_routes, "book_slot", unavailable)

    response = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=student_headers)

    assert response.status_code == 503
    assert response.json()["detail"] == "book failed due to high demand. Please try again."


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, student_headers, other_student_headers, open_slot):
    booked = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=student_headers)
    booking_id = booked.json()["id"]

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=student_headers)

    assert response.status_code == 200
    assert response.json() == {
        "message": "Booking cancelled successfully",
        "booking_id": booking_id,
        "status": "cancelled",
    }

    # The freed place is bookable again
    rebooked = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=other_student_headers)
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_cancel_someone_elses_booking(client: AsyncClient, student_headers, other_student_headers, open_slot):
    booked = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=student_headers)

    response = await client.delete(f"/api/v1/bookings/{booked.json()['id']}", headers=other_student_headers)

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "not_owner"


@pytest.mark.asyncio
async def test_cancel_missing_booking(client: AsyncClient, student_headers, engine):
    response = await client.delete("/api/v1/bookings/98765", headers=student_headers)

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "not_found"


@pytest.mark.asyncio
async def test_cancel_twice(client: AsyncClient, student_headers, open_slot):
    booked = await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=student_headers)
    booking_id = booked.json()["id"]
    await client.delete(f"/api/v1/bookings/{booking_id}", headers=student_headers)

    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=student_headers)

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "already_cancelled"


@pytest.mark.asyncio
async def test_list_bookings(client: AsyncClient, student_headers, open_event, make_slot, make_headers):
    first, second = [await make_slot(open_event) for _ in range(2)]
    await client.post("/api/v1/bookings/", json={"slot_id": first.id}, headers=student_headers)
    await client.post("/api/v1/bookings/", json={"slot_id": second.id}, headers=student_headers)
    # Another student's booking never shows up
    await client.post("/api/v1/bookings/", json={"slot_id": first.id}, headers=make_headers("student-9"))

    response = await client.get("/api/v1/bookings/", headers=student_headers)

    assert response.status_code == 200
    data = response.json()
    assert {b["slot_id"] for b in data} == {first.id, second.id}
    assert all(b["student_id"] == "student-1" for b in data)


@pytest.mark.asyncio
async def test_list_bookings_filtered_by_event(client: AsyncClient, student_headers, open_slot, make_event, make_slot):
    other_event = await make_event(name="Autumn Fair", phase_override=1)
    other_slot = await make_slot(other_event)
    await client.post("/api/v1/bookings/", json={"slot_id": open_slot.id}, headers=student_headers)
    await client.post("/api/v1/bookings/", json={"slot_id": other_slot.id}, headers=student_headers)

    response = await client.get(f"/api/v1/bookings/?event_id={other_event.id}", headers=student_headers)

    assert [b["slot_id"] for b in response.json()] == [other_slot.id]


@pytest.mark.asyncio
async def test_availability_unknown_slot(client: AsyncClient, engine):
    response = await client.get("/api/v1/slots/55555/availability")
    assert response.status_code == 404
