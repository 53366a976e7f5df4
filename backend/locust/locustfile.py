"""
Locust Load Test Suite

Tokens are minted locally with the same SECRET_KEY the API verifies, the way
the identity provider would issue them.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Many students, one slot
  locust -f locustfile.py --tags quota        # One student, many slots
  locust -f locustfile.py --tags throttle     # Login brute force
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import random
import uuid
from datetime import datetime, timezone, timedelta

import httpx
from locust import HttpUser, task, between, tag, events

from interview_booking.core.security import ROLE_ADMIN, create_access_token

SLOT_CAPACITY = 10
QUOTA_SLOTS = 8

# Shared state, filled in on test start
CONCURRENCY_SLOT_ID = None
QUOTA_SLOT_IDS = []
EVENT_ID = None


def student_headers(student_id=None):
    student_id = student_id or f"load-{uuid.uuid4().hex[:12]}"
    return {"Authorization": f"Bearer {create_access_token(student_id)}"}


def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('load-admin', role=ROLE_ADMIN)}"}


def _create_slot(client, event_id, offset, capacity):
    start = datetime(2030, 1, 15, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=30 * offset)
    resp = client.post(
        f"/api/v1/events/{event_id}/slots",
        json={
            "company_id": 1000 + offset,
            "offer_id": 2000 + offset,
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(minutes=30)).isoformat(),
            "capacity": capacity,
        },
        headers=admin_headers(),
    )
    resp.raise_for_status()
    return resp.json()["id"]


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: one event pinned to phase 1, a contended slot and a pool of quota slots."""
    global CONCURRENCY_SLOT_ID, EVENT_ID

    host = environment.host or "http://localhost:8000"
    with httpx.Client(base_url=host, timeout=10) as client:
        resp = client.post(
            "/api/v1/events/",
            json={
                "name": f"Load Test Fair {random.randint(1, 10000)}",
                "date": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
                "phase_override": 1,
                "phase1_max_bookings": 3,
                "phase2_max_bookings": 6,
            },
            headers=admin_headers(),
        )
        resp.raise_for_status()
        EVENT_ID = resp.json()["id"]

        CONCURRENCY_SLOT_ID = _create_slot(client, EVENT_ID, 0, SLOT_CAPACITY)
        QUOTA_SLOT_IDS.extend(_create_slot(client, EVENT_ID, i + 1, 50) for i in range(QUOTA_SLOTS))

    print("\n" + "=" * 60)
    print(f"SETUP on {host}: event {EVENT_ID}, contended slot {CONCURRENCY_SLOT_ID} "
          f"({SLOT_CAPACITY} places), {QUOTA_SLOTS} quota slots")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 students -> 10 places

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT confirmed_count, capacity FROM event_slots WHERE id = X;
      SELECT COUNT(*) FROM bookings WHERE slot_id = X AND status = 'confirmed';
    Both counts must match and be <= 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = student_headers()

    @tag("concurrency")
    @task
    def book_contended_slot(self):
        if not CONCURRENCY_SLOT_ID:
            return

        with self.client.post("/api/v1/bookings/",
            json={"slot_id": CONCURRENCY_SLOT_ID},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: slot full or already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class QuotaUser(HttpUser):
    """
    TEST 2: Quota - each student fires at random slots with no think time

    Run: locust -f locustfile.py --tags quota -u 20 -r 20 --run-time 20s

    After test, verify no student exceeds the phase limit:
      SELECT student_id, COUNT(*) FROM bookings
      WHERE event_id = X AND status = 'confirmed'
      GROUP BY student_id HAVING COUNT(*) > 3;
    Should return no rows
    """
    wait_time = between(0, 0.05)

    def on_start(self):
        self.headers = student_headers()

    @tag("quota")
    @task
    def book_any_slot(self):
        if not QUOTA_SLOT_IDS:
            return

        with self.client.post("/api/v1/bookings/",
            json={"slot_id": random.choice(QUOTA_SLOT_IDS)},
            headers=self.headers,
            catch_response=True,
            name="/api/v1/bookings/ [quota]"
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThrottleUser(HttpUser):
    """
    TEST 3: Throttle - repeated failed logins from one address

    Run: locust -f locustfile.py --tags throttle -u 10 -r 10 --run-time 30s

    Expect 429 with Retry-After once the window fills. With Redis stopped and
    THROTTLE_BACKEND=redis, checks must keep answering 200 (fail open).
    """
    wait_time = between(0.1, 0.3)

    def on_start(self):
        self.email = f"load_{random.randint(10000, 99999)}@test.com"

    @tag("throttle")
    @task(3)
    def failed_login(self):
        self.client.post("/api/v1/auth/rate-limit/failures",
            json={"email": self.email, "action": "login", "reason": "invalid_credentials"})

    @tag("throttle")
    @task(5)
    def preflight_check(self):
        with self.client.post("/api/v1/auth/rate-limit/check",
            json={"email": self.email, "action": "login"},
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code == 429 and resp.headers.get("Retry-After"):
                resp.success()  # Expected: throttled
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = student_headers()

    @tag("edge")
    @task
    def unknown_slot(self):
        """Book a slot that does not exist."""
        with self.client.post("/api/v1/bookings/",
            json={"slot_id": 999999},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 403:
                resp.success()
            else:
                resp.failure(f"Expected 403, got {resp.status_code}")

    @tag("edge")
    @task
    def cancel_unknown_booking(self):
        with self.client.delete("/api/v1/bookings/999999",
            headers=self.headers,
            catch_response=True,
            name="/api/v1/bookings/{id}"
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json={"slot_id": 1},
            catch_response=True
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")

    @tag("edge")
    @task
    def student_sets_phase(self):
        """Phase override is admin only."""
        if not EVENT_ID:
            return
        with self.client.put(f"/api/v1/events/{EVENT_ID}/phase",
            json={"phase": 2},
            headers=self.headers,
            catch_response=True,
            name="/api/v1/events/{id}/phase"
        ) as resp:
            if resp.status_code == 403:
                resp.success()
            else:
                resp.failure(f"Expected 403, got {resp.status_code}")
