"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Customers cannot create listings, so the concurrency scenario needs either
CONTESTED_LISTING_ID or the credentials of an owner account in
OWNER_EMAIL / OWNER_PASSWORD.
"""

import os
import random
import string
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

# Shared state
LISTING_IDS = []
CONTESTED_LISTING_ID = int(os.environ["CONTESTED_LISTING_ID"]) if os.environ.get("CONTESTED_LISTING_ID") else None

# Every concurrency user asks for a stay inside this window, so most overlap
WINDOW_START = date.today() + timedelta(days=60)
WINDOW_DAYS = 14


def random_email():
    return f"load_{random.randint(10000, 99999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=8))


def random_stay(max_nights: int = 4) -> tuple[str, str]:
    nights = random.randint(1, max_nights)
    check_in = WINDOW_START + timedelta(days=random.randint(0, WINDOW_DAYS - nights))
    return check_in.isoformat(), (check_in + timedelta(days=nights)).isoformat()


def login_new_customer(client) -> dict:
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "username": random_username(),
        "password": "loadtest123",
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": "loadtest123"})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: overlapping stays between {WINDOW_START} and {WINDOW_START + timedelta(days=WINDOW_DAYS)}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many guests, one chalet, overlapping dates

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no two live bookings overlap:
      SELECT a.id, b.id FROM bookings a JOIN bookings b
        ON a.listing_id = b.listing_id AND a.id < b.id
       AND a.check_in < b.check_out AND b.check_in < a.check_out
       AND a.status IN ('pending', 'confirmed') AND b.status IN ('pending', 'confirmed');
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = login_new_customer(self.client)
        if CONTESTED_LISTING_ID or not os.environ.get("OWNER_EMAIL"):
            return

        resp = self.client.post("/api/v1/auth/login", json={
            "email": os.environ["OWNER_EMAIL"],
            "password": os.environ.get("OWNER_PASSWORD", ""),
        })
        if resp.status_code != 200 or CONTESTED_LISTING_ID:
            return
        owner_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
        resp = self.client.post(
            "/api/v1/listings/",
            json={
                "name": "Concurrency Test Chalet",
                "governorate": "Load",
                "address": "Test",
                "category": "family",
                "price_per_day": "50.00",
                "max_capacity": 8,
            },
            headers=owner_headers,
        )
        if resp.status_code == 201:
            globals()["CONTESTED_LISTING_ID"] = resp.json()["id"]
            print(f"\n✓ Created listing {CONTESTED_LISTING_ID} for the concurrency test\n")

    @tag("concurrency")
    @task
    def book_overlapping_stay(self):
        """All users fight over the same two weeks."""
        if not CONTESTED_LISTING_ID or not self.headers:
            return

        check_in, check_out = random_stay()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "listing_id": CONTESTED_LISTING_ID,
                "check_in": check_in,
                "check_out": check_out,
                "guests_count": random.randint(1, 4),
            },
            headers=self.headers,
            name="/api/v1/bookings/ [contested]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409 expected: dates taken
            elif resp.status_code == 503:
                resp.failure(f"Lock timeout or backend down: {resp.text}")
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: Stop Redis, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def search_listings_cached(self):
        """Hammer the cached search."""
        page = random.randint(1, 5)
        category = random.choice(["youth", "family"])
        self.client.get(
            f"/api/v1/listings/?page={page}&page_size=20&category={category}",
            name="/api/v1/listings/ [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def listing_availability(self):
        if LISTING_IDS:
            start = WINDOW_START.isoformat()
            end = (WINDOW_START + timedelta(days=30)).isoformat()
            self.client.get(
                f"/api/v1/listings/{random.choice(LISTING_IDS)}/availability?start={start}&end={end}",
                name="/api/v1/listings/{id}/availability",
            )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = login_new_customer(self.client)

    def _expect(self, payload, allowed, headers=None):
        with self.client.post(
            "/api/v1/bookings/",
            json=payload,
            headers=self.headers if headers is None else headers,
            name="/api/v1/bookings/ [edge]",
            catch_response=True,
        ) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_listing(self):
        check_in, check_out = random_stay()
        self._expect(
            {"listing_id": 999999, "check_in": check_in, "check_out": check_out, "guests_count": 1},
            (404,),
        )

    @tag("edge")
    @task
    def reversed_dates(self):
        check_in, check_out = random_stay()
        self._expect(
            {"listing_id": 1, "check_in": check_out, "check_out": check_in, "guests_count": 1},
            (400, 404),
        )

    @tag("edge")
    @task
    def zero_guests(self):
        check_in, check_out = random_stay()
        self._expect(
            {"listing_id": 1, "check_in": check_in, "check_out": check_out, "guests_count": 0},
            (400, 422),
        )

    @tag("edge")
    @task
    def huge_party(self):
        check_in, check_out = random_stay()
        self._expect(
            {"listing_id": 1, "check_in": check_in, "check_out": check_out, "guests_count": 999},
            (400, 404),
        )

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (400, 422):
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        check_in, check_out = random_stay()
        self._expect(
            {"listing_id": 1, "check_in": check_in, "check_out": check_out, "guests_count": 1},
            (401,),
            headers={},
        )


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing and calendars
      - Some quotes and bookings
      - Occasional support messages
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = login_new_customer(self.client)
        self.conversation_id = None

    @task(50)
    def browse_listings(self):
        resp = self.client.get("/api/v1/listings/?page=1&page_size=20")
        if resp.status_code == 200:
            for listing in resp.json().get("listings", []):
                if listing["id"] not in LISTING_IDS:
                    LISTING_IDS.append(listing["id"])

    @task(20)
    def view_listing(self):
        if LISTING_IDS:
            self.client.get(f"/api/v1/listings/{random.choice(LISTING_IDS)}", name="/api/v1/listings/{id}")

    @task(10)
    def quote_stay(self):
        if LISTING_IDS:
            check_in, check_out = random_stay(max_nights=7)
            self.client.post(
                f"/api/v1/listings/{random.choice(LISTING_IDS)}/quote",
                json={"check_in": check_in, "check_out": check_out, "guests_count": 2},
                name="/api/v1/listings/{id}/quote",
            )

    @task(5)
    def book_stay(self):
        if LISTING_IDS and self.headers:
            check_in, check_out = random_stay(max_nights=7)
            with self.client.post(
                "/api/v1/bookings/",
                json={
                    "listing_id": random.choice(LISTING_IDS),
                    "check_in": check_in,
                    "check_out": check_out,
                    "guests_count": random.randint(1, 4),
                },
                headers=self.headers,
                catch_response=True,
            ) as resp:
                if resp.status_code in (201, 400, 409):
                    resp.success()
                else:
                    resp.failure(f"Unexpected: {resp.status_code}")

    @task(2)
    def message_support(self):
        if not self.headers:
            return
        if self.conversation_id is None:
            resp = self.client.post("/api/v1/conversations/", headers=self.headers)
            if resp.status_code != 201:
                return
            self.conversation_id = resp.json()["conversation_id"]
        self.client.post(
            f"/api/v1/conversations/{self.conversation_id}/messages",
            json={"message": "Is late check-out possible?"},
            headers=self.headers,
            name="/api/v1/conversations/{id}/messages",
        )
