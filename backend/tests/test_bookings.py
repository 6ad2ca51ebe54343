"""
Tests for booking endpoints: creation, conflicts, cancellation, workflow.
"""

import re

import pytest
from httpx import AsyncClient


def booking_payload(listing_id: int, check_in: str = "2025-06-01", check_out: str = "2025-06-04", guests: int = 2) -> dict:
    return {
        "listing_id": listing_id,
        "check_in": check_in,
        "check_out": check_out,
        "guests_count": guests,
    }


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, auth_headers, test_listing, test_user):
    """Successful booking is pending, priced and carries an FR- reference."""
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(test_listing.id),
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["listing_id"] == test_listing.id
    assert data["user_id"] == test_user.id
    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["total_amount"] == "150.00"
    assert re.fullmatch(r"FR-[A-Za-z0-9]{8}", data["booking_reference"])


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, test_listing):
    """Unauthenticated booking returns 401."""
    response = await client.post("/api/v1/bookings/", json=booking_payload(test_listing.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_overlapping_booking_conflicts(client: AsyncClient, auth_headers, test_listing):
    """A second request overlapping an active booking returns 409 naming the holder."""
    first = await client.post("/api/v1/bookings/", json=booking_payload(test_listing.id), headers=auth_headers)
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(test_listing.id, "2025-06-03", "2025-06-06"),
        headers=auth_headers,
    )
    assert second.status_code == 409
    detail = second.json()["detail"]
    assert detail["error"] == "BookingConflict"
    assert detail["message"]
    assert detail["context"]["conflicting_references"] == [first.json()["booking_reference"]]


@pytest.mark.asyncio
async def test_back_to_back_bookings_allowed(client: AsyncClient, auth_headers, test_listing):
    """Check-out day of one stay may be the check-in day of the next."""
    first = await client.post("/api/v1/bookings/", json=booking_payload(test_listing.id), headers=auth_headers)
    second = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(test_listing.id, "2025-06-04", "2025-06-07"),
        headers=auth_headers,
    )
    assert first.status_code == 201
    assert second.status_code == 201


@pytest.mark.asyncio
async def test_booking_over_capacity(client: AsyncClient, auth_headers, test_listing):
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(test_listing.id, guests=7),
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_booking_reversed_dates(client: AsyncClient, auth_headers, test_listing):
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(test_listing.id, "2025-06-04", "2025-06-01"),
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_booking_inactive_listing(client: AsyncClient, auth_headers, inactive_listing):
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(inactive_listing.id),
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_booking_missing_listing(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/bookings/", json=booking_payload(9999), headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "NotFound"


@pytest.mark.asyncio
async def test_cancel_then_rebook_same_range(client: AsyncClient, auth_headers, test_listing):
    """Cancelling releases the dates immediately."""
    book = await client.post("/api/v1/bookings/", json=booking_payload(test_listing.id), headers=auth_headers)
    booking_id = book.json()["id"]

    cancel = await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"

    rebook = await client.post("/api/v1/bookings/", json=booking_payload(test_listing.id), headers=auth_headers)
    assert rebook.status_code == 201


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, test_listing):
    """Double-cancelling returns 400."""
    book = await client.post("/api/v1/bookings/", json=booking_payload(test_listing.id), headers=auth_headers)
    booking_id = book.json()["id"]

    await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    response = await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cancel_other_users_booking(client: AsyncClient, test_booking, other_headers):
    response = await client.delete(f"/api/v1/bookings/{test_booking.id}", headers=other_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_listing_owner_can_cancel(client: AsyncClient, test_booking, owner_headers):
    response = await client.delete(f"/api/v1/bookings/{test_booking.id}", headers=owner_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_get_other_users_booking_is_hidden(client: AsyncClient, test_booking, other_headers):
    response = await client.get(f"/api/v1/bookings/{test_booking.id}", headers=other_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "BookingNotFound"


@pytest.mark.asyncio
async def test_get_booking_by_reference(client: AsyncClient, test_booking, auth_headers):
    response = await client.get("/api/v1/bookings/reference/FR-Test0001", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == test_booking.id


@pytest.mark.asyncio
async def test_list_my_bookings(client: AsyncClient, test_booking, auth_headers):
    response = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [test_booking.id]


@pytest.mark.asyncio
async def test_owner_confirms_then_completes(client: AsyncClient, test_booking, owner_headers):
    confirm = await client.patch(
        f"/api/v1/bookings/{test_booking.id}/status",
        json={"status": "confirmed", "payment_status": "paid"},
        headers=owner_headers,
    )
    assert confirm.status_code == 200
    assert confirm.json()["status"] == "confirmed"
    assert confirm.json()["payment_status"] == "paid"

    complete = await client.patch(
        f"/api/v1/bookings/{test_booking.id}/status",
        json={"status": "completed"},
        headers=owner_headers,
    )
    assert complete.status_code == 200
    assert complete.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_illegal_status_transition(client: AsyncClient, test_booking, owner_headers):
    response = await client.patch(
        f"/api/v1/bookings/{test_booking.id}/status",
        json={"status": "completed"},
        headers=owner_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_guest_cannot_confirm_own_booking(client: AsyncClient, test_booking, auth_headers):
    response = await client.patch(
        f"/api/v1/bookings/{test_booking.id}/status",
        json={"status": "confirmed"},
        headers=auth_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_quote_existing_booking(client: AsyncClient, test_booking, auth_headers):
    response = await client.get(f"/api/v1/bookings/{test_booking.id}/quote", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["nights"] == 3
    assert data["subtotal"] == "150.00"
    assert data["total"] == "150.00"
