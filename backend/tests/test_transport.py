"""
Tests for transportation add-ons.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient

from chalet_booking.core.exceptions import BookingNotFound, NotOwner, ValidationError
from chalet_booking.services.transport_service import book_transport, list_user_transport

PICKUP = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_book_bus_for_own_booking(db_session, test_booking, test_user):
    transport = await book_transport(
        db_session, test_user.id, test_booking.id, "bus", "Airport", PICKUP, passengers=4
    )
    assert transport.price == Decimal("60.00")
    assert transport.status == "pending"
    assert [t.id for t in await list_user_transport(db_session, test_user.id)] == [transport.id]


@pytest.mark.asyncio
async def test_private_car_is_flat(db_session, test_booking, test_user):
    transport = await book_transport(
        db_session, test_user.id, test_booking.id, "private_car", "Airport", PICKUP, passengers=3
    )
    assert transport.price == Decimal("80.00")


@pytest.mark.asyncio
async def test_transport_requires_own_booking(db_session, test_booking, other_user):
    with pytest.raises(NotOwner):
        await book_transport(db_session, other_user.id, test_booking.id, "bus", "Airport", PICKUP, passengers=1)


@pytest.mark.asyncio
async def test_transport_requires_existing_booking(db_session, test_user):
    with pytest.raises(BookingNotFound):
        await book_transport(db_session, test_user.id, 9999, "bus", "Airport", PICKUP, passengers=1)


@pytest.mark.asyncio
async def test_transport_rejected_for_cancelled_booking(db_session, test_booking, test_user):
    test_booking.status = "cancelled"
    await db_session.commit()

    with pytest.raises(ValidationError):
        await book_transport(db_session, test_user.id, test_booking.id, "minibus", "Airport", PICKUP, passengers=5)


@pytest.mark.asyncio
async def test_return_must_follow_pickup(db_session, test_booking, test_user):
    with pytest.raises(ValidationError):
        await book_transport(
            db_session,
            test_user.id,
            test_booking.id,
            "bus",
            "Airport",
            PICKUP,
            passengers=1,
            return_time=PICKUP,
        )


@pytest.mark.asyncio
async def test_transport_quote_endpoint(client: AsyncClient):
    bus = await client.get("/api/v1/transport/quote", params={"transport_type": "bus", "passengers_count": 4})
    car = await client.get("/api/v1/transport/quote", params={"transport_type": "private_car", "passengers_count": 4})
    assert bus.json()["price"] == "60.00"
    assert car.json()["price"] == "80.00"


@pytest.mark.asyncio
async def test_transport_endpoint(client: AsyncClient, test_booking, auth_headers):
    response = await client.post(
        "/api/v1/transport/",
        json={
            "booking_id": test_booking.id,
            "transport_type": "minibus",
            "pickup_location": "Downtown",
            "pickup_time": "2025-06-01T09:00:00Z",
            "return_time": "2025-06-04T17:00:00Z",
            "passengers_count": 9,
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["price"] == "120.00"

    listed = await client.get("/api/v1/transport/", headers=auth_headers)
    assert len(listed.json()) == 1
