"""
Tests for the customer service ledger (discounts, cashback, gifts).
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from chalet_booking.core.clock import ensure_utc
from chalet_booking.core.exceptions import BookingNotFound, InvalidAmount, NotAuthorized, NotOwner, ValidationError
from chalet_booking.core.roles import Actor, Role
from chalet_booking.models import CustomerService
from chalet_booking.services import booking_service
from chalet_booking.services.ledger_service import apply_service, expire_stale_services, mark_applied

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


def support(user) -> Actor:
    return Actor(user_id=user.id, role=Role.ADMIN)


@pytest.mark.asyncio
async def test_apply_sets_thirty_day_expiry(db_session, test_booking, test_user):
    record = await apply_service(
        db_session, test_booking.id, test_user.id, "food_discount", {"note": "lunch for six"}, now=NOW
    )
    assert record.is_active
    assert record.applied_at is None
    assert ensure_utc(record.expires_at) == NOW + timedelta(days=30)
    assert record.service_details["booking_reference"] == "FR-Test0001"
    assert record.service_details["note"] == "lunch for six"
    assert "discount_percentage" not in record.service_details


@pytest.mark.asyncio
async def test_apply_does_not_touch_booking(db_session, test_booking, test_user):
    await apply_service(db_session, test_booking.id, test_user.id, "cashback", {"amount": "20"})
    await db_session.refresh(test_booking)
    assert str(test_booking.total_amount) == "150.00"
    assert str(test_booking.cashback_amount) == "0.00"


@pytest.mark.asyncio
async def test_cashback_over_total_is_invalid(db_session, test_booking, test_user):
    with pytest.raises(InvalidAmount):
        await apply_service(db_session, test_booking.id, test_user.id, "cashback", {"amount": "150.01"})

    result = await db_session.execute(select(CustomerService))
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_cashback_requires_non_negative_amount(db_session, test_booking, test_user):
    with pytest.raises(InvalidAmount):
        await apply_service(db_session, test_booking.id, test_user.id, "cashback", {"amount": "-1"})
    with pytest.raises(InvalidAmount):
        await apply_service(db_session, test_booking.id, test_user.id, "cashback", {})


@pytest.mark.asyncio
async def test_cashback_equal_to_total_is_allowed(db_session, test_booking, test_user):
    record = await apply_service(db_session, test_booking.id, test_user.id, "cashback", {"amount": "150.00"})
    assert record.service_details["amount"] == "150.00"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "lots"])
async def test_cashback_amount_must_be_a_finite_number(db_session, test_booking, test_user, amount):
    with pytest.raises(InvalidAmount):
        await apply_service(db_session, test_booking.id, test_user.id, "cashback", {"amount": amount})

    result = await db_session.execute(select(CustomerService))
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_customers_cannot_set_discount_rates(db_session, test_booking, test_user):
    with pytest.raises(NotAuthorized):
        await apply_service(db_session, test_booking.id, test_user.id, "bus_discount", {"discount_percentage": 100})


@pytest.mark.asyncio
@pytest.mark.parametrize("percentage", ["101", "-1", "NaN", "Infinity"])
async def test_approved_discount_rate_must_be_in_range(db_session, test_booking, test_user, admin_user, percentage):
    record = await apply_service(db_session, test_booking.id, test_user.id, "food_discount")
    with pytest.raises(InvalidAmount):
        await mark_applied(db_session, record.id, support(admin_user), discount_percentage=percentage)
    assert record.applied_at is None


@pytest.mark.asyncio
async def test_missing_booking(db_session, test_user):
    with pytest.raises(BookingNotFound):
        await apply_service(db_session, 9999, test_user.id, "promotional_gift")


@pytest.mark.asyncio
async def test_someone_elses_booking(db_session, test_booking, other_user):
    with pytest.raises(NotOwner):
        await apply_service(db_session, test_booking.id, other_user.id, "promotional_gift")


@pytest.mark.asyncio
async def test_expire_stale_services(db_session, test_booking, test_user):
    stale = await apply_service(db_session, test_booking.id, test_user.id, "promotional_gift", now=NOW - timedelta(days=31))
    fresh = await apply_service(db_session, test_booking.id, test_user.id, "promotional_gift", now=NOW)
    await db_session.commit()

    assert await expire_stale_services(db_session, now=NOW) == 1
    await db_session.commit()

    await db_session.refresh(stale)
    await db_session.refresh(fresh)
    assert not stale.is_active
    assert fresh.is_active


@pytest.mark.asyncio
async def test_mark_applied_is_support_only(db_session, test_booking, test_user, admin_user):
    record = await apply_service(db_session, test_booking.id, test_user.id, "food_discount")

    with pytest.raises(NotAuthorized):
        await mark_applied(
            db_session, record.id, Actor(user_id=test_user.id, role=Role.CUSTOMER), discount_percentage=10
        )

    applied = await mark_applied(db_session, record.id, support(admin_user), discount_percentage=10)
    assert applied.applied_at is not None
    assert applied.service_details["discount_percentage"] == "10"


@pytest.mark.asyncio
async def test_discount_rate_is_fixed_once_applied(db_session, test_booking, test_user, admin_user):
    record = await apply_service(db_session, test_booking.id, test_user.id, "bus_discount")
    await mark_applied(db_session, record.id, support(admin_user), discount_percentage=10)

    with pytest.raises(ValidationError):
        await mark_applied(db_session, record.id, support(admin_user), discount_percentage=50)


@pytest.mark.asyncio
async def test_only_discounts_take_a_rate(db_session, test_booking, test_user, admin_user):
    record = await apply_service(db_session, test_booking.id, test_user.id, "promotional_gift")
    with pytest.raises(ValidationError):
        await mark_applied(db_session, record.id, support(admin_user), discount_percentage=10)


@pytest.mark.asyncio
async def test_discount_counts_only_once_support_sets_the_rate(db_session, test_booking, test_user, admin_user):
    guest = Actor(user_id=test_user.id, role=Role.CUSTOMER)
    record = await apply_service(db_session, test_booking.id, test_user.id, "food_discount")
    await db_session.commit()

    pending = await booking_service.quote_booking(db_session, test_booking.id, guest)
    assert str(pending.discount) == "0.00"
    assert str(pending.total) == "150.00"

    await mark_applied(db_session, record.id, support(admin_user), discount_percentage=10)
    await db_session.commit()

    price = await booking_service.quote_booking(db_session, test_booking.id, guest)
    assert str(price.discount) == "15.00"
    assert str(price.total) == "135.00"


@pytest.mark.asyncio
async def test_apply_via_api_by_reference(client: AsyncClient, test_booking, auth_headers):
    response = await client.post(
        "/api/v1/services/",
        json={"booking_reference": "FR-Test0001", "service_type": "cashback", "amount": "500"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "InvalidAmount"

    response = await client.post(
        "/api/v1/services/",
        json={"booking_reference": "FR-Test0001", "service_type": "cashback", "amount": "20"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["service_details"]["amount"] == "20"

    listed = await client.get("/api/v1/services/", headers=auth_headers)
    assert len(listed.json()) == 1


@pytest.mark.asyncio
async def test_customer_cannot_lower_own_quote_with_a_discount_rate(
    client: AsyncClient, test_booking, auth_headers, admin_headers
):
    response = await client.post(
        "/api/v1/services/",
        json={"booking_reference": "FR-Test0001", "service_type": "food_discount", "discount_percentage": "100"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert "discount_percentage" not in response.json()["service_details"]
    service_id = response.json()["id"]

    quote = await client.get(f"/api/v1/bookings/{test_booking.id}/quote", headers=auth_headers)
    assert quote.json()["discount"] == "0.00"
    assert quote.json()["total"] == "150.00"

    forbidden = await client.post(
        f"/api/v1/services/{service_id}/apply", json={"discount_percentage": "100"}, headers=auth_headers
    )
    assert forbidden.status_code == 403

    approved = await client.post(
        f"/api/v1/services/{service_id}/apply", json={"discount_percentage": "10"}, headers=admin_headers
    )
    assert approved.status_code == 200
    assert approved.json()["applied_at"] is not None

    quote = await client.get(f"/api/v1/bookings/{test_booking.id}/quote", headers=auth_headers)
    assert quote.json()["discount"] == "15.00"
    assert quote.json()["total"] == "135.00"


@pytest.mark.asyncio
async def test_apply_via_api_wrong_owner(client: AsyncClient, test_booking, other_headers):
    response = await client.post(
        "/api/v1/services/",
        json={"booking_reference": "FR-Test0001", "service_type": "promotional_gift"},
        headers=other_headers,
    )
    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "NotOwner"
