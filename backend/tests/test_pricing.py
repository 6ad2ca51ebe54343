"""
Tests for the pricing calculator. Pure functions: no database needed.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from chalet_booking.core.exceptions import ValidationError
from chalet_booking.models.customer_service import CustomerService
from chalet_booking.services.pricing_service import (
    compute_price,
    count_nights,
    quantize_money,
    transport_price,
)

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
LISTING = SimpleNamespace(price_per_day=Decimal("50.00"))


def service(service_type: str, expires_in_days: int = 30, active: bool = True, applied: bool = False, **details):
    return CustomerService(
        service_type=service_type,
        service_details={k: str(v) for k, v in details.items()},
        is_active=active,
        applied_at=NOW if applied else None,
        expires_at=NOW + timedelta(days=expires_in_days),
    )


def test_subtotal_is_rate_times_nights():
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, now=NOW)
    assert price.nights == 3
    assert price.subtotal == Decimal("150.00")
    assert price.discount == Decimal("0.00")
    assert price.total == Decimal("150.00")


def test_food_discount_applies_to_subtotal():
    price = compute_price(
        LISTING,
        date(2025, 6, 1),
        date(2025, 6, 4),
        guests=2,
        services=[service("food_discount", discount_percentage=10)],
        now=NOW,
    )
    assert price.subtotal == Decimal("150.00")
    assert price.discount == Decimal("15.00")
    assert price.total == Decimal("135.00")


def test_expired_and_inactive_services_are_ignored():
    services = [
        service("food_discount", expires_in_days=-1, discount_percentage=10),
        service("bus_discount", active=False, discount_percentage=20),
    ]
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, services=services, now=NOW)
    assert price.discount == Decimal("0.00")
    assert price.total == Decimal("150.00")


def test_applied_service_outlives_expiry():
    services = [service("bus_discount", expires_in_days=-5, applied=True, discount_percentage=10)]
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, services=services, now=NOW)
    assert price.discount == Decimal("15.00")


def test_discount_is_capped_at_subtotal():
    services = [
        service("food_discount", discount_percentage=80),
        service("bus_discount", discount_percentage=70),
    ]
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, services=services, now=NOW)
    assert price.discount == price.subtotal
    assert price.total == Decimal("0.00")


def test_cashback_applies_after_discount():
    services = [
        service("food_discount", discount_percentage=10),
        service("cashback", amount="13.50"),
    ]
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, services=services, now=NOW)
    assert price.discount == Decimal("15.00")
    assert price.cashback == Decimal("13.50")
    assert price.total == Decimal("121.50")


def test_cashback_cap_uses_discounted_total():
    services = [
        service("food_discount", discount_percentage=10),
        service("cashback", amount=140),
    ]
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, services=services, now=NOW)
    assert price.cashback == Decimal("135.00")
    assert price.total == Decimal("0.00")


@pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_amounts_are_rejected(value):
    with pytest.raises(ValidationError):
        quantize_money(value)


def test_cashback_never_makes_total_negative():
    services = [service("cashback", amount=500)]
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, services=services, now=NOW)
    assert price.cashback == Decimal("150.00")
    assert price.total == Decimal("0.00")


def test_gifts_do_not_change_price():
    services = [service("promotional_gift")]
    price = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 4), guests=2, services=services, now=NOW)
    assert price.total == Decimal("150.00")


def test_price_is_deterministic():
    services = [service("food_discount", discount_percentage="12.5"), service("cashback", amount="7.25")]
    first = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 8), guests=4, services=services, now=NOW)
    second = compute_price(LISTING, date(2025, 6, 1), date(2025, 6, 8), guests=4, services=services, now=NOW)
    assert first == second


def test_rounding_is_half_up():
    assert quantize_money("2.345") == Decimal("2.35")
    assert quantize_money("2.344") == Decimal("2.34")
    listing = SimpleNamespace(price_per_day=Decimal("33.33"))
    services = [service("food_discount", discount_percentage="7.5")]
    price = compute_price(listing, date(2025, 6, 1), date(2025, 6, 2), guests=1, services=services, now=NOW)
    # 33.33 * 7.5% = 2.49975
    assert price.discount == Decimal("2.50")
    assert price.total == Decimal("30.83")


def test_nights_round_up_partial_days():
    start = datetime(2025, 6, 1, 14, 0, tzinfo=timezone.utc)
    assert count_nights(start, start + timedelta(hours=5)) == 1
    assert count_nights(start, start + timedelta(days=1, hours=1)) == 2
    assert count_nights(date(2025, 6, 1), date(2025, 6, 2)) == 1


def test_reversed_range_is_rejected():
    with pytest.raises(ValidationError):
        compute_price(LISTING, date(2025, 6, 4), date(2025, 6, 1), guests=2, now=NOW)


def test_transport_bus_is_per_passenger():
    assert transport_price("bus", 4) == Decimal("60.00")
    assert transport_price("bus", 1) == Decimal("15.00")


@pytest.mark.parametrize("passengers", [1, 3, 8])
def test_transport_car_and_minibus_are_flat(passengers):
    assert transport_price("private_car", passengers) == Decimal("80.00")
    assert transport_price("minibus", passengers) == Decimal("120.00")


def test_transport_unknown_type():
    with pytest.raises(ValidationError):
        transport_price("helicopter", 2)
