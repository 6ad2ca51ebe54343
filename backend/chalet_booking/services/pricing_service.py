"""
Pricing calculator for stays and transportation add-ons.

All functions are pure: no database access, no clock reads unless `now`
is omitted. Money is Decimal, rounded to 2 places with ROUND_HALF_UP.

Order of application:
  1. subtotal = price_per_day * nights
  2. discount = sum of effective food/bus discount percentages of subtotal,
     capped at subtotal
  3. cashback = sum of effective flat cashback amounts, taken off the
     discounted total and capped so the total never goes negative
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from chalet_booking.core.clock import utcnow
from chalet_booking.core.config import get_settings
from chalet_booking.core.exceptions import ValidationError
from chalet_booking.models.customer_service import DISCOUNT_TYPES

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

DateLike = Union[date, datetime]


@dataclass(frozen=True)
class PriceBreakdown:
    nights: int
    subtotal: Decimal
    discount: Decimal
    cashback: Decimal
    total: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            "nights": self.nights,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "cashback": self.cashback,
            "total": self.total,
        }


def quantize_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Not a valid amount: {value!r}")
    if not number.is_finite():
        raise ValidationError(f"Not a finite amount: {value!r}")
    return number


def count_nights(check_in: DateLike, check_out: DateLike) -> int:
    """Ceil of the day difference, minimum 1."""
    if check_out <= check_in:
        raise ValidationError("check_out must be after check_in", check_in=str(check_in), check_out=str(check_out))
    if isinstance(check_in, datetime) or isinstance(check_out, datetime):
        seconds = (check_out - check_in).total_seconds()
        return max(1, math.ceil(seconds / 86400))
    return max(1, (check_out - check_in).days)


def _discount_percentage(services: Iterable[Any], now: datetime) -> Decimal:
    percentage = ZERO
    for service in services:
        if service.service_type not in DISCOUNT_TYPES or not service.is_effective(now):
            continue
        value = (service.service_details or {}).get("discount_percentage")
        if value is not None:
            percentage += max(to_decimal(value), ZERO)
    return percentage


def _cashback_amount(services: Iterable[Any], now: datetime) -> Decimal:
    amount = ZERO
    for service in services:
        if service.service_type != "cashback" or not service.is_effective(now):
            continue
        value = (service.service_details or {}).get("amount")
        if value is not None:
            amount += max(to_decimal(value), ZERO)
    return amount


def compute_price(
    listing: Any,
    check_in: DateLike,
    check_out: DateLike,
    guests: int,
    services: Iterable[Any] = (),
    now: Optional[datetime] = None,
) -> PriceBreakdown:
    """
    Price a stay of `guests` at `listing` for [check_in, check_out).

    `services` are ledger entries attached to the booking; only effective
    ones count. Same inputs always give the same breakdown.
    """
    if guests <= 0:
        raise ValidationError("guests must be positive", guests=guests)
    now = now or utcnow()
    services = list(services)

    nights = count_nights(check_in, check_out)
    subtotal = quantize_money(to_decimal(listing.price_per_day) * nights)

    discount = quantize_money(subtotal * _discount_percentage(services, now) / HUNDRED)
    discount = min(discount, subtotal)
    after_discount = subtotal - discount

    cashback = quantize_money(_cashback_amount(services, now))
    cashback = min(cashback, after_discount)
    total = after_discount - cashback

    return PriceBreakdown(
        nights=nights,
        subtotal=subtotal,
        discount=discount,
        cashback=cashback,
        total=quantize_money(total),
    )


def transport_price(transport_type: str, passengers: int) -> Decimal:
    """Bus is priced per passenger; private car and minibus are flat."""
    base_prices = get_settings().TRANSPORT_BASE_PRICES
    if transport_type not in base_prices:
        raise ValidationError(f"Unknown transport type: {transport_type}", transport_type=transport_type)
    if passengers <= 0:
        raise ValidationError("passengers must be positive", passengers=passengers)

    base_price = to_decimal(base_prices[transport_type])
    if transport_type == "bus":
        return quantize_money(base_price * passengers)
    return quantize_money(base_price)
