"""
Service ledger: discounts, cashback and gifts attached to existing bookings.

Applying for a service only records it. The booking's amounts are not
touched; a separate approval step (`mark_applied`) records when staff
honoured it and is where a discount gets its rate. Unapplied entries
lapse after SERVICE_EXPIRY_DAYS.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.clock import utcnow
from chalet_booking.core.config import get_settings
from chalet_booking.core.exceptions import BookingNotFound, InvalidAmount, NotAuthorized, NotFound, NotOwner, ValidationError
from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import services_applied
from chalet_booking.core.roles import Actor, is_support_team
from chalet_booking.models.booking import Booking
from chalet_booking.models.customer_service import DISCOUNT_TYPES, SERVICE_TYPES, CustomerService
from chalet_booking.services.pricing_service import HUNDRED, to_decimal

logger = get_logger(__name__)
settings = get_settings()

SERVICE_DESCRIPTIONS = {
    "food_discount": "Discount on food services and local cuisine",
    "bus_discount": "Discount on bus and transportation services",
    "cashback": "Cashback on completed booking",
    "promotional_gift": "Special promotional gift or service",
}


def _parse_number(value: Any, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValidationError as e:
        raise InvalidAmount(e.message, **{field: str(value)})


def _parse_percentage(value: Any) -> Decimal:
    percentage = _parse_number(value, "discount_percentage")
    if percentage < 0 or percentage > HUNDRED:
        raise InvalidAmount("Discount percentage must be between 0 and 100", discount_percentage=str(percentage))
    return percentage


def _normalize_details(booking: Booking, service_type: str, details: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {
        "description": details.get("description") or SERVICE_DESCRIPTIONS[service_type],
        "booking_reference": booking.booking_reference,
    }
    if details.get("note"):
        normalized["note"] = details["note"]

    if details.get("discount_percentage") is not None:
        raise NotAuthorized("Discount rates are set by the support team when the service is applied")

    if service_type == "cashback":
        amount = details.get("amount")
        if amount is None:
            raise InvalidAmount("A cashback application requires an amount")
        amount = _parse_number(amount, "amount")
        total = to_decimal(booking.total_amount)
        if amount < 0:
            raise InvalidAmount("Cashback amount cannot be negative", amount=str(amount))
        if amount > total:
            raise InvalidAmount(
                f"Cashback amount {amount} exceeds the booking total {total}",
                amount=str(amount),
                total=str(total),
            )
        # JSON column: keep money as a string to avoid float drift
        normalized["amount"] = str(amount)

    return normalized


async def apply_service(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    service_type: str,
    details: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> CustomerService:
    """
    Record a service application against the caller's booking.

    Raises BookingNotFound, NotOwner or InvalidAmount; nothing is written
    on failure.
    """
    if service_type not in SERVICE_TYPES:
        raise ValidationError(f"Unknown service type: {service_type}", service_type=service_type)

    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound(f"Booking {booking_id} not found", booking_id=booking_id)
    if booking.user_id != user_id:
        raise NotOwner("Booking does not belong to you", booking_id=booking_id)

    normalized = _normalize_details(booking, service_type, details or {})
    now = now or utcnow()

    service = CustomerService(
        booking_id=booking.id,
        user_id=user_id,
        service_type=service_type,
        service_details=normalized,
        is_active=True,
        expires_at=now + timedelta(days=settings.SERVICE_EXPIRY_DAYS),
        created_at=now,
        updated_at=now,
    )
    db.add(service)
    await db.flush()
    await db.refresh(service)

    services_applied.labels(service_type=service_type).inc()
    logger.info(
        "service_applied",
        service_id=service.id,
        booking_id=booking.id,
        user_id=user_id,
        service_type=service_type,
    )
    return service


async def list_user_services(db: AsyncSession, user_id: int) -> list[CustomerService]:
    result = await db.execute(
        select(CustomerService)
        .where(CustomerService.user_id == user_id)
        .order_by(CustomerService.created_at.desc(), CustomerService.id.desc())
    )
    return list(result.scalars().all())


async def effective_services(db: AsyncSession, booking_id: int, now: Optional[datetime] = None) -> list[CustomerService]:
    """Entries that count toward the price at `now`: active, and applied or not yet expired."""
    result = await db.execute(select(CustomerService).where(CustomerService.booking_id == booking_id))
    now = now or utcnow()
    return [s for s in result.scalars().all() if s.is_effective(now)]


async def mark_applied(
    db: AsyncSession,
    service_id: int,
    actor: Actor,
    discount_percentage: Optional[Any] = None,
    now: Optional[datetime] = None,
) -> CustomerService:
    """
    Approval step: support staff confirm the service was honoured.

    Discount entries get their rate here; until then they price at zero.
    """
    if not is_support_team(actor):
        raise NotAuthorized("Only the support team may apply services")

    result = await db.execute(select(CustomerService).where(CustomerService.id == service_id))
    service = result.scalar_one_or_none()
    if not service:
        raise NotFound(f"Service {service_id} not found", service_id=service_id)

    now = now or utcnow()
    if not service.is_effective(now):
        raise ValidationError("Service has expired or been withdrawn", service_id=service_id)

    if discount_percentage is not None:
        if service.service_type not in DISCOUNT_TYPES:
            raise ValidationError(
                f"{service.service_type} does not take a discount rate",
                service_id=service_id,
            )
        if service.applied_at is not None:
            raise ValidationError("Service was already applied", service_id=service_id)
        percentage = _parse_percentage(discount_percentage)
        # JSON columns only track reassignment
        service.service_details = {**(service.service_details or {}), "discount_percentage": str(percentage)}

    if service.applied_at is None:
        service.applied_at = now
        await db.flush()
        await db.refresh(service)
        logger.info(
            "service_marked_applied",
            service_id=service.id,
            actor_id=actor.user_id,
            discount_percentage=service.service_details.get("discount_percentage"),
        )
    return service


async def expire_stale_services(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Deactivate unapplied services past their expiry. Returns how many lapsed."""
    now = now or utcnow()
    result = await db.execute(
        update(CustomerService)
        .where(
            CustomerService.is_active.is_(True),
            CustomerService.applied_at.is_(None),
            CustomerService.expires_at.is_not(None),
            CustomerService.expires_at <= now,
        )
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    expired = result.rowcount or 0
    if expired:
        logger.info("services_expired", count=expired)
    return expired
