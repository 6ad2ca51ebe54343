"""
Transportation add-on bookings.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.clock import ensure_utc
from chalet_booking.core.exceptions import BookingNotFound, NotOwner, ValidationError
from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import transport_bookings
from chalet_booking.models.booking import ACTIVE_STATUSES, Booking
from chalet_booking.models.transport import TransportBooking
from chalet_booking.services.pricing_service import transport_price

logger = get_logger(__name__)


async def book_transport(
    db: AsyncSession,
    user_id: int,
    booking_id: int,
    transport_type: str,
    pickup_location: str,
    pickup_time: datetime,
    passengers: int,
    return_time: Optional[datetime] = None,
    special_requests: Optional[str] = None,
) -> TransportBooking:
    """Attach a pending transport request to one of the user's live bookings."""
    pickup_time = ensure_utc(pickup_time)
    return_time = ensure_utc(return_time)
    if return_time is not None and return_time <= pickup_time:
        raise ValidationError("return_time must be after pickup_time")

    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound(f"Booking {booking_id} not found", booking_id=booking_id)
    if booking.user_id != user_id:
        raise NotOwner("Booking does not belong to you", booking_id=booking_id)
    if booking.status not in ACTIVE_STATUSES:
        raise ValidationError(
            f"Transport cannot be added to a {booking.status} booking",
            booking_id=booking_id,
        )

    price = transport_price(transport_type, passengers)

    transport = TransportBooking(
        booking_id=booking.id,
        user_id=user_id,
        transport_type=transport_type,
        pickup_location=pickup_location,
        pickup_time=pickup_time,
        return_time=return_time,
        passengers_count=passengers,
        price=price,
        status="pending",
        special_requests=special_requests,
    )
    db.add(transport)
    await db.flush()
    await db.refresh(transport)

    transport_bookings.labels(transport_type=transport_type).inc()
    logger.info(
        "transport_booked",
        transport_id=transport.id,
        booking_id=booking.id,
        transport_type=transport_type,
        passengers=passengers,
        price=str(price),
    )
    return transport


async def list_user_transport(db: AsyncSession, user_id: int) -> list[TransportBooking]:
    result = await db.execute(
        select(TransportBooking)
        .where(TransportBooking.user_id == user_id)
        .order_by(TransportBooking.created_at.desc(), TransportBooking.id.desc())
    )
    return list(result.scalars().all())
