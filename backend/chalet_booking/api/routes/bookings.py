"""
Booking endpoints with concurrency-safe date reservation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.logging import get_logger
from chalet_booking.core.roles import Actor
from chalet_booking.core.security import get_current_actor, get_current_user_id
from chalet_booking.db.session import get_db
from chalet_booking.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    PriceQuote,
)
from chalet_booking.services.booking_service import (
    cancel_booking,
    create_booking,
    get_booking,
    get_booking_by_reference,
    get_user_bookings,
    quote_booking,
    update_booking_status,
)
from chalet_booking.services.cache_service import invalidate_listing_cache

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve a listing for [check_in, check_out).

    Overlapping requests for the same listing are serialized; exactly one
    wins and the others get 409 BookingConflict. A request that cannot get
    the listing lock in time gets 503 Timeout.
    """
    booking = await create_booking(
        db,
        listing_id=booking_data.listing_id,
        user_id=user_id,
        check_in=booking_data.check_in,
        check_out=booking_data.check_out,
        guests=booking_data.guests_count,
        special_requests=booking_data.special_requests,
        children_count=booking_data.children_count,
    )
    # Date-filtered searches changed
    await invalidate_listing_cache()
    return booking


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await get_user_bookings(db, user_id)


@router.get("/reference/{reference}", response_model=BookingResponse)
async def get_booking_by_reference_endpoint(
    reference: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_by_reference(db, reference)
    return await get_booking(db, booking.id, actor)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking(db, booking_id, actor)


@router.get("/{booking_id}/quote", response_model=PriceQuote)
async def quote_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Current price of a booking including discounts and cashback in effect."""
    price = await quote_booking(db, booking_id, actor)
    return PriceQuote(**price.as_dict())


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its dates."""
    booking = await cancel_booking(db, booking_id, actor)
    await invalidate_listing_cache()
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        status=booking.status,
    )


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status_endpoint(
    booking_id: int,
    update: BookingStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Confirm/complete a booking or record payment. Listing owner or admin only."""
    return await update_booking_status(
        db, booking_id, actor, status=update.status, payment_status=update.payment_status
    )
