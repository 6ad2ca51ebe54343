"""
Transportation add-on endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.security import get_current_user_id
from chalet_booking.db.session import get_db
from chalet_booking.schemas.transport import TransportCreate, TransportQuote, TransportResponse, TransportType
from chalet_booking.services.pricing_service import transport_price
from chalet_booking.services.transport_service import book_transport, list_user_transport

router = APIRouter(prefix="/transport", tags=["Transportation"])


@router.get("/quote", response_model=TransportQuote)
async def transport_quote(
    transport_type: TransportType,
    passengers_count: int = Query(1, gt=0, le=100),
):
    """Bus is priced per passenger; private car and minibus are flat."""
    return TransportQuote(
        transport_type=transport_type,
        passengers_count=passengers_count,
        price=transport_price(transport_type, passengers_count),
    )


@router.post("/", response_model=TransportResponse, status_code=status.HTTP_201_CREATED)
async def create_transport(
    transport_data: TransportCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Request transportation for one of your bookings."""
    return await book_transport(
        db,
        user_id=user_id,
        booking_id=transport_data.booking_id,
        transport_type=transport_data.transport_type,
        pickup_location=transport_data.pickup_location,
        pickup_time=transport_data.pickup_time,
        passengers=transport_data.passengers_count,
        return_time=transport_data.return_time,
        special_requests=transport_data.special_requests,
    )


@router.get("/", response_model=list[TransportResponse])
async def list_transport(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await list_user_transport(db, user_id)
