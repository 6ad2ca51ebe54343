"""
Customer service ledger endpoints: discounts, cashback, promotional gifts.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.exceptions import NotAuthorized
from chalet_booking.core.roles import Actor, is_support_team
from chalet_booking.core.security import get_current_actor, get_current_user_id
from chalet_booking.db.session import get_db
from chalet_booking.schemas.service import ExpireResponse, ServiceApply, ServiceApproval, ServiceResponse
from chalet_booking.services.booking_service import get_booking_by_reference
from chalet_booking.services.ledger_service import (
    apply_service,
    expire_stale_services,
    list_user_services,
    mark_applied,
)

router = APIRouter(prefix="/services", tags=["Customer Services"])


@router.post("/", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def apply_for_service(
    application: ServiceApply,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Apply for a service on one of your bookings, identified by its reference.
    The entry expires after 30 days unless support applies it.
    """
    booking = await get_booking_by_reference(db, application.booking_reference)
    details = {"amount": application.amount, "note": application.note}
    return await apply_service(
        db,
        booking_id=booking.id,
        user_id=user_id,
        service_type=application.service_type,
        details={k: v for k, v in details.items() if v is not None},
    )


@router.get("/", response_model=list[ServiceResponse])
async def my_services(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await list_user_services(db, user_id)


@router.post("/expire", response_model=ExpireResponse)
async def expire_services(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate unapplied services past their expiry. Support team only."""
    if not is_support_team(actor):
        raise NotAuthorized("Only the support team may expire services")
    return ExpireResponse(expired=await expire_stale_services(db))


@router.post("/{service_id}/apply", response_model=ServiceResponse)
async def apply_service_endpoint(
    service_id: int,
    approval: Optional[ServiceApproval] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Record that support honoured a service, setting the rate for discounts."""
    percentage = approval.discount_percentage if approval else None
    return await mark_applied(db, service_id, actor, discount_percentage=percentage)
