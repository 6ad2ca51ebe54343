"""
Listing management (owners and admins) and public search.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.exceptions import NotAuthorized, NotFound
from chalet_booking.core.logging import get_logger
from chalet_booking.core.roles import Actor, can_create_listing, can_manage_listing, can_view_all_listings
from chalet_booking.models.booking import ACTIVE_STATUSES, Booking
from chalet_booking.models.listing import Listing
from chalet_booking.schemas.listing import ListingCreate, ListingSearch, ListingUpdate
from chalet_booking.services.pricing_service import quantize_money

logger = get_logger(__name__)


async def create_listing(db: AsyncSession, listing_data: ListingCreate, actor: Actor) -> Listing:
    """Create a listing owned by the caller. Owners and admins only."""
    if not can_create_listing(actor):
        raise NotAuthorized("Only owners and admins can create listings")

    values = listing_data.model_dump()
    listing = Listing(owner_id=actor.user_id, **values)
    db.add(listing)
    await db.flush()
    await db.refresh(listing)

    logger.info("listing_created", listing_id=listing.id, owner_id=actor.user_id, name=listing.name)
    return listing


async def get_listing(db: AsyncSession, listing_id: int, actor: Optional[Actor] = None) -> Listing:
    """Active listings are public; inactive ones only to whoever manages them."""
    result = await db.execute(select(Listing).where(Listing.id == listing_id))
    listing = result.scalar_one_or_none()

    if not listing or (
        not listing.is_active and (actor is None or not can_manage_listing(actor, listing.owner_id))
    ):
        raise NotFound(f"Listing {listing_id} not found", listing_id=listing_id)
    return listing


async def _managed_listing(db: AsyncSession, listing_id: int, actor: Actor) -> Listing:
    result = await db.execute(select(Listing).where(Listing.id == listing_id))
    listing = result.scalar_one_or_none()
    if not listing:
        raise NotFound(f"Listing {listing_id} not found", listing_id=listing_id)
    if not can_manage_listing(actor, listing.owner_id):
        raise NotAuthorized("You do not manage this listing")
    return listing


async def update_listing(db: AsyncSession, listing_id: int, listing_data: ListingUpdate, actor: Actor) -> Listing:
    listing = await _managed_listing(db, listing_id, actor)

    changes = listing_data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(listing, field, value)
    await db.flush()
    await db.refresh(listing)

    logger.info("listing_updated", listing_id=listing.id, fields=sorted(changes))
    return listing


async def set_listing_active(db: AsyncSession, listing_id: int, actor: Actor, is_active: Optional[bool] = None) -> Listing:
    """Activate/deactivate; toggles when `is_active` is omitted. Existing bookings are kept."""
    listing = await _managed_listing(db, listing_id, actor)
    listing.is_active = (not listing.is_active) if is_active is None else is_active
    await db.flush()
    await db.refresh(listing)

    logger.info("listing_status_changed", listing_id=listing.id, is_active=listing.is_active)
    return listing


async def list_listings(db: AsyncSession, search: ListingSearch) -> tuple[list[Listing], int]:
    """
    Public search over active listings.
    Uses ix_listings_active_category for the common category filter.
    """
    query = select(Listing).where(Listing.is_active.is_(True))

    if search.category:
        query = query.where(Listing.category == search.category)
    if search.governorate:
        query = query.where(func.lower(Listing.governorate) == search.governorate.lower())
    if search.max_price is not None:
        query = query.where(Listing.price_per_day <= search.max_price)
    if search.guests is not None:
        query = query.where(Listing.max_capacity >= search.guests)
    if search.check_in and search.check_out:
        taken = exists().where(
            Booking.listing_id == Listing.id,
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.check_in < search.check_out,
            Booking.check_out > search.check_in,
        )
        query = query.where(~taken)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    listings_query = (
        query
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .offset((search.page - 1) * search.page_size)
        .limit(search.page_size)
    )
    result = await db.execute(listings_query)
    return list(result.scalars().all()), total


async def list_managed_listings(db: AsyncSession, actor: Actor) -> list[Listing]:
    """Dashboard view: owners see their own listings, admins see all."""
    query = select(Listing)
    if not can_view_all_listings(actor):
        if not can_create_listing(actor):
            raise NotAuthorized("Only owners and admins have a listings dashboard")
        query = query.where(Listing.owner_id == actor.user_id)
    result = await db.execute(query.order_by(Listing.created_at.desc(), Listing.id.desc()))
    return list(result.scalars().all())


async def dashboard_stats(db: AsyncSession, actor: Actor) -> dict:
    listings = await list_managed_listings(db, actor)
    total = len(listings)
    average = (
        quantize_money(sum((Decimal(str(l.price_per_day)) for l in listings), Decimal("0")) / total)
        if total
        else Decimal("0.00")
    )
    return {
        "total_listings": total,
        "active_listings": sum(1 for l in listings if l.is_active),
        "average_price_per_day": average,
    }
