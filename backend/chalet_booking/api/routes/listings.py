"""
Listing endpoints: owner/admin management, public search with Redis caching,
availability calendar and price quotes.
"""

from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.exceptions import ValidationError
from chalet_booking.core.logging import get_logger
from chalet_booking.core.roles import Actor
from chalet_booking.core.security import get_current_actor, get_optional_actor
from chalet_booking.db.session import get_db
from chalet_booking.schemas.booking import BookingResponse, PriceQuote, QuoteRequest
from chalet_booking.schemas.listing import (
    AvailabilityResponse,
    BookedRange,
    DashboardStats,
    ListingCreate,
    ListingListResponse,
    ListingResponse,
    ListingSearch,
    ListingUpdate,
)
from chalet_booking.services import availability_service, booking_service, listing_service, pricing_service
from chalet_booking.services.cache_service import get_cached_listings, invalidate_listing_cache, set_cached_listings

logger = get_logger(__name__)
router = APIRouter(prefix="/listings", tags=["Listings"])


@router.post("/", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing_endpoint(
    listing_data: ListingCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create a listing. Owners and admins only."""
    listing = await listing_service.create_listing(db, listing_data, actor)
    await invalidate_listing_cache()
    return listing


@router.get("/", response_model=ListingListResponse)
async def list_listings_endpoint(
    search: Annotated[ListingSearch, Query()],
    db: AsyncSession = Depends(get_db),
):
    """
    Search active listings.
    Results are cached in Redis; the cache is invalidated when listings or bookings change.
    """
    query_key = search.cache_key()
    cached = await get_cached_listings(query_key)
    if cached:
        logger.info("listings_cache_hit", page=search.page)
        cached["cached"] = True
        return ListingListResponse(**cached)

    listings, total = await listing_service.list_listings(db, search)

    response_data = {
        "listings": [ListingResponse.model_validate(l).model_dump(mode="json") for l in listings],
        "total": total,
        "page": search.page,
        "page_size": search.page_size,
        "cached": False,
    }
    await set_cached_listings(query_key, response_data)

    return ListingListResponse(**response_data)


@router.get("/manage", response_model=list[ListingResponse])
async def managed_listings_endpoint(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Dashboard: owners see their listings (active or not), admins see all."""
    return await listing_service.list_managed_listings(db, actor)


@router.get("/manage/stats", response_model=DashboardStats)
async def dashboard_stats_endpoint(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.dashboard_stats(db, actor)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing_endpoint(
    listing_id: int,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    return await listing_service.get_listing(db, listing_id, actor)


@router.patch("/{listing_id}", response_model=ListingResponse)
async def update_listing_endpoint(
    listing_id: int,
    listing_data: ListingUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    listing = await listing_service.update_listing(db, listing_id, listing_data, actor)
    await invalidate_listing_cache()
    return listing


@router.post("/{listing_id}/toggle-active", response_model=ListingResponse)
async def toggle_listing_endpoint(
    listing_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Activate or deactivate a listing. Existing bookings are unaffected."""
    listing = await listing_service.set_listing_active(db, listing_id, actor)
    await invalidate_listing_cache()
    return listing


@router.get("/{listing_id}/availability", response_model=AvailabilityResponse)
async def availability_endpoint(
    listing_id: int,
    start: date,
    end: date,
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Booked ranges in [start, end) for calendars, plus an optional yes/no for
    a specific stay. Display only: the answer can be stale by the time a
    booking is attempted.
    """
    await listing_service.get_listing(db, listing_id, actor)
    booked = await availability_service.booked_ranges(db, listing_id, start, end)

    requested_available = None
    if check_in is not None or check_out is not None:
        if check_in is None or check_out is None:
            raise ValidationError("check_in and check_out must be given together")
        requested_available = await availability_service.is_available(db, listing_id, check_in, check_out)

    return AvailabilityResponse(
        listing_id=listing_id,
        start=start,
        end=end,
        booked=[BookedRange(check_in=b.check_in, check_out=b.check_out, status=b.status) for b in booked],
        requested_available=requested_available,
    )


@router.post("/{listing_id}/quote", response_model=PriceQuote)
async def quote_endpoint(
    listing_id: int,
    quote: QuoteRequest,
    actor: Optional[Actor] = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
):
    """Price a prospective stay and report whether the dates are currently free."""
    listing = await listing_service.get_listing(db, listing_id, actor)
    if quote.guests_count > listing.max_capacity:
        raise ValidationError(
            f"Listing {listing.id} accepts at most {listing.max_capacity} guests",
            guests=quote.guests_count,
            max_capacity=listing.max_capacity,
        )
    price = pricing_service.compute_price(listing, quote.check_in, quote.check_out, quote.guests_count)
    available = await availability_service.is_available(db, listing_id, quote.check_in, quote.check_out)
    return PriceQuote(**price.as_dict(), available=available)


@router.get("/{listing_id}/bookings", response_model=list[BookingResponse])
async def listing_bookings_endpoint(
    listing_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Every booking on a listing. Listing owner or admin only."""
    return await booking_service.get_listing_bookings(db, listing_id, actor)
