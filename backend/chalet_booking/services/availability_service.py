"""
Availability index: which date ranges of a listing are taken.

CONCURRENCY STRATEGY: Derived availability + conditional version bump
=====================================================================

Problem:
  Two guests request overlapping stays on the same chalet at the same time.
  Both check availability, both see the dates free, both insert a booking.
  Result: Double booking.

Solution:
  Availability is not stored; it is the set of pending/confirmed bookings.
  The `version` column on the listing acts as the availability generation.

  1. Read the listing's current version
  2. UPDATE listings SET version = version + 1
     WHERE id = :listing_id AND version = :current_version
  3. If rows_affected == 0, another writer committed in between -> Conflict(stale)
  4. Otherwise look for overlapping active bookings -> Conflict or Reserved

  The caller inserts the booking in the same transaction and commits. On
  PostgreSQL step 2 takes the listing row lock, so a concurrent writer
  blocks until we commit, then fails its version check and re-reads. Any
  rollback undoes the bump, which is how a reservation is released.

Ranges are half-open: [check_in, check_out). Two ranges conflict iff
a.check_in < b.check_out AND b.check_in < a.check_out.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.exceptions import NotFound, ValidationError
from chalet_booking.core.logging import get_logger
from chalet_booking.models.booking import ACTIVE_STATUSES, Booking
from chalet_booking.models.listing import Listing

logger = get_logger(__name__)


@dataclass(frozen=True)
class Reserved:
    """Token proving the range was free at `version`; valid until the transaction ends."""

    listing_id: int
    check_in: date
    check_out: date
    version: int


@dataclass(frozen=True)
class Conflict:
    listing_id: int
    check_in: date
    check_out: date
    conflicting_references: list[str] = field(default_factory=list)
    stale: bool = False


ReservationResult = Union[Reserved, Conflict]


def ranges_overlap(a_in: date, a_out: date, b_in: date, b_out: date) -> bool:
    return a_in < b_out and b_in < a_out


def _validate_range(check_in: date, check_out: date) -> None:
    if check_out <= check_in:
        raise ValidationError(
            "check_out must be after check_in",
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
        )


def _overlap_query(listing_id: int, check_in: date, check_out: date, exclude_booking_id: Optional[int] = None):
    query = select(Booking).where(
        Booking.listing_id == listing_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.check_in < check_out,
        Booking.check_out > check_in,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    return query.order_by(Booking.check_in.asc())


async def find_conflicts(
    db: AsyncSession,
    listing_id: int,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[int] = None,
) -> list[Booking]:
    """Active bookings on `listing_id` overlapping [check_in, check_out)."""
    _validate_range(check_in, check_out)
    result = await db.execute(_overlap_query(listing_id, check_in, check_out, exclude_booking_id))
    return list(result.scalars().all())


async def is_available(db: AsyncSession, listing_id: int, check_in: date, check_out: date) -> bool:
    return not await find_conflicts(db, listing_id, check_in, check_out)


async def booked_ranges(db: AsyncSession, listing_id: int, start: date, end: date) -> list[Booking]:
    """Committed ranges intersecting [start, end), for calendars. May be served stale."""
    _validate_range(start, end)
    result = await db.execute(_overlap_query(listing_id, start, end))
    return list(result.scalars().all())


async def _current_version(db: AsyncSession, listing_id: int) -> int:
    # Column select bypasses the identity map, so this is always a fresh read
    result = await db.execute(select(Listing.version).where(Listing.id == listing_id))
    version = result.scalar_one_or_none()
    if version is None:
        raise NotFound(f"Listing {listing_id} not found", listing_id=listing_id)
    return version


async def _bump_version(db: AsyncSession, listing_id: int, expected_version: int) -> bool:
    result = await db.execute(
        update(Listing)
        .where(Listing.id == listing_id, Listing.version == expected_version)
        .values(version=Listing.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reserve(db: AsyncSession, listing_id: int, check_in: date, check_out: date) -> ReservationResult:
    """
    Atomic insert-if-available, first half.

    Must run inside the caller's transaction, which then inserts the booking
    and commits. Returns Conflict without side effects worth keeping: the
    caller is expected to roll back on any Conflict.
    """
    _validate_range(check_in, check_out)

    version = await _current_version(db, listing_id)
    if not await _bump_version(db, listing_id, version):
        logger.info("reservation_stale", listing_id=listing_id, version=version)
        return Conflict(listing_id, check_in, check_out, stale=True)

    conflicts = await find_conflicts(db, listing_id, check_in, check_out)
    if conflicts:
        references = [b.booking_reference for b in conflicts]
        logger.info(
            "reservation_conflict",
            listing_id=listing_id,
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
            conflicting=references,
        )
        return Conflict(listing_id, check_in, check_out, conflicting_references=references)

    return Reserved(listing_id, check_in, check_out, version + 1)


async def release(db: AsyncSession, listing_id: int) -> None:
    """
    Record that a range left the active set (cancellation).
    Bumps the generation so an in-flight reservation that read the old one retries.
    """
    await db.execute(
        update(Listing)
        .where(Listing.id == listing_id)
        .values(version=Listing.version + 1)
        .execution_options(synchronize_session=False)
    )
