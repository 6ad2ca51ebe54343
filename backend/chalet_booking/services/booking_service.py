"""
Reservation coordinator: the only code path that creates or releases a
booking's hold on a listing's dates.

CONCURRENCY STRATEGY: Per-listing lock + optimistic version check
==================================================================

Two layers, each sufficient on its own for a single deployment shape:

  1. ListingLock (local asyncio lock or Redis lock) serializes reservation
     commits per listing for the whole check-plus-commit unit, bounded by
     RESERVATION_LOCK_TIMEOUT. Waiting longer fails with Timeout, never hangs.
  2. availability_service.reserve() bumps the listing version conditionally
     inside the transaction. If another writer slipped in (lock degraded,
     another process without the lock), rows_affected == 0 and we roll back
     and retry, re-checking availability each time.

  On PostgreSQL an exclusion constraint is the final safety net; an
  IntegrityError on insert is reported as BookingConflict.

Everything after reserve() (pricing, reference generation, insert, commit)
runs in the same transaction, so any failure rolls the reservation back
with it. No booking exists without its reservation and vice versa.
"""

import secrets
import string
import time
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.config import get_settings
from chalet_booking.core.exceptions import (
    BackendUnavailable,
    BookingConflict,
    BookingNotFound,
    DomainError,
    NotAuthorized,
    NotFound,
    ValidationError,
)
from chalet_booking.core.logging import get_logger
from chalet_booking.core.metrics import (
    booking_cancellations,
    booking_latency,
    db_retries,
    record_booking_attempt,
)
from chalet_booking.core.roles import Actor, can_cancel_booking, can_manage_bookings_of, can_manage_listing
from chalet_booking.models.booking import ACTIVE_STATUSES, Booking
from chalet_booking.models.listing import Listing
from chalet_booking.services import availability_service, ledger_service, pricing_service
from chalet_booking.services.availability_service import Conflict
from chalet_booking.services.interfaces.listing_lock import ListingLock
from chalet_booking.services.strategy_factory import get_listing_lock

logger = get_logger(__name__)
settings = get_settings()

REFERENCE_ALPHABET = string.ascii_letters + string.digits
MAX_REFERENCE_ATTEMPTS = 5

# Workflow transitions driven by owners/admins; cancellation has its own path
STATUS_TRANSITIONS = {
    "pending": {"confirmed"},
    "confirmed": {"completed"},
    "cancelled": set(),
    "completed": set(),
}


def generate_booking_reference() -> str:
    """`FR-` + 8 random alphanumerics: 62**8 (~2.2e14) possibilities."""
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(settings.BOOKING_REFERENCE_LENGTH))
    return f"{settings.BOOKING_REFERENCE_PREFIX}{suffix}"


async def generate_unique_reference(db: AsyncSession) -> str:
    for _ in range(MAX_REFERENCE_ATTEMPTS):
        reference = generate_booking_reference()
        existing = await db.execute(select(Booking.id).where(Booking.booking_reference == reference))
        if existing.scalar_one_or_none() is None:
            return reference
        logger.warning("booking_reference_collision", reference=reference)
    raise BackendUnavailable("Could not allocate a unique booking reference")


async def _load_listing(db: AsyncSession, listing_id: int) -> Listing:
    result = await db.execute(select(Listing).where(Listing.id == listing_id))
    listing = result.scalar_one_or_none()
    if not listing:
        raise NotFound(f"Listing {listing_id} not found", listing_id=listing_id)
    return listing


def _validate_request(listing: Listing, check_in: date, check_out: date, guests: int) -> None:
    if check_out <= check_in:
        raise ValidationError(
            "check_out must be after check_in",
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
        )
    if guests <= 0:
        raise ValidationError("At least one guest is required", guests=guests)
    if guests > listing.max_capacity:
        raise ValidationError(
            f"Listing {listing.id} accepts at most {listing.max_capacity} guests",
            guests=guests,
            max_capacity=listing.max_capacity,
        )
    if not listing.is_active:
        raise ValidationError(f"Listing {listing.id} is not accepting bookings", listing_id=listing.id)


async def create_booking(
    db: AsyncSession,
    listing_id: int,
    user_id: int,
    check_in: date,
    check_out: date,
    guests: int,
    special_requests: Optional[str] = None,
    children_count: int = 0,
    lock: Optional[ListingLock] = None,
) -> Booking:
    """
    Reserve [check_in, check_out) on a listing and persist a pending booking.

    Raises ValidationError / NotFound before touching anything, then
    BookingConflict, OperationTimeout or BackendUnavailable with the
    transaction rolled back.
    """
    started = time.perf_counter()
    try:
        booking = await _create_booking(
            db, listing_id, user_id, check_in, check_out, guests, special_requests, children_count, lock
        )
    except BookingConflict:
        record_booking_attempt("conflict")
        raise
    except (ValidationError, NotFound):
        record_booking_attempt("invalid")
        raise
    except DomainError as e:
        record_booking_attempt("timeout" if e.kind == "Timeout" else "error")
        raise
    finally:
        booking_latency.observe(time.perf_counter() - started)

    record_booking_attempt("success")
    return booking


async def _create_booking(
    db: AsyncSession,
    listing_id: int,
    user_id: int,
    check_in: date,
    check_out: date,
    guests: int,
    special_requests: Optional[str],
    children_count: int,
    lock: Optional[ListingLock],
) -> Booking:
    listing = await _load_listing(db, listing_id)
    _validate_request(listing, check_in, check_out, guests)
    lock = lock or get_listing_lock()

    async with lock.hold(listing_id, settings.RESERVATION_LOCK_TIMEOUT):
        for attempt in range(1, settings.MAX_RETRY_ATTEMPTS + 1):
            try:
                outcome = await availability_service.reserve(db, listing_id, check_in, check_out)

                if isinstance(outcome, Conflict):
                    await db.rollback()
                    if not outcome.stale:
                        raise BookingConflict(
                            f"Listing {listing_id} is already booked for part of "
                            f"{check_in.isoformat()} to {check_out.isoformat()}",
                            conflicting_references=outcome.conflicting_references,
                        )
                    db_retries.inc()
                    logger.info("booking_retry", listing_id=listing_id, attempt=attempt, reason="version_conflict")
                    continue

                # Rollbacks expire loaded rows; re-read what we price against
                listing = await _load_listing(db, listing_id)
                _validate_request(listing, check_in, check_out, guests)
                price = pricing_service.compute_price(listing, check_in, check_out, guests)
                reference = await generate_unique_reference(db)

                booking = Booking(
                    listing_id=listing_id,
                    user_id=user_id,
                    check_in=check_in,
                    check_out=check_out,
                    guests_count=guests,
                    children_count=children_count,
                    total_amount=price.total,
                    discount_amount=price.discount,
                    cashback_amount=price.cashback,
                    status="pending",
                    payment_status="pending",
                    special_requests=special_requests,
                    booking_reference=reference,
                )
                db.add(booking)
                await db.flush()
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                logger.warning("booking_integrity_conflict", listing_id=listing_id, error=str(e.orig))
                raise BookingConflict(
                    f"Listing {listing_id} is already booked for part of "
                    f"{check_in.isoformat()} to {check_out.isoformat()}"
                )
            except DomainError:
                await db.rollback()
                raise
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("booking_persist_failed", listing_id=listing_id, error=str(e))
                raise BackendUnavailable("Booking could not be saved; no reservation was kept")

            try:
                await db.refresh(booking)
            except SQLAlchemyError as e:
                # Committed already: the reservation stands, only the reload failed
                logger.error("booking_reload_failed", reference=reference, error=str(e))
                raise BackendUnavailable(
                    f"Booking {reference} was saved but could not be loaded; look it up by reference",
                    reference=reference,
                )
            logger.info(
                "booking_created",
                booking_id=booking.id,
                reference=booking.booking_reference,
                user_id=user_id,
                listing_id=listing_id,
                check_in=check_in.isoformat(),
                check_out=check_out.isoformat(),
                total=str(booking.total_amount),
                attempt=attempt,
            )
            return booking

    raise BookingConflict("Booking failed due to high demand for this listing. Please try again.")


async def _load_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound(f"Booking {booking_id} not found", booking_id=booking_id)
    return booking


async def _listing_owner_id(db: AsyncSession, listing_id: int) -> Optional[int]:
    result = await db.execute(select(Listing.owner_id).where(Listing.id == listing_id))
    return result.scalar_one_or_none()


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    actor: Actor,
    lock: Optional[ListingLock] = None,
) -> Booking:
    """
    Cancel a booking and release its dates.
    Status change and release commit together under the listing lock.
    """
    booking = await _load_booking(db, booking_id)
    owner_id = await _listing_owner_id(db, booking.listing_id)

    if not can_cancel_booking(actor, booking.user_id, owner_id):
        raise NotAuthorized("Only the guest, the listing owner or an admin may cancel this booking")

    lock = lock or get_listing_lock()
    async with lock.hold(booking.listing_id, settings.RESERVATION_LOCK_TIMEOUT):
        await db.refresh(booking)
        if booking.status == "cancelled":
            raise ValidationError("Booking is already cancelled", booking_id=booking.id)
        if booking.status not in ACTIVE_STATUSES:
            raise ValidationError(f"A {booking.status} booking cannot be cancelled", booking_id=booking.id)

        try:
            booking.status = "cancelled"
            await availability_service.release(db, booking.listing_id)
            await db.flush()
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("booking_cancel_failed", booking_id=booking.id, error=str(e))
            raise BackendUnavailable("Cancellation could not be saved; the booking is unchanged")

    await db.refresh(booking)
    booking_cancellations.inc()
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        reference=booking.booking_reference,
        actor_id=actor.user_id,
        listing_id=booking.listing_id,
    )
    return booking


async def update_booking_status(
    db: AsyncSession,
    booking_id: int,
    actor: Actor,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> Booking:
    """
    Confirmation/completion and payment tracking, driven by the listing's
    owner or an admin. Cancellation goes through cancel_booking().
    """
    booking = await _load_booking(db, booking_id)
    owner_id = await _listing_owner_id(db, booking.listing_id)
    if owner_id is None or not can_manage_bookings_of(actor, owner_id):
        raise NotAuthorized("Only the listing owner or an admin may update booking status")

    if status is not None and status != booking.status:
        if status == "cancelled":
            raise ValidationError("Use the cancellation endpoint to cancel a booking")
        if status not in STATUS_TRANSITIONS.get(booking.status, set()):
            raise ValidationError(
                f"Cannot move a booking from {booking.status} to {status}",
                current=booking.status,
                requested=status,
            )
        booking.status = status

    if payment_status is not None:
        booking.payment_status = payment_status

    await db.flush()
    await db.refresh(booking)
    logger.info(
        "booking_status_updated",
        booking_id=booking.id,
        status=booking.status,
        payment_status=booking.payment_status,
        actor_id=actor.user_id,
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: int, actor: Actor) -> Booking:
    booking = await _load_booking(db, booking_id)
    if booking.user_id != actor.user_id:
        owner_id = await _listing_owner_id(db, booking.listing_id)
        if owner_id is None or not can_manage_listing(actor, owner_id):
            # Do not leak existence of other users' bookings
            raise BookingNotFound(f"Booking {booking_id} not found", booking_id=booking_id)
    return booking


async def get_booking_by_reference(db: AsyncSession, reference: str) -> Booking:
    result = await db.execute(select(Booking).where(Booking.booking_reference == reference))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound(f"Booking {reference} not found", booking_reference=reference)
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def get_listing_bookings(db: AsyncSession, listing_id: int, actor: Actor) -> list[Booking]:
    """Owner/admin view of every booking on a listing."""
    owner_id = await _listing_owner_id(db, listing_id)
    if owner_id is None:
        raise NotFound(f"Listing {listing_id} not found", listing_id=listing_id)
    if not can_manage_listing(actor, owner_id):
        raise NotAuthorized("Only the listing owner or an admin may view its bookings")
    result = await db.execute(
        select(Booking).where(Booking.listing_id == listing_id).order_by(Booking.check_in.asc())
    )
    return list(result.scalars().all())


async def quote_booking(db: AsyncSession, booking_id: int, actor: Actor) -> pricing_service.PriceBreakdown:
    """Re-price an existing booking with the ledger entries currently in effect."""
    booking = await get_booking(db, booking_id, actor)
    listing = await _load_listing(db, booking.listing_id)
    services = await ledger_service.effective_services(db, booking.id)
    return pricing_service.compute_price(
        listing, booking.check_in, booking.check_out, booking.guests_count, services
    )
