"""
Booking model: a user's reservation of a listing for [check_in, check_out).

Key design decisions:
- Availability is not stored anywhere else; it is the set of pending and
  confirmed bookings per listing. Cancelling is a status change, never a delete.
- Composite index (listing_id, check_in, check_out) serves the overlap query.
- The no-overlap rule is enforced by the reservation coordinator; on
  PostgreSQL the migration also installs an exclusion constraint.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from chalet_booking.db.base import Base, TimestampMixin

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")
PAYMENT_STATUSES = ("pending", "paid", "partial", "refunded")

# Statuses that hold a date range on the listing
ACTIVE_STATUSES = ("pending", "confirmed")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests_count = Column(Integer, nullable=False)
    children_count = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    cashback_amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending")
    payment_status = Column(String(20), nullable=False, default="pending")
    special_requests = Column(Text, nullable=True)
    booking_reference = Column(String(20), nullable=False, unique=True, index=True)

    listing = relationship("Listing", back_populates="bookings")
    user = relationship("User", back_populates="bookings")
    services = relationship("CustomerService", back_populates="booking")
    transport = relationship("TransportBooking", back_populates="booking")

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="check_booking_dates_ordered"),
        CheckConstraint("guests_count > 0", name="check_booking_guests_positive"),
        CheckConstraint("children_count >= 0", name="check_booking_children_non_negative"),
        CheckConstraint(
            "total_amount >= 0 AND discount_amount >= 0 AND cashback_amount >= 0",
            name="check_booking_amounts_non_negative",
        ),
        CheckConstraint(
            f"status IN {BOOKING_STATUSES}",
            name="check_booking_status",
        ),
        CheckConstraint(
            f"payment_status IN {PAYMENT_STATUSES}",
            name="check_booking_payment_status",
        ),
        Index("ix_bookings_listing_dates", "listing_id", "check_in", "check_out"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(ref={self.booking_reference}, listing={self.listing_id}, "
            f"{self.check_in}->{self.check_out}, status={self.status})>"
        )
