"""
Transportation add-on attached to a booking.
Price is fixed at booking time from the configured base prices.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from chalet_booking.db.base import Base, TimestampMixin

TRANSPORT_TYPES = ("bus", "private_car", "minibus")
TRANSPORT_STATUSES = ("pending", "confirmed", "cancelled", "completed")


class TransportBooking(Base, TimestampMixin):
    __tablename__ = "transport_bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    transport_type = Column(String(20), nullable=False)
    pickup_location = Column(String(500), nullable=False)
    pickup_time = Column(DateTime(timezone=True), nullable=False)
    return_time = Column(DateTime(timezone=True), nullable=True)
    passengers_count = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    special_requests = Column(Text, nullable=True)

    booking = relationship("Booking", back_populates="transport")

    __table_args__ = (
        CheckConstraint(f"transport_type IN {TRANSPORT_TYPES}", name="check_transport_type"),
        CheckConstraint("passengers_count > 0", name="check_transport_passengers_positive"),
        CheckConstraint("price >= 0", name="check_transport_price_non_negative"),
        CheckConstraint(
            f"status IN {TRANSPORT_STATUSES}",
            name="check_transport_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<TransportBooking(id={self.id}, booking={self.booking_id}, type={self.transport_type})>"
