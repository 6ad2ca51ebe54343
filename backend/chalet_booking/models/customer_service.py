"""
Customer service ledger entry: a discount, cashback or gift attached to a booking.

An entry is created on application and is only *effective* while active and
either applied or not yet past its expiry.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from chalet_booking.core.clock import ensure_utc, utcnow
from chalet_booking.db.base import Base, TimestampMixin

SERVICE_TYPES = ("food_discount", "bus_discount", "cashback", "promotional_gift")
DISCOUNT_TYPES = ("food_discount", "bus_discount")


class CustomerService(Base, TimestampMixin):
    __tablename__ = "customer_services"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_type = Column(String(30), nullable=False)
    service_details = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    applied_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="services")

    __table_args__ = (
        CheckConstraint(
            "service_type IN ('food_discount', 'bus_discount', 'cashback', 'promotional_gift')",
            name="check_service_type",
        ),
    )

    def is_effective(self, now: Optional[datetime] = None) -> bool:
        if not self.is_active:
            return False
        if self.applied_at is not None:
            return True
        expires_at = ensure_utc(self.expires_at)
        return expires_at is None or expires_at > (now or utcnow())

    def __repr__(self) -> str:
        return f"<CustomerService(id={self.id}, booking={self.booking_id}, type={self.service_type})>"
