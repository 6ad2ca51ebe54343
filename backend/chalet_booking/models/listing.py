"""
Listing model: a rentable chalet or farm.

Key design decisions:
- `version` is the availability generation. Every committed reservation or
  release bumps it with a conditional UPDATE, so two writers that read the
  same generation cannot both commit (optimistic locking).
- Features, images and coordinates are JSON so they round-trip unchanged
  between SQLite and PostgreSQL.
- Index on (is_active, category) for the public search page.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from chalet_booking.db.base import Base, TimestampMixin

LISTING_CATEGORIES = ("youth", "family")


class Listing(Base, TimestampMixin):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    governorate = Column(String(100), nullable=False)
    address = Column(String(500), nullable=False)
    coordinates = Column(JSON, nullable=True)
    category = Column(String(20), nullable=False)
    price_per_day = Column(Numeric(10, 2), nullable=False)
    max_capacity = Column(Integer, nullable=False)
    features = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)
    has_pool = Column(Boolean, nullable=False, default=False)
    pool_sanitized = Column(Boolean, nullable=False, default=False)
    cleanliness_rating = Column(Numeric(2, 1), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    owner = relationship("User", back_populates="listings")
    bookings = relationship("Booking", back_populates="listing")

    __table_args__ = (
        CheckConstraint(f"category IN {LISTING_CATEGORIES}", name="check_listing_category"),
        CheckConstraint("price_per_day >= 0", name="check_listing_price_non_negative"),
        CheckConstraint("max_capacity > 0", name="check_listing_capacity_positive"),
        CheckConstraint(
            "cleanliness_rating >= 0 AND cleanliness_rating <= 5",
            name="check_listing_cleanliness_range",
        ),
        Index("ix_listings_active_category", "is_active", "category"),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, name={self.name}, active={self.is_active}, v={self.version})>"
