"""
User model with secure password storage and a role.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String
from sqlalchemy.orm import relationship

from chalet_booking.core.roles import Role
from chalet_booking.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False, default=Role.CUSTOMER.value)
    is_active = Column(Boolean, default=True, nullable=False)

    listings = relationship("Listing", back_populates="owner")
    bookings = relationship("Booking", back_populates="user")

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'owner', 'customer')", name="check_user_role"),
    )

    @property
    def role_enum(self) -> Role:
        return Role.parse(self.role)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
