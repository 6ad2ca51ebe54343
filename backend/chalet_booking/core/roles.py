"""
Roles and capability checks.

Roles form a closed set. Call sites ask capability questions
(`can_manage_listing`, `can_cancel_booking`, ...) instead of comparing
role strings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    CUSTOMER = "customer"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        """Accept legacy owner role names (chalet_owner, farm_owner)."""
        if isinstance(value, Role):
            return value
        normalized = value.strip().lower()
        if normalized in ("chalet_owner", "farm_owner"):
            return cls.OWNER
        return cls(normalized)


@dataclass(frozen=True)
class Actor:
    """Authenticated identity handed to services: an opaque (user_id, role) pair."""

    user_id: int
    role: Role = Role.CUSTOMER


def can_create_listing(actor: Actor) -> bool:
    return actor.role in (Role.ADMIN, Role.OWNER)


def can_manage_listing(actor: Actor, listing_owner_id: int) -> bool:
    if actor.role is Role.ADMIN:
        return True
    return actor.role is Role.OWNER and actor.user_id == listing_owner_id


def can_view_all_listings(actor: Actor) -> bool:
    return actor.role is Role.ADMIN


def can_cancel_booking(actor: Actor, booking_user_id: int, listing_owner_id: Optional[int] = None) -> bool:
    if actor.user_id == booking_user_id:
        return True
    if listing_owner_id is None:
        return actor.role is Role.ADMIN
    return can_manage_listing(actor, listing_owner_id)


def can_manage_bookings_of(actor: Actor, listing_owner_id: int) -> bool:
    """Status/payment updates are an owner or admin workflow, never the guest's."""
    return can_manage_listing(actor, listing_owner_id)


def is_support_team(actor: Actor) -> bool:
    return actor.role is Role.ADMIN


def can_assign_roles(actor: Actor) -> bool:
    return actor.role is Role.ADMIN
