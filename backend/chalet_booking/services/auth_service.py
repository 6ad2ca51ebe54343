"""
Accounts: self-service customer registration, login, admin role changes.

Emails are compared case-insensitively and stored lower-cased. New
accounts are always customers; owners and admins are promoted by an admin.
"""

from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.exceptions import NotAuthorized, NotFound
from chalet_booking.core.logging import get_logger
from chalet_booking.core.roles import Actor, Role, can_assign_roles
from chalet_booking.core.security import create_access_token, hash_password, verify_password
from chalet_booking.models.user import User
from chalet_booking.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)

_INVALID_LOGIN = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid email or password",
    headers={"WWW-Authenticate": "Bearer"},
)


async def _find_user(db: AsyncSession, column: Any, value: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(column) == value.lower()))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """Create a customer account. 409 when the email or username is taken."""
    email = user_data.email.lower()
    for field, column, value in (("email", User.email, email), ("username", User.username, user_data.username)):
        if await _find_user(db, column, value):
            logger.warning("registration_rejected", reason=f"{field}_taken")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{field.capitalize()} already registered",
            )

    user = User(
        email=email,
        username=user_data.username,
        hashed_password=hash_password(user_data.password),
        full_name=user_data.full_name,
        phone=user_data.phone,
        role=Role.CUSTOMER.value,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """Exchange credentials for an access token whose claims carry the role."""
    user = await _find_user(db, User.email, login_data.email)
    if user is None or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_rejected")
        raise _INVALID_LOGIN
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    role = user.role_enum
    logger.info("user_logged_in", user_id=user.id, role=role.value)
    return create_access_token(data={"sub": str(user.id), "role": role.value})


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found", user_id=user_id)
    return user


async def assign_role(db: AsyncSession, user_id: int, role: Role, actor: Actor) -> User:
    """Admin only. The new role reaches the user's token at next login."""
    if not can_assign_roles(actor):
        raise NotAuthorized("Only admins can assign roles")

    user = await get_user(db, user_id)
    previous = user.role
    user.role = role.value
    await db.flush()

    logger.info("user_role_assigned", user_id=user.id, previous=previous, role=role.value)
    return user
