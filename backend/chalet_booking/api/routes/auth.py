"""
Authentication endpoints: register, login, current user, role assignment.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from chalet_booking.core.roles import Actor
from chalet_booking.core.security import get_current_actor
from chalet_booking.db.session import get_db
from chalet_booking.schemas.user import RoleUpdate, Token, UserCreate, UserLogin, UserResponse
from chalet_booking.services.auth_service import assign_role, authenticate_user, get_user, register_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new customer account."""
    user = await register_user(db, user_data)
    return user


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    token = await authenticate_user(db, login_data)
    return Token(access_token=token)


@router.get("/me", response_model=UserResponse)
async def me(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    return await get_user(db, actor.user_id)


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def set_role(
    user_id: int,
    role_data: RoleUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Assign a role (admin only). The user must log in again for it to apply."""
    return await assign_role(db, user_id, role_data.role, actor)
