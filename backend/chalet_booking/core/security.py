"""
Password hashing and JWT access tokens.

Tokens carry the user id (`sub`) and role; the role claim is what services
receive as part of the Actor, so a role change takes effect on next login.
"""

from datetime import timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from chalet_booking.core.clock import utcnow
from chalet_booking.core.config import get_settings
from chalet_booking.core.logging import bind_actor
from chalet_booking.core.roles import Actor, Role

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_actor(token: str) -> Actor:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise _credentials_exception()
        return Actor(user_id=int(subject), role=Role.parse(payload.get("role", Role.CUSTOMER)))
    except (JWTError, ValueError):
        raise _credentials_exception()


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _credentials_exception()
    actor = decode_actor(credentials.credentials)
    bind_actor(actor.user_id, actor.role.value)
    return actor


async def get_current_user_id(actor: Actor = Depends(get_current_actor)) -> int:
    return actor.user_id


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Actor]:
    """Anonymous browsing is allowed; a bad token is still rejected."""
    if credentials is None:
        return None
    return decode_actor(credentials.credentials)
