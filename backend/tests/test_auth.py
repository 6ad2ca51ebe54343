"""
Tests for authentication endpoints: registration, login, roles.
"""

import pytest
from httpx import AsyncClient
from jose import jwt

from chalet_booking.core.config import get_settings
from chalet_booking.core.roles import Actor, Role, can_cancel_booking, can_manage_listing
from chalet_booking.core.security import hash_password, verify_password


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient):
    """Successful registration returns a customer account."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "new@example.com",
        "username": "newuser",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["username"] == "newuser"
    assert data["role"] == "customer"
    assert "hashed_password" not in data  # Never expose password hash


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, test_user):
    """Duplicate email returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "testuser@example.com",
        "username": "different",
        "password": "securepassword123",
    })
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_duplicate_username(client: AsyncClient, test_user):
    """Duplicate username returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "different@example.com",
        "username": "testuser",
        "password": "securepassword123",
    })
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    """Password under 8 chars returns 422."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "weak@example.com",
        "username": "weakuser",
        "password": "short",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, owner_user):
    """Valid credentials return a JWT carrying the role."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "owneruser@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"

    settings = get_settings()
    claims = jwt.decode(data["access_token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert claims["sub"] == str(owner_user.id)
    assert claims["role"] == "owner"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, test_user):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "testuser@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_nonexistent_email(client: AsyncClient):
    """Non-existent email returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "anypassword123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_rejects_garbage_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_returns_profile(client: AsyncClient, test_user, auth_headers):
    response = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == test_user.id


@pytest.mark.asyncio
async def test_admin_assigns_owner_role(client: AsyncClient, test_user, admin_headers):
    response = await client.put(
        f"/api/v1/auth/users/{test_user.id}/role",
        json={"role": "owner"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["role"] == "owner"


@pytest.mark.asyncio
async def test_customer_cannot_assign_roles(client: AsyncClient, test_user, other_user, auth_headers):
    response = await client.put(
        f"/api/v1/auth/users/{other_user.id}/role",
        json={"role": "admin"},
        headers=auth_headers,
    )
    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "NotAuthorized"


def test_legacy_owner_roles_map_to_owner():
    assert Role.parse("chalet_owner") is Role.OWNER
    assert Role.parse("farm_owner") is Role.OWNER
    assert Role.parse("Admin") is Role.ADMIN
    with pytest.raises(ValueError):
        Role.parse("superuser")


def test_capabilities():
    admin = Actor(user_id=1, role=Role.ADMIN)
    owner = Actor(user_id=2, role=Role.OWNER)
    guest = Actor(user_id=3, role=Role.CUSTOMER)

    assert can_manage_listing(admin, listing_owner_id=2)
    assert can_manage_listing(owner, listing_owner_id=2)
    assert not can_manage_listing(Actor(user_id=9, role=Role.OWNER), listing_owner_id=2)
    assert not can_manage_listing(guest, listing_owner_id=3)

    assert can_cancel_booking(guest, booking_user_id=3, listing_owner_id=2)
    assert can_cancel_booking(owner, booking_user_id=3, listing_owner_id=2)
    assert not can_cancel_booking(Actor(user_id=4), booking_user_id=3, listing_owner_id=2)


def test_long_passwords_hash_and_verify():
    long_password = "p" * 100
    hashed = hash_password(long_password)
    assert verify_password(long_password, hashed)
    assert not verify_password("wrong-password", hashed)
