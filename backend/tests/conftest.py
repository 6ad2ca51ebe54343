"""
Pytest fixtures for test database, client, and authentication.

Each test gets a fresh SQLite file database (or TEST_DATABASE_URL), so
concurrent reservation tests can open several independent sessions.
Redis is disabled; caching is a no-op and locks are in-process.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["REDIS_ENABLED"] = "false"
os.environ["LOCK_STRATEGY"] = "local"
os.environ["MESSAGE_FEED"] = "memory"

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from chalet_booking.core.roles import Role
from chalet_booking.core.security import create_access_token, hash_password
from chalet_booking.db.base import Base
from chalet_booking.db.session import get_db
from chalet_booking.main import app
from chalet_booking.models import Booking, Listing, User
from chalet_booking.services.interfaces.local_lock import LocalListingLock
from chalet_booking.services.strategy_factory import close_strategies


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def session_factory(database_url: str) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables, hand out a session factory, then drop tables for isolation."""
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    await close_strategies()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session, like get_db."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def listing_lock() -> LocalListingLock:
    return LocalListingLock()


async def _make_user(db: AsyncSession, username: str, role: Role) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        hashed_password=hash_password("testpassword123"),
        role=role.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A customer."""
    return await _make_user(db_session, "testuser", Role.CUSTOMER)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "otheruser", Role.CUSTOMER)


@pytest_asyncio.fixture
async def owner_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "owneruser", Role.OWNER)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "adminuser", Role.ADMIN)


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token for the customer."""
    return headers_for(test_user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest.fixture
def owner_headers(owner_user: User) -> dict:
    return headers_for(owner_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def test_listing(db_session: AsyncSession, owner_user: User) -> Listing:
    """An active family chalet at 50/day for up to 6 guests."""
    listing = Listing(
        owner_id=owner_user.id,
        name="Olive Grove Chalet",
        description="Quiet chalet with a pool",
        governorate="Amman",
        address="Dead Sea Road 12",
        category="family",
        price_per_day=Decimal("50.00"),
        max_capacity=6,
        features=["wifi", "bbq"],
        images=[],
        has_pool=True,
        pool_sanitized=True,
        cleanliness_rating=Decimal("4.5"),
        is_active=True,
    )
    db_session.add(listing)
    await db_session.commit()
    await db_session.refresh(listing)
    return listing


@pytest_asyncio.fixture
async def inactive_listing(db_session: AsyncSession, owner_user: User) -> Listing:
    listing = Listing(
        owner_id=owner_user.id,
        name="Closed Farm",
        governorate="Irbid",
        address="North Road 3",
        category="youth",
        price_per_day=Decimal("80.00"),
        max_capacity=10,
        features=[],
        images=[],
        is_active=False,
    )
    db_session.add(listing)
    await db_session.commit()
    await db_session.refresh(listing)
    return listing


@pytest_asyncio.fixture
async def test_booking(db_session: AsyncSession, test_user: User, test_listing: Listing) -> Booking:
    """A pending 3-night booking (2025-06-01 to 2025-06-04) worth 150."""
    booking = Booking(
        listing_id=test_listing.id,
        user_id=test_user.id,
        check_in=date(2025, 6, 1),
        check_out=date(2025, 6, 4),
        guests_count=2,
        children_count=0,
        total_amount=Decimal("150.00"),
        discount_amount=Decimal("0.00"),
        cashback_amount=Decimal("0.00"),
        status="pending",
        payment_status="pending",
        booking_reference="FR-Test0001",
    )
    db_session.add(booking)
    await db_session.commit()
    await db_session.refresh(booking)
    return booking
