"""
Test fixtures for the Vouchify API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - client: Async HTTP test client (unauthenticated)
  - seller_client / buyer_client / second_buyer_client: MEMBER users, each
    with their own client and JWT, so a test can act as several users
  - admin_client: An ADMIN user
  - live_voucher: Factory that lists a voucher and has the admin approve it

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) on a StaticPool, so every
    session in a test sees the same database. All sessions share one
    connection, so transaction isolation between requests is not tested.
  - get_db is overridden with the same commit/rollback policy as
    production (commit on domain errors, roll back on anything else).
  - Users are created through the real signup endpoint. Admins are then
    promoted directly in the database, the way an operator provisions them.
"""

import os
import uuid

# Settings are read at import time, so the environment must be ready first
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["SCRATCH_CODE_KEY"] = "5f3c9a1be27d48c6a0f1e2d3c4b5a6978877665544332211aabbccddeeff0011"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from vouchify.database import Base, get_db
from vouchify.exceptions import VouchifyError
from vouchify.main import app
from vouchify.models.user import User, UserRole
from tests.helpers import future, make_code


TEST_DATABASE_URL = "sqlite+aiosqlite://"
BASE_URL = "http://test"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    # One shared connection: a session closing must not roll back another one's work
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        pool_reset_on_return=None,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    Overrides get_db so all requests hit the in-memory test database.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except VouchifyError:
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def user_factory(client, session_factory):
    """
    Factory that signs up a user and returns a client authenticated as them.

    The returned client carries a `user_id` attribute for convenience.
    """
    opened: list[AsyncClient] = []

    async def create(email: str, display_name: str, admin: bool = False) -> AsyncClient:
        password = "SecurePass123!"
        response = await client.post(
            "/auth/signup",
            json={"email": email, "password": password, "display_name": display_name},
        )
        assert response.status_code == 201, f"Signup failed: {response.text}"
        user_id = uuid.UUID(response.json()["user_id"])
        token = response.json()["token"]

        if admin:
            async with session_factory() as session:
                await session.execute(
                    update(User).where(User.id == user_id).values(role=UserRole.ADMIN)
                )
                await session.commit()

        user_client = AsyncClient(
            transport=ASGITransport(app=app),
            base_url=BASE_URL,
            headers={"Authorization": f"Bearer {token}"},
        )
        user_client.user_id = user_id
        opened.append(user_client)
        return user_client

    yield create

    for opened_client in opened:
        await opened_client.aclose()


@pytest_asyncio.fixture
async def seller_client(user_factory):
    return await user_factory("seller@example.com", "Sam Seller")


@pytest_asyncio.fixture
async def buyer_client(user_factory):
    return await user_factory("buyer@example.com", "Bea Buyer")


@pytest_asyncio.fixture
async def second_buyer_client(user_factory):
    return await user_factory("buyer2@example.com", "Ben Buyer")


@pytest_asyncio.fixture
async def admin_client(user_factory):
    return await user_factory("admin@example.com", "Ada Admin", admin=True)


@pytest_asyncio.fixture
async def live_voucher(seller_client, admin_client):
    """
    Factory that lists a voucher as the seller and approves it as the admin.

    Returns (voucher_json, plaintext_code).
    """

    async def create(**overrides) -> tuple[dict, str]:
        code = overrides.pop("scratch_code", None) or make_code()
        body = {
            "title": "Zomato Gift Card ₹500",
            "description": "Unused Zomato gift card",
            "category": "zomato",
            "original_price_cents": 50000,
            "listed_price_cents": 45000,
            "quantity": 5,
            "limit_per_user": 1,
            "expiry_date": future(),
            "scratch_code": code,
            "publish": True,
        }
        body.update(overrides)

        response = await seller_client.post("/vouchers", json=body)
        assert response.status_code == 201, response.text
        voucher_id = response.json()["id"]

        response = await admin_client.patch(
            f"/admin/vouchers/{voucher_id}/verify", json={"action": "approve"}
        )
        assert response.status_code == 200, response.text
        return response.json(), code

    return create
