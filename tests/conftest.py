"""
Test fixtures for the storefront test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory / db_session: Fresh in-memory SQLite database
  - email_relay: A recording fake of the email relay (no network)
  - pending_store: A fresh pending-registration store per test
  - client: Async HTTP test client (unauthenticated) with all of the above
    injected through FastAPI dependency overrides
  - make_user: Factory that inserts a principal directly into the database
  - user_client / admin_client: Clients logged in through the real login
    endpoints

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) gives every test an isolated DB.
  - The get_db override mirrors production: domain errors still commit, so
    failed-login audit entries and lockout counters are observable.
  - Principals are seeded directly (as an operator would), which lets tests
    set standing flags like is_verified, active, or lock_until.
"""

import os
import re
from datetime import timedelta

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("EMAIL_BACKEND", "console")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from storefront.database import Base, get_db
from storefront.exceptions import StorefrontAPIError
from storefront.mailer import EmailRelay, get_email_relay
from storefront.main import app
from storefront.models.user import Role, User
from storefront.security import hash_password
from storefront.services.pending_registrations import (
    PendingRegistrationStore,
    get_pending_registrations,
)


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

USER_PASSWORD = "Sh0pper!Key"
ADMIN_PASSWORD = "Adm1n#Panel"

OTP_PATTERN = re.compile(r"<b>(\d{6})</b>")


class FakeEmailRelay(EmailRelay):
    """Records every message instead of sending it. Set fail=True to refuse."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to_address, "subject": subject, "html": html_body})
        return True

    def last_code(self, to_address: str) -> str:
        """The OTP from the most recent message to to_address."""
        for message in reversed(self.sent):
            if message["to"] == to_address:
                return OTP_PATTERN.search(message["html"]).group(1)
        raise AssertionError(f"No email sent to {to_address}")


def wrong_code(code: str) -> str:
    """A different 6-digit code."""
    return f"{(int(code) + 1) % 1_000_000:06d}"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_relay():
    return FakeEmailRelay()


@pytest.fixture
def pending_store():
    return PendingRegistrationStore(ttl=timedelta(minutes=10))


@pytest_asyncio.fixture
async def client(session_factory, email_relay, pending_store):
    """
    Async HTTP test client with the test database, fake relay, and a fresh
    pending-registration store injected.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except StorefrontAPIError:
                await session.commit()
                raise
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_relay] = lambda: email_relay
    app.dependency_overrides[get_pending_registrations] = lambda: pending_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """
    Insert a principal directly and return it.

    Defaults give a verified, active shopper; override any column by keyword.
    """

    async def _make_user(
        email: str = "shopper@example.com",
        password: str = USER_PASSWORD,
        **fields,
    ) -> User:
        user = User(
            email=email,
            name="Test Shopper",
            phone="+1-555-000-1111",
            role=Role.USER,
            is_verified=True,
            active=True,
        )
        user.set_password_hash(hash_password(password))
        for column, value in fields.items():
            setattr(user, column, value)
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest.fixture
def load_user(session_factory):
    """Re-read a principal from the database in a fresh session."""

    async def _load_user(email: str) -> User | None:
        async with session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    return _load_user


@pytest_asyncio.fixture
async def user_client(client, make_user):
    """Test client logged in as a verified shopper through POST /api/auth/login."""
    await make_user(email="shopper@example.com")
    response = await client.post(
        "/api/auth/login",
        json={"email": "shopper@example.com", "password": USER_PASSWORD},
    )
    assert response.status_code == 200, f"Login failed: {response.text}"
    client.headers["Authorization"] = f"Bearer {response.json()['token']}"
    return client


@pytest_asyncio.fixture
async def admin_client(client, make_user):
    """Test client logged in as an admin through POST /api/admin/login."""
    await make_user(email="admin@example.com", password=ADMIN_PASSWORD, name="Admin", role=Role.ADMIN)
    response = await client.post(
        "/api/admin/login",
        json={"email": "admin@example.com", "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200, f"Admin login failed: {response.text}"
    client.headers["Authorization"] = f"Bearer {response.json()['token']}"
    return client
