"""Pytest configuration and fixtures for backend tests.

Tests run against an in-memory SQLite database shared through a StaticPool,
so the test session and the application's own sessions see the same data.
Fixtures commit what they create for the same reason.
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
TEST_JWT_SECRET = "test-secret-" + "0" * 52  # 64 chars
os.environ["JWT_SECRET_KEY"] = TEST_JWT_SECRET
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REVOCATION_BACKEND"] = "memory"

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Test credentials
TEST_USER_USERNAME = "alice"
TEST_USER_EMAIL = "alice@example.com"
TEST_USER_PASSWORD = "wonderland42"
TEST_ADMIN_USERNAME = "admin"
TEST_ADMIN_EMAIL = "admin@example.com"
TEST_ADMIN_PASSWORD = "adminpassword123"

TEST_TOKEN_TTL_MS = 60 * 60 * 1000


# --- Rate Limiter Reset Fixture ---


def _reset_login_rate_limiter_state():
    """Clear failed-login tracking kept in a module-level dict."""
    from linkshelf.api.auth import _login_attempts

    _login_attempts.clear()


@pytest.fixture(autouse=True)
def reset_login_rate_limiter():
    """Reset the login rate limiter before and after each test."""
    _reset_login_rate_limiter_state()
    yield
    _reset_login_rate_limiter_state()


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an in-memory SQLite engine with all tables."""
    from linkshelf.core.database import Base
    from linkshelf.models import PasswordResetToken, User  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# --- Auth Core Fixtures ---


@pytest.fixture
def token_codec():
    from linkshelf.services.tokens import TokenCodec

    return TokenCodec(TEST_JWT_SECRET)


@pytest.fixture
def revocation_store():
    from linkshelf.services.revocation import InMemoryRevocationStore

    return InMemoryRevocationStore()


@pytest.fixture
def sent_reset_links() -> list[tuple[str, str]]:
    """Reset links handed off for delivery, as (email, link) pairs."""
    return []


@pytest.fixture
def test_settings():
    from linkshelf.core.config import Settings

    return Settings(
        jwt_secret_key=TEST_JWT_SECRET,
        database_url=TEST_DATABASE_URL,
        token_ttl_ms=TEST_TOKEN_TTL_MS,
        revocation_backend="memory",
        frontend_url="http://frontend.test",
    )


@pytest.fixture
def app(test_settings, session_factory, revocation_store, sent_reset_links):
    """Application wired to the test database and revocation store."""
    from linkshelf.main import create_app

    return create_app(
        test_settings,
        session_factory=session_factory,
        revocation_store=revocation_store,
        reset_link_sender=lambda email, link: sent_reset_links.append((email, link)),
    )


@pytest_asyncio.fixture(scope="function")
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for the test application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session):
    """Factory for creating committed test users."""
    from linkshelf.models.user import User
    from linkshelf.services.passwords import hash_password

    async def _create_user(
        username: str = TEST_USER_USERNAME,
        email: str | None = None,
        password: str = TEST_USER_PASSWORD,
        roles: list[str] | None = None,
        enabled: bool = True,
    ) -> User:
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=hash_password(password),
            roles=roles or ["USER"],
            enabled=enabled,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest_asyncio.fixture
async def regular_user(user_factory):
    """Create a test user with the USER role."""
    return await user_factory(TEST_USER_USERNAME, TEST_USER_EMAIL, TEST_USER_PASSWORD)


@pytest_asyncio.fixture
async def admin_user(user_factory):
    """Create a test user with the ADMIN role."""
    return await user_factory(
        TEST_ADMIN_USERNAME,
        TEST_ADMIN_EMAIL,
        TEST_ADMIN_PASSWORD,
        roles=["ADMIN"],
    )


@pytest.fixture
def user_token(token_codec, regular_user) -> str:
    return token_codec.issue(regular_user.username, TEST_TOKEN_TTL_MS, ["USER"])


@pytest.fixture
def admin_token(token_codec, admin_user) -> str:
    return token_codec.issue(admin_user.username, TEST_TOKEN_TTL_MS, ["ADMIN"])


@pytest.fixture
def user_headers(user_token) -> dict[str, str]:
    """Headers with a USER token for authenticated requests."""
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers(admin_token) -> dict[str, str]:
    """Headers with an ADMIN token for authenticated requests."""
    return {"Authorization": f"Bearer {admin_token}"}


# --- Pytest Markers ---


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their fixtures.

    - Tests using db_session, db_engine, or async_client are marked as 'integration'
    - Everything else is marked as 'unit'
    - Tests can override with explicit markers
    """
    integration_fixtures = {"db_session", "db_engine", "async_client"}

    for item in items:
        if any(mark.name in ("unit", "integration") for mark in item.iter_markers()):
            continue

        if hasattr(item, "fixturenames") and integration_fixtures & set(item.fixturenames):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
