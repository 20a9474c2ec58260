"""Unit tests for CredentialService business logic."""

import pytest

from linkshelf.models.user import User
from linkshelf.services.auth import CredentialService
from linkshelf.services.exceptions import (
    AccountDisabledError,
    DuplicateRegistrationError,
    ExpiredTokenError,
    InvalidCredentialsError,
    ValidationError,
    WeakPasswordError,
)
from linkshelf.services.revocation import InMemoryRevocationStore
from linkshelf.services.tokens import TokenCodec

pytestmark = pytest.mark.asyncio

SECRET = "credential-test-secret-" + "q" * 41
TTL_MS = 60_000


class FakeClock:
    def __init__(self):
        self.now = 1_700_000_000_000

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec(clock):
    return TokenCodec(SECRET, clock=clock)


@pytest.fixture
def store():
    return InMemoryRevocationStore()


@pytest.fixture
def service(db_session, codec, store):
    return CredentialService(db_session, codec, store, TTL_MS)


class TestRegister:
    async def test_register_creates_user_with_default_role(self, service):
        user = await service.register("  Carol ", "Carol@Example.com", "s3cretpass")

        assert user.username == "carol"
        assert user.email == "carol@example.com"
        assert user.roles == ["USER"]
        assert user.enabled is True
        assert user.password_hash != "s3cretpass"

    async def test_duplicate_username(self, service, user_factory):
        await user_factory("carol", "carol@example.com")

        with pytest.raises(DuplicateRegistrationError) as exc_info:
            await service.register("carol", "other@example.com", "s3cretpass")
        assert exc_info.value.message == "Username is already taken."

    async def test_duplicate_email(self, service, user_factory):
        await user_factory("carol", "carol@example.com")

        with pytest.raises(DuplicateRegistrationError) as exc_info:
            await service.register("dave", "CAROL@example.com", "s3cretpass")
        assert exc_info.value.message == "Email is already in use."

    async def test_weak_password(self, service):
        with pytest.raises(WeakPasswordError):
            await service.register("carol", "carol@example.com", "password")

    async def test_invalid_email(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.register("carol", "not-an-email", "s3cretpass")
        assert exc_info.value.message == "Invalid email format"


class TestAuthenticate:
    async def test_valid_credentials(self, service, regular_user):
        user = await service.authenticate("alice", "wonderland42")

        assert isinstance(user, User)
        assert user.id == regular_user.id

    async def test_username_is_case_insensitive(self, service, regular_user):
        user = await service.authenticate("  ALICE ", "wonderland42")

        assert user.id == regular_user.id

    async def test_wrong_password(self, service, regular_user):
        with pytest.raises(InvalidCredentialsError):
            await service.authenticate("alice", "wrongpassword1")

    async def test_unknown_user_is_indistinguishable(self, service):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            await service.authenticate("nobody", "wonderland42")
        assert exc_info.value.message == "Invalid username or password."

    async def test_disabled_account(self, service, user_factory):
        await user_factory("frozen", password="wonderland42", enabled=False)

        with pytest.raises(AccountDisabledError):
            await service.authenticate("frozen", "wonderland42")


class TestLogin:
    async def test_login_issues_token_with_primary_role(self, service, codec, user_factory):
        await user_factory("root", roles=["ADMIN", "USER"], password="wonderland42")

        token = await service.login("root", "wonderland42")
        claims = codec.parse(token)

        assert claims.subject == "root"
        assert claims.roles == ("ADMIN",)
        assert claims.expires_at_ms - claims.issued_at_ms == TTL_MS


class TestLogout:
    async def test_logout_revokes_for_remaining_lifetime(self, service, codec, clock, store):
        token = codec.issue("alice", TTL_MS, ["USER"])
        clock.now += 10_000

        await service.logout(token)

        assert await store.is_revoked(token)
        assert len(store) == 1

    async def test_logout_of_expired_token_stores_nothing(self, service, codec, clock, store):
        token = codec.issue("alice", 1_000, ["USER"])
        clock.now += 1_000

        with pytest.raises(ExpiredTokenError) as exc_info:
            await service.logout(token)

        assert exc_info.value.message == "Token is already expired."
        assert len(store) == 0
