"""Credential service: registration, login and logout."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkshelf.models.user import User
from linkshelf.services.access_policy import DEFAULT_ROLE, primary_role
from linkshelf.services.exceptions import (
    AccountDisabledError,
    DuplicateRegistrationError,
    ExpiredTokenError,
    InvalidCredentialsError,
)
from linkshelf.services.passwords import (
    burn_verification,
    hash_password,
    validate_password_strength,
    verify_password,
)
from linkshelf.services.revocation import RevocationStore
from linkshelf.services.tokens import TokenCodec
from linkshelf.services.users import (
    EMAIL_TAKEN,
    USERNAME_TAKEN,
    UserRepository,
    normalize_identifier,
    validate_email,
    validate_username,
)

logger = logging.getLogger(__name__)


class CredentialService:
    """Service for credential operations.

    Issues tokens through the TokenCodec on login and records revocations in
    the RevocationStore on logout.
    """

    def __init__(
        self,
        session: AsyncSession,
        token_codec: TokenCodec,
        revocation_store: RevocationStore,
        token_ttl_ms: int,
    ):
        self.session = session
        self.users = UserRepository(session)
        self.token_codec = token_codec
        self.revocation_store = revocation_store
        self.token_ttl_ms = token_ttl_ms

    async def register(self, username: str, email: str, password: str) -> User:
        """Create a user with the default role.

        Raises DuplicateRegistrationError when the username or the email is
        taken; the two are checked independently.
        """
        username = validate_username(username)
        email = validate_email(email)
        validate_password_strength(password)

        if await self.users.get_by_username(username) is not None:
            raise DuplicateRegistrationError(USERNAME_TAKEN)
        if await self.users.get_by_email(email) is not None:
            raise DuplicateRegistrationError(EMAIL_TAKEN)

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            roles=[DEFAULT_ROLE.value],
            enabled=True,
        )
        try:
            await self.users.add(user)
            await self.session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            await self.session.rollback()
            raise DuplicateRegistrationError("Username or email is already in use.") from e

        logger.info(f"Registered user: {username}", extra={"username": username})
        return user

    async def authenticate(self, username: str, password: str) -> User:
        """Authenticate a user and return the user object.

        Raises InvalidCredentialsError for both "user not found" and
        "wrong password" to prevent user enumeration.
        """
        user = await self.users.get_by_username(normalize_identifier(username))

        if user is None:
            burn_verification(password)
            raise InvalidCredentialsError()

        if not user.enabled:
            raise AccountDisabledError()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        return user

    async def login(self, username: str, password: str) -> str:
        """Authenticate and issue a token carrying the user's primary role."""
        user = await self.authenticate(username, password)
        token = self.token_codec.issue(user.username, self.token_ttl_ms, [primary_role(user.roles)])
        logger.info(f"User logged in: {user.username}", extra={"username": user.username})
        return token

    async def logout(self, token: str) -> None:
        """Revoke ``token`` for the rest of its natural lifetime.

        Raises ExpiredTokenError when no lifetime remains; nothing is stored.
        """
        claims = self.token_codec.parse(token, verify_expiry=False)
        remaining_ms = claims.remaining_ms(self.token_codec.now_ms())
        if remaining_ms <= 0:
            raise ExpiredTokenError("Token is already expired.")

        await self.revocation_store.revoke(token, remaining_ms)
        logger.info(f"User logged out: {claims.subject}", extra={"username": claims.subject})
