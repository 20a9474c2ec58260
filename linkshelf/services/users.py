"""User store access and account management.

UserRepository is the user lookup the auth core consumes. UserService holds
the profile update, deletion and password reset flows.
"""

import hashlib
import logging
import re
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkshelf.models.password_reset_token import PasswordResetToken
from linkshelf.models.user import User
from linkshelf.schemas.user import UserUpdate
from linkshelf.services.access_policy import Principal
from linkshelf.services.exceptions import (
    DuplicateRegistrationError,
    UserNotFoundError,
    ValidationError,
)
from linkshelf.services.passwords import hash_password, validate_password_strength

logger = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 255
EMAIL_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+\.[a-zA-Z]{2,}$")

USERNAME_TAKEN = "Username is already taken."
EMAIL_TAKEN = "Email is already in use."


def normalize_identifier(value: str) -> str:
    """Usernames and emails are compared and stored trimmed and lowercased."""
    return value.strip().lower()


def validate_username(value: str) -> str:
    username = normalize_identifier(value)
    if not username:
        raise ValidationError("Username cannot be empty")
    if len(username) > MAX_FIELD_LENGTH:
        raise ValidationError("Field length exceeds the limit")
    return username


def validate_email(value: str) -> str:
    email = normalize_identifier(value)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")
    if len(email) > MAX_FIELD_LENGTH:
        raise ValidationError("Field length exceeds the limit")
    return email


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class UserRepository:
    """Lookup and persistence for users."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_username(self, username: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.username == normalize_identifier(username))
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.email == normalize_identifier(email))
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: UUID) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[User]:
        result = await self.session.execute(select(User).order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def add(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def delete(self, user: User) -> None:
        await self.session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id)
        )
        await self.session.delete(user)
        await self.session.flush()


class UserService:
    """Profile management and password reset."""

    def __init__(self, session: AsyncSession, reset_token_minutes: int = 30):
        self.session = session
        self.users = UserRepository(session)
        self.reset_token_minutes = reset_token_minutes

    async def get_user(self, user_id: UUID) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def get_user_by_username(self, username: str) -> User:
        user = await self.users.get_by_username(username)
        if user is None:
            raise UserNotFoundError()
        return user

    async def list_users(self) -> list[User]:
        return await self.users.list_all()

    async def update_user(self, user: User, update: UserUpdate, acting: Principal) -> User:
        """Apply the fields present in ``update`` after validating each one."""
        if update.username is not None:
            username = validate_username(update.username)
            holder = await self.users.get_by_username(username)
            if holder is not None and holder.id != user.id:
                raise DuplicateRegistrationError(USERNAME_TAKEN)
            user.username = username

        if update.email is not None:
            email = validate_email(update.email)
            holder = await self.users.get_by_email(email)
            if holder is not None and holder.id != user.id:
                raise DuplicateRegistrationError(EMAIL_TAKEN)
            user.email = email

        if update.password is not None:
            user.password_hash = hash_password(validate_password_strength(update.password))

        if update.roles is not None:
            if acting.is_admin:
                user.roles = list(dict.fromkeys(role.value for role in update.roles))
            else:
                logger.info(f"Ignoring role change for {user.username} requested by non-admin {acting.username}")

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateRegistrationError("Username or email is already in use.") from e
        await self.session.refresh(user)

        logger.info(f"User {user.username} updated by {acting.username}")
        return user

    async def delete_user(self, user_id: UUID, acting_username: str) -> None:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        if user.username == acting_username:
            raise ValidationError("Admin cannot delete themselves.")

        await self.users.delete(user)
        await self.session.commit()
        logger.info(f"User {user.username} deleted by {acting_username}")

    async def request_password_reset(self, email: str) -> str:
        """Create a single-use reset token for the account owning ``email``.

        Returns the raw token; only its digest is stored.
        """
        if not email or not email.strip():
            raise ValidationError("Email is required.")

        user = await self.users.get_by_email(email)
        if user is None:
            raise ValidationError("No user found with this email.")

        token = secrets.token_urlsafe(32)
        self.session.add(
            PasswordResetToken(
                user_id=user.id,
                token_hash=hash_reset_token(token),
                expires_at=datetime.now(UTC) + timedelta(minutes=self.reset_token_minutes),
            )
        )
        await self.session.commit()
        return token

    async def reset_password(self, token: str, new_password: str) -> User:
        """Consume ``token`` and set the owner's password."""
        validate_password_strength(new_password)

        result = await self.session.execute(
            select(PasswordResetToken).where(PasswordResetToken.token_hash == hash_reset_token(token))
        )
        reset_token = result.unique().scalar_one_or_none()
        if reset_token is None:
            raise ValidationError("Invalid or expired token.")

        if _as_aware(reset_token.expires_at) < datetime.now(UTC):
            await self.session.delete(reset_token)
            # Expired tokens are removed even though the request fails
            await self.session.commit()
            raise ValidationError("Token has expired.")

        user = reset_token.user
        user.password_hash = hash_password(new_password)
        await self.session.delete(reset_token)
        await self.session.commit()

        logger.info(f"Password reset completed for {user.username}")
        return user


ResetLinkSender = Callable[[str, str], None]


def log_reset_link(email: str, reset_link: str) -> None:
    """Default reset link hand-off; records the delivery without the link."""
    logger.info(f"Password reset link ready for delivery to {email}")
