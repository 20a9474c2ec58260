"""Password hashing with Argon2id."""

import re

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from linkshelf.services.exceptions import WeakPasswordError

MIN_PASSWORD_LENGTH = 8

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

_dummy_hash: str | None = None


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def burn_verification(password: str) -> None:
    """Spend one verification's worth of time for an unknown user.

    Keeps "no such user" as slow as "wrong password".
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("dummy-password-0")
    verify_password(password, _dummy_hash)


def validate_password_strength(password: str) -> str:
    """Require at least 8 characters with a letter and a digit."""
    if (
        len(password) < MIN_PASSWORD_LENGTH
        or not _LETTER.search(password)
        or not _DIGIT.search(password)
    ):
        raise WeakPasswordError()
    return password
