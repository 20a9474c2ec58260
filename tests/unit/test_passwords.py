"""Unit tests for password hashing and strength rules."""

import pytest

from linkshelf.services.exceptions import WeakPasswordError
from linkshelf.services.passwords import (
    burn_verification,
    hash_password,
    validate_password_strength,
    verify_password,
)


def test_hash_is_argon2id_and_salted():
    first = hash_password("correct horse 1")
    second = hash_password("correct horse 1")

    assert first.startswith("$argon2id$")
    assert first != second


def test_verify_password():
    password_hash = hash_password("correct horse 1")

    assert verify_password("correct horse 1", password_hash)
    assert not verify_password("wrong horse 1", password_hash)


def test_verify_against_garbage_hash_is_false():
    assert not verify_password("anything1", "not-a-hash")


def test_burn_verification_returns_nothing():
    assert burn_verification("whatever1") is None


@pytest.mark.parametrize("password", ["abcdefg1", "password123", "12345678a"])
def test_strong_passwords_pass(password):
    assert validate_password_strength(password) == password


@pytest.mark.parametrize("password", ["short1", "allletters", "1234567890", ""])
def test_weak_passwords_rejected(password):
    with pytest.raises(WeakPasswordError) as exc_info:
        validate_password_strength(password)
    assert exc_info.value.message == "Password is too weak"
