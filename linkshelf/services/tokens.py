"""Token codec: issues and validates signed JWTs.

Tokens carry the subject (username), the role list under ``roles``, and
``iat``/``exp`` as NumericDates with millisecond precision. Integrity rests
entirely on the HMAC signature; tokens are never stored.
"""

import logging
import secrets
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import jwt
from jwt.exceptions import InvalidSignatureError as JWTSignatureError
from jwt.exceptions import PyJWTError

from linkshelf.services.exceptions import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenError,
)

logger = logging.getLogger(__name__)

ROLES_CLAIM = "roles"
REQUIRED_CLAIMS = ["sub", "iat", "exp", ROLES_CLAIM]


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, signature-verified token contents."""

    subject: str
    roles: tuple[str, ...]
    issued_at_ms: int
    expires_at_ms: int
    token_id: str | None = None

    def remaining_ms(self, at_ms: int) -> int:
        """Milliseconds of lifetime left at ``at_ms`` (negative once expired)."""
        return self.expires_at_ms - at_ms


def _to_ms(value: Any, claim: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedTokenError(f"Claim '{claim}' must be a NumericDate")
    return round(value * 1000)


class TokenCodec:
    """Creates and parses signed tokens with a process-wide shared secret."""

    def __init__(
        self,
        secret_key: str | None,
        algorithm: str = "HS256",
        clock: Callable[[], int] = now_ms,
    ):
        if not secret_key:
            raise ValueError("Token signing secret is not configured")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._clock = clock

    def issue(self, subject: str, ttl_ms: int, roles: Iterable[str]) -> str:
        """Issue a token for ``subject`` that expires ``ttl_ms`` from now."""
        if not subject:
            raise ValueError("Token subject must not be empty")
        if ttl_ms <= 0:
            raise ValueError(f"Token TTL must be positive, got {ttl_ms}")

        issued_at = self._clock()
        payload = {
            "sub": subject,
            ROLES_CLAIM: [str(role) for role in roles],
            "iat": issued_at / 1000,
            "exp": (issued_at + ttl_ms) / 1000,
            "jti": secrets.token_hex(16),
        }
        token = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        return str(token)

    def parse(self, token: str, *, verify_expiry: bool = True) -> TokenClaims:
        """Verify ``token`` and return its claims.

        Raises InvalidSignatureError, MalformedTokenError or ExpiredTokenError.
        ``verify_expiry=False`` still checks the signature and claim shapes.
        """
        if not token:
            raise MalformedTokenError("Token is empty")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                # Expiry is checked below at millisecond precision
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except JWTSignatureError as e:
            raise InvalidSignatureError() from e
        except PyJWTError as e:
            raise MalformedTokenError() from e

        claims = self._claims_from_payload(payload)
        if verify_expiry and self._clock() >= claims.expires_at_ms:
            raise ExpiredTokenError()
        return claims

    def is_structurally_valid(self, token: str) -> bool:
        """True iff the signature verifies and the token has not expired.

        Does not consult the revocation store.
        """
        try:
            self.parse(token)
        except TokenError:
            return False
        return True

    def now_ms(self) -> int:
        return self._clock()

    @staticmethod
    def _claims_from_payload(payload: dict[str, Any]) -> TokenClaims:
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise MalformedTokenError("Claim 'sub' must be a non-empty string")

        roles = payload.get(ROLES_CLAIM)
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            raise MalformedTokenError(f"Claim '{ROLES_CLAIM}' must be a list of strings")

        jti = payload.get("jti")
        return TokenClaims(
            subject=subject,
            roles=tuple(roles),
            issued_at_ms=_to_ms(payload.get("iat"), "iat"),
            expires_at_ms=_to_ms(payload.get("exp"), "exp"),
            token_id=jti if isinstance(jti, str) else None,
        )
