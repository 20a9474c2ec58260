"""Domain exceptions for authentication, authorization and account management.

Every exception carries a client-safe ``message``. Routes and the auth gate
translate them to HTTP responses; internal details stay in the logs.
"""


class AuthError(Exception):
    """Base authentication/authorization error."""

    message = "Authentication failed."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


# --- 401: authentication failures ---


class AuthenticationError(AuthError):
    """The request could not be authenticated."""


class MissingTokenError(AuthenticationError):
    message = "Token is missing."


class TokenError(AuthenticationError):
    """A token failed stateless validation."""

    message = "Invalid token."


class MalformedTokenError(TokenError):
    """Token cannot be decoded or lacks required claims."""


class InvalidSignatureError(TokenError):
    """Token signature does not verify against the signing secret."""


class ExpiredTokenError(TokenError):
    """Token is past its expiry."""


class RevokedTokenError(AuthenticationError):
    message = "Token is already revoked."


class UnknownUserError(AuthenticationError):
    message = "User no longer exists."


class InvalidCredentialsError(AuthenticationError):
    """Unknown username or wrong password; the two are indistinguishable."""

    message = "Invalid username or password."


# --- 403: authorization failures ---


class AccountDisabledError(AuthError):
    message = "Account is disabled."


class AccessDeniedError(AuthError):
    message = "Access denied."


# --- 400/409: validation failures ---


class ValidationError(AuthError):
    """A submitted value violates a constraint; the message names it."""

    message = "Validation failed"


class WeakPasswordError(ValidationError):
    message = "Password is too weak"


class DuplicateRegistrationError(ValidationError):
    """Username or email is already held by another account."""


class UserNotFoundError(Exception):
    """Requested user does not exist."""

    message = "User not found."


# --- 503: infrastructure failures ---


class StoreUnavailableError(Exception):
    """Revocation store or user store is unreachable.

    Never reported as an auth failure; it maps to a 5xx response.
    """

    message = "Service temporarily unavailable."
