"""Request authentication gate.

Every request outside the public allow-list must carry a valid bearer token.
Checks run cheapest first:

1. token present
2. signature and expiry (TokenCodec, CPU only)
3. not revoked (RevocationStore)
4. subject still exists (user store round-trip)

On success the Principal, with roles taken from the token claims, is stored
on ``request.state.principal``. The gate never writes to the revocation store.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable

from fastapi import Request, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from linkshelf.core.request_utils import extract_bearer_token
from linkshelf.services.access_policy import Principal
from linkshelf.services.exceptions import (
    AuthenticationError,
    MissingTokenError,
    RevokedTokenError,
    StoreUnavailableError,
    TokenError,
    UnknownUserError,
)
from linkshelf.services.revocation import RevocationStore
from linkshelf.services.tokens import TokenCodec
from linkshelf.services.users import UserRepository

logger = logging.getLogger(__name__)

UserExists = Callable[[str], Awaitable[bool]]

# Matched exactly or on a path-segment boundary
PUBLIC_PATH_PREFIXES = [
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
]

# Matched exactly
PUBLIC_EXACT_PATHS = [
    "/",
    "/health",
]

DOCS_PATHS = ["/docs", "/redoc", "/openapi.json"]


def database_user_lookup(session_factory: async_sessionmaker[AsyncSession]) -> UserExists:
    """User-existence check backed by the user store."""

    async def user_exists(username: str) -> bool:
        try:
            async with session_factory() as session:
                return await UserRepository(session).get_by_username(username) is not None
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"User store lookup failed: {e}")
            raise StoreUnavailableError() from e

    return user_exists


class AuthenticationGate:
    """Turns an Authorization header into a Principal or an AuthenticationError."""

    def __init__(
        self,
        token_codec: TokenCodec,
        revocation_store: RevocationStore,
        user_exists: UserExists,
    ):
        self.token_codec = token_codec
        self.revocation_store = revocation_store
        self.user_exists = user_exists

    async def authenticate(self, authorization: str | None) -> Principal:
        token = extract_bearer_token(authorization)
        if token is None:
            raise MissingTokenError()

        claims = self.token_codec.parse(token)

        if await self.revocation_store.is_revoked(token):
            raise RevokedTokenError()

        if not await self.user_exists(claims.subject):
            raise UnknownUserError()

        return Principal.from_claims(claims.subject, claims.roles, token)


def is_public_path(
    path: str,
    prefixes: Iterable[str] = PUBLIC_PATH_PREFIXES,
    exact_paths: Iterable[str] = PUBLIC_EXACT_PATHS,
) -> bool:
    if path in exact_paths:
        return True
    return any(path == prefix or path.startswith(prefix + "/") for prefix in prefixes)


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthGateMiddleware(BaseHTTPMiddleware):
    """Runs the AuthenticationGate on every non-public request.

    The gate is read from ``request.app.state.auth_gate``.
    """

    def __init__(
        self,
        app: ASGIApp,
        public_prefixes: Iterable[str] = PUBLIC_PATH_PREFIXES,
        public_exact_paths: Iterable[str] = PUBLIC_EXACT_PATHS,
    ):
        super().__init__(app)
        self.public_prefixes = list(public_prefixes)
        self.public_exact_paths = list(public_exact_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        # CORS preflight is answered by CORSMiddleware
        if request.method == "OPTIONS":
            return await call_next(request)

        if is_public_path(path, self.public_prefixes, self.public_exact_paths):
            return await call_next(request)

        gate: AuthenticationGate = request.app.state.auth_gate
        try:
            principal = await gate.authenticate(request.headers.get("Authorization"))
        except TokenError as e:
            logger.warning(
                f"Invalid token for: {request.method} {path} - {type(e).__name__}",
                extra={"method": request.method, "path": path, "reason": type(e).__name__},
            )
            return _unauthorized(TokenError.message)
        except AuthenticationError as e:
            logger.warning(
                f"Rejected request: {request.method} {path} - {e.message}",
                extra={"method": request.method, "path": path, "reason": e.message},
            )
            return _unauthorized(e.message)
        except StoreUnavailableError:
            return JSONResponse(
                status_code=503,
                content={"detail": StoreUnavailableError.message},
            )

        request.state.principal = principal
        return await call_next(request)
