"""Authentication API endpoints."""

import logging
import time
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from linkshelf.api.dependencies import (
    get_credential_service,
    get_current_principal,
    get_user_service,
)
from linkshelf.core.request_utils import get_client_ip
from linkshelf.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
)
from linkshelf.services.access_policy import Principal
from linkshelf.services.auth import CredentialService
from linkshelf.services.exceptions import (
    AccountDisabledError,
    DuplicateRegistrationError,
    ExpiredTokenError,
    InvalidCredentialsError,
    ValidationError,
)
from linkshelf.services.users import UserService

logger = logging.getLogger(__name__)

# Rate limiting for failed login attempts
_login_attempts: dict[str, list[float]] = defaultdict(list)
_LOGIN_WINDOW = 60  # 1-minute window
_LOGIN_MAX_ATTEMPTS = 5  # Max failed attempts per window


def _check_login_rate_limit(client_ip: str) -> None:
    """Check if a client IP has exceeded the login attempt rate limit."""
    now = time.monotonic()
    recent = [t for t in _login_attempts.get(client_ip, ()) if now - t < _LOGIN_WINDOW]
    if recent:
        _login_attempts[client_ip] = recent
    else:
        _login_attempts.pop(client_ip, None)
    if len(recent) >= _LOGIN_MAX_ATTEMPTS:
        logger.warning("Login rate limit exceeded for %s", client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )


def _record_login_attempt(client_ip: str) -> None:
    _login_attempts[client_ip].append(time.monotonic())


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse)
async def register(
    request: RegisterRequest,
    credential_service: CredentialService = Depends(get_credential_service),
) -> RegisterResponse:
    """Create an account with the default USER role."""
    try:
        user = await credential_service.register(
            username=request.username,
            email=request.email,
            password=request.password,
        )
    except DuplicateRegistrationError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e

    return RegisterResponse(message="User registered successfully!", username=user.username)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    http_request: Request,
    credential_service: CredentialService = Depends(get_credential_service),
) -> TokenResponse:
    """Authenticate and get a signed access token.

    Rate limited to 5 failed attempts per minute per IP.
    """
    client_ip = get_client_ip(http_request) or "unknown"
    _check_login_rate_limit(client_ip)

    try:
        token = await credential_service.login(
            username=request.username,
            password=request.password,
        )
    except InvalidCredentialsError as e:
        _record_login_attempt(client_ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except AccountDisabledError as e:
        _record_login_attempt(client_ip)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message) from e

    return TokenResponse(
        token=token,
        expires_in=credential_service.token_ttl_ms // 1000,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    principal: Principal = Depends(get_current_principal),
    credential_service: CredentialService = Depends(get_credential_service),
) -> MessageResponse:
    """Revoke the presented token for the rest of its lifetime."""
    try:
        await credential_service.logout(principal.token)
    except ExpiredTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return MessageResponse(message="User logged out successfully.")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    http_request: Request,
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    """Issue a single-use password reset link for the given email."""
    try:
        token = await user_service.request_password_reset(request.email)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e

    reset_link = f"{http_request.app.state.settings.frontend_url}/reset-password?token={token}"
    http_request.app.state.reset_link_sender(request.email.strip().lower(), reset_link)

    return MessageResponse(message="Password reset link sent to email.")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    """Set a new password using an emailed reset token."""
    try:
        await user_service.reset_password(request.token, request.new_password)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e

    return MessageResponse(message="Password has been reset successfully.")
