"""Shared FastAPI dependencies for the API routers."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from linkshelf.core import get_db
from linkshelf.services.access_policy import Principal, Role, require_role
from linkshelf.services.auth import CredentialService
from linkshelf.services.exceptions import AccessDeniedError, MissingTokenError
from linkshelf.services.users import UserService


def get_current_principal(request: Request) -> Principal:
    """Principal attached by AuthGateMiddleware."""
    principal: Principal | None = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=MissingTokenError.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Allow only principals holding the ADMIN role."""
    if not require_role(principal, Role.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=AccessDeniedError.message,
        )
    return principal


def get_credential_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> CredentialService:
    state = request.app.state
    return CredentialService(
        db,
        token_codec=state.token_codec,
        revocation_store=state.revocation_store,
        token_ttl_ms=state.settings.token_ttl_ms,
    )


def get_user_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> UserService:
    return UserService(
        db,
        reset_token_minutes=request.app.state.settings.password_reset_token_minutes,
    )
