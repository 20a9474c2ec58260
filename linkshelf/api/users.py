"""User management API endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from linkshelf.api.dependencies import get_current_principal, get_user_service, require_admin
from linkshelf.models.user import User
from linkshelf.schemas.auth import MessageResponse
from linkshelf.schemas.user import UserResponse, UserUpdate, UserUpdateResponse
from linkshelf.services.access_policy import Principal, require_self_or_role
from linkshelf.services.exceptions import (
    AccessDeniedError,
    DuplicateRegistrationError,
    UserNotFoundError,
    ValidationError,
)
from linkshelf.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=AccessDeniedError.message)


async def _get_owned_user(user_id: UUID, principal: Principal, user_service: UserService) -> User:
    """Load a user the principal may act on.

    Non-admins get the same 403 for missing ids as for other users' ids.
    """
    try:
        user = await user_service.get_user(user_id)
    except UserNotFoundError as e:
        if principal.is_admin:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
        raise _forbidden() from e

    if not require_self_or_role(principal, user.username):
        logger.warning(f"User {principal.username} denied access to user {user_id}")
        raise _forbidden()
    return user


@router.get("", response_model=list[UserResponse])
async def list_users(
    _admin: Principal = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> list[UserResponse]:
    """List all users (admin only)."""
    users = await user_service.list_users()
    return [UserResponse.model_validate(user) for user in users]


@router.get("/me", response_model=UserResponse)
async def get_me(
    principal: Principal = Depends(get_current_principal),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Get the current user's profile."""
    try:
        user = await user_service.get_user_by_username(principal.username)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    principal: Principal = Depends(get_current_principal),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Get a user by ID (self or admin)."""
    user = await _get_owned_user(user_id, principal, user_service)
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserUpdateResponse)
async def update_user(
    user_id: UUID,
    update: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    user_service: UserService = Depends(get_user_service),
) -> UserUpdateResponse:
    """Update a user's profile (self or admin).

    Role changes are applied only when requested by an admin.
    """
    user = await _get_owned_user(user_id, principal, user_service)
    try:
        user = await user_service.update_user(user, update, principal)
    except DuplicateRegistrationError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e

    return UserUpdateResponse(
        message="User profile updated successfully",
        user=UserResponse.model_validate(user),
    )


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    admin: Principal = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    """Delete a user (admin only)."""
    try:
        await user_service.delete_user(user_id, admin.username)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to delete user.",
        ) from e
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e

    return MessageResponse(message="User deleted successfully.")
