"""Pydantic schemas for user management API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from linkshelf.services.access_policy import Role


class UserResponse(BaseModel):
    """Public view of a user; never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    roles: list[str]
    enabled: bool
    created_at: datetime


class UserUpdate(BaseModel):
    """Profile update request.

    Only these fields are mutable; anything else is rejected. Each present
    field is checked by its own validator in UserService. ``roles`` is
    honoured only for admins.
    """

    model_config = ConfigDict(extra="forbid")

    username: str | None = None
    email: str | None = None
    password: str | None = None
    roles: list[Role] | None = Field(default=None, min_length=1)


class UserUpdateResponse(BaseModel):
    """Response after a profile update."""

    message: str
    user: UserResponse
