# LinkShelf Pydantic Schemas
from linkshelf.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
)
from linkshelf.schemas.user import UserResponse, UserUpdate, UserUpdateResponse

__all__ = [
    "ForgotPasswordRequest",
    "LoginRequest",
    "MessageResponse",
    "RegisterRequest",
    "RegisterResponse",
    "ResetPasswordRequest",
    "TokenResponse",
    "UserResponse",
    "UserUpdate",
    "UserUpdateResponse",
]
