"""Pydantic schemas for authentication API."""

from pydantic import BaseModel, Field, field_validator


class RegisterRequest(BaseModel):
    """Request for account registration."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=20,
        description="Username (3-20 chars); stored trimmed and lowercased",
    )
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (minimum 8 characters, at least one letter and one digit)",
    )

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        # Length limits apply to the stored, trimmed form
        return value.strip() if isinstance(value, str) else value


class RegisterResponse(BaseModel):
    """Response after successful registration."""

    message: str
    username: str


class LoginRequest(BaseModel):
    """Request for login."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Response with a signed access token."""

    token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")


class ForgotPasswordRequest(BaseModel):
    """Request a password reset link."""

    email: str = ""


class ResetPasswordRequest(BaseModel):
    """Complete a password reset with the emailed token."""

    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
