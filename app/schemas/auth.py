"""
Authentication schemas for request/response validation.

This module defines Pydantic models for:
- Login credentials and the session response carrying the CSRF token
- Token refresh (body fallback for non-cookie clients)
- User registration
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.security import validate_password_strength


def _strong_password(v: str) -> str:
    is_valid, error_message = validate_password_strength(v)
    if not is_valid:
        raise ValueError(error_message)
    return v


class LoginRequest(BaseModel):
    """
    Request schema for user login.

    No length constraints: empty or unknown input must produce the same 401
    as a wrong password, not a validation error.
    """

    username: str = ""
    password: str = ""


class RefreshRequest(BaseModel):
    """Optional body for token refresh when the cookie is unavailable."""

    refresh_token: str | None = Field(
        default=None, description="Refresh token (optional if using cookies)"
    )


class SessionResponse(BaseModel):
    """
    Body returned by login and refresh.

    The CSRF token is exposed under both spellings for frontend compatibility.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str
    csrf_token_camel: str = Field(alias="csrfToken")
    csrf_token: str

    @classmethod
    def build(cls, message: str, csrf_token: str) -> "SessionResponse":
        return cls(message=message, csrfToken=csrf_token, csrf_token=csrf_token)


class ProfileResponse(BaseModel):
    """Claims of the current access token."""

    user_id: int
    username: str
    role: str


class MessageResponse(BaseModel):
    message: str


class RegisterRequest(BaseModel):
    """Request schema for user registration."""

    username: str = Field(..., min_length=5, max_length=50)
    email: EmailStr
    password: str = Field(..., max_length=255)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 5:
            raise ValueError("Min length of username is 5!")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Validate password strength."""
        return _strong_password(v)
