"""
Pydantic schemas for User endpoints
"""

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import UserBase
from app.schemas.auth import _strong_password
from app.schemas.base import UTCDatetime


class UserUpdate(BaseModel):
    """Profile update - all fields optional.

    Passwords change only through /user/change-password and the reset flow.
    """

    username: str | None = Field(default=None, min_length=5, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=30)
    preferred_currency: str | None = Field(default=None, min_length=3, max_length=3)
    country: str | None = Field(default=None, min_length=2, max_length=2)
    email_notifications: bool | None = None

    @field_validator("preferred_currency", "country")
    @classmethod
    def uppercase_codes(cls, v: str | None) -> str | None:
        return v.upper() if v is not None else v


class UserResponse(UserBase):
    """Schema for user response - what API returns"""

    user_id: int
    role: str
    email_verified: bool
    created_at: UTCDatetime

    # Allow Pydantic to read from SQLAlchemy model attributes (not just dicts)
    model_config = {"from_attributes": True}


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1, max_length=255)
    new_password: str = Field(..., max_length=255)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _strong_password(v)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., max_length=255)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _strong_password(v)
