"""
SQLModel-based User models with inheritance for security

This module defines the Users database model using SQLModel, which combines
SQLAlchemy and Pydantic functionality. The inheritance structure is:

UserBase (shared public fields)
    ├─> Users (database table, adds internal/sensitive fields)
    └─> UserResponse (API schema, defined in app/schemas)

This approach eliminates field duplication while maintaining security boundaries.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from app.config import Role
from app.utils import utc_now


class UserBase(SQLModel):
    """
    Base model with shared public fields for Users.

    These fields are safe to expose via the API to the user themselves
    (or an admin).
    """

    username: str = Field(max_length=50)
    email: str = Field(max_length=255)

    # Profile
    phone: str | None = Field(default=None, max_length=30)
    preferred_currency: str = Field(default="USD", max_length=3)
    country: str = Field(default="US", max_length=2)
    email_notifications: bool = Field(default=False)


class Users(UserBase, table=True):
    """
    Database table for users with internal and sensitive fields.

    Internal/sensitive fields (never exposed via the API):
    - password_hash: bcrypt hash of the password
    - refresh_token_hash: SHA-256 of the single currently valid refresh token,
      NULL when logged out
    - verify_token / forget_password_token: SHA-256 of single-use action tokens,
      each paired with an expiry; an expired token is treated as absent
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_users_username", "username", unique=True),
        Index("idx_users_email", "email", unique=True),
        Index("idx_users_verify_token", "verify_token"),
        Index("idx_users_forget_password_token", "forget_password_token"),
    )

    # Primary key
    user_id: int | None = Field(default=None, primary_key=True)

    # Access control
    role: str = Field(default=Role.USER, max_length=20)
    email_verified: bool = Field(default=False)

    # Authentication (highly sensitive - never expose)
    password_hash: str = Field(max_length=255)
    refresh_token_hash: str | None = Field(default=None, max_length=64)

    # Single-use action tokens
    verify_token: str | None = Field(default=None, max_length=64)
    verify_token_expiry: datetime | None = Field(default=None, sa_type=DateTime())
    forget_password_token: str | None = Field(default=None, max_length=64)
    forget_password_token_expiry: datetime | None = Field(default=None, sa_type=DateTime())

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
