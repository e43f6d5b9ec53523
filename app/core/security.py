"""
Security utilities for authentication.

This module provides:
- Password hashing and verification using bcrypt (run off the event loop)
- JWT access/refresh token issuance and verification
- Hashing and generation of opaque tokens (refresh token storage, email actions)
"""

import asyncio
import base64
import hashlib
import hmac
import re
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.config import Settings, settings
from app.core.exceptions import HashingError, InvalidTokenError
from app.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def validate_password_strength(password: str) -> tuple[bool, str | None]:
    """
    Validate password meets security requirements.

    Requirements:
    - At least 8 characters
    - Contains at least one uppercase letter
    - Contains at least one lowercase letter
    - Contains at least one digit
    - Contains at least one special character

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"

    if not re.search(r"[A-Z]", password):
        return False, "Password must contain at least one uppercase letter"

    if not re.search(r"[a-z]", password):
        return False, "Password must contain at least one lowercase letter"

    if not re.search(r"\d", password):
        return False, "Password must contain at least one digit"

    if not re.search(r'[!@#$%^&*(),.?":{}|<>_\-+=\[\]\\\/~`]', password):
        return False, "Password must contain at least one special character"

    return True, None


def _prepare_password_for_bcrypt(password: str) -> bytes:
    """
    Prepare password for bcrypt by handling long passwords.

    Bcrypt has a 72 byte limit. For passwords longer than 72 bytes,
    we SHA256 hash them first and encode as base64 (44 bytes).
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) <= 72:
        return password_bytes

    hashed = hashlib.sha256(password_bytes).digest()
    return base64.b64encode(hashed)


async def get_password_hash(password: str, rounds: int | None = None) -> str:
    """
    Hash a password using bcrypt with a fresh salt.

    The resulting string embeds algorithm, cost and salt, so verification
    needs nothing else.

    Raises:
        HashingError: If the bcrypt primitive fails
    """
    prepared = _prepare_password_for_bcrypt(password)
    try:
        salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
        hashed = await asyncio.to_thread(bcrypt.hashpw, prepared, salt)
    except (ValueError, TypeError) as e:
        logger.error("password_hash_failed", error_type=type(e).__name__)
        raise HashingError() from None
    return hashed.decode("utf-8")


async def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns:
        True if password matches, False otherwise

    Raises:
        HashingError: If the stored hash is malformed
    """
    prepared = _prepare_password_for_bcrypt(plain_password)
    try:
        return await asyncio.to_thread(
            bcrypt.checkpw, prepared, hashed_password.encode("utf-8")
        )
    except (ValueError, TypeError) as e:
        logger.error("password_verify_failed", error_type=type(e).__name__)
        raise HashingError() from None


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store refresh and action tokens at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_hash_matches(token: str, stored_hash: str) -> bool:
    """Constant-time comparison of a presented token against a stored hash."""
    return hmac.compare_digest(hash_token(token), stored_hash)


def generate_action_token() -> str:
    """
    Create a cryptographically secure single-use token (email verify, reset).

    Returns:
        URL-safe random token string (43 characters)
    """
    return secrets.token_urlsafe(32)


class TokenIssuer:
    """
    Mints and verifies signed access and refresh tokens.

    Access tokens carry ``{sub, username, role}``; refresh tokens carry
    ``{sub, username}`` only, so holding a refresh token grants no role by
    itself. Both carry a ``type`` claim and a random ``jti`` so two tokens
    minted within the same second never collide.
    """

    def __init__(self, config: Settings) -> None:
        self._access_key = config.JWT_SECRET
        self._refresh_key = config.JWT_REFRESH_SIGNING_KEY
        self._algorithm = config.ALGORITHM
        self.access_ttl = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS)

    def issue_access_token(
        self,
        user_id: int,
        username: str,
        role: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),  # PyJWT requires "sub" to be a string
            "username": username,
            "role": role,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.access_ttl),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._access_key, algorithm=self._algorithm)

    def issue_refresh_token(
        self,
        user_id: int,
        username: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "username": username,
            "type": REFRESH_TOKEN_TYPE,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.refresh_ttl),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._refresh_key, algorithm=self._algorithm)

    def verify_access_token(self, token: str) -> dict[str, Any]:
        """
        Verify an access token and return its claims.

        Raises:
            InvalidTokenError: On any verification failure
        """
        return self._decode(token, self._access_key, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> dict[str, Any]:
        """
        Verify a refresh token and return its claims.

        Raises:
            InvalidTokenError: On any verification failure
        """
        return self._decode(token, self._refresh_key, REFRESH_TOKEN_TYPE)

    def _decode(self, token: str, key: str, expected_type: str) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                key,
                algorithms=[self._algorithm],
                options={"require": ["exp"], "verify_exp": True, "verify_signature": True},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("expired") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError("invalid") from e

        if payload.get("type") != expected_type:
            raise InvalidTokenError("wrong_type")
        return payload


def claim_user_id(claims: dict[str, Any]) -> int | None:
    """Parse the ``sub`` claim back into an integer user id, or None if absent/garbage."""
    sub = claims.get("sub")
    if sub is None:
        return None
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None
