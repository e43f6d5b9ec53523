"""
Session lifecycle: login, refresh (with rotation) and logout.

State per account:
    Anonymous -> Authenticated(access live)
              -> Authenticated(access expired, refresh live)
              -> Anonymous(logged out)

Only one refresh token is valid per user at a time. Logging in again, or
refreshing, replaces the stored hash and so invalidates the previous
refresh token. Access tokens are stateless and stay valid until they expire.
"""

from dataclasses import dataclass
from typing import NoReturn

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity
from app.core.exceptions import (
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
)
from app.core.logging import get_logger
from app.core.security import (
    TokenIssuer,
    claim_user_id,
    hash_token,
    token_hash_matches,
    verify_password,
)
from app.models.user import Users
from app.services.refresh_tokens import RefreshTokenStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """Freshly minted access + refresh tokens. Never persisted as such."""

    access_token: str
    refresh_token: str


def _reject_refresh(reason: str, user_id: int | None = None) -> NoReturn:
    """Log the specific cause, raise the uniform client-facing error."""
    logger.info("refresh_rejected", reason=reason, subject=user_id)
    raise InvalidRefreshTokenError()


class SessionAuthenticator:
    """Verifies credentials or refresh tokens and issues token pairs."""

    def __init__(self, db: AsyncSession, issuer: TokenIssuer) -> None:
        self._db = db
        self._issuer = issuer
        self._store = RefreshTokenStore(db)

    async def login(self, username: str, password: str) -> tuple[Identity, TokenPair]:
        """
        Authenticate username/password and open a session.

        Returns:
            The authenticated identity (no password hash) and its token pair

        Raises:
            InvalidCredentialsError: Unknown user, empty input or wrong password
            HashingError: Stored password hash is unusable
        """
        if not username or not password:
            logger.info("login_failed", reason="empty_credentials")
            raise InvalidCredentialsError()

        result = await self._db.execute(
            select(Users).where(Users.username == username)  # type: ignore[arg-type]
        )
        user = result.scalar_one_or_none()
        if user is None or user.user_id is None:
            logger.info("login_failed", reason="unknown_user")
            raise InvalidCredentialsError()

        if not await verify_password(password, user.password_hash):
            logger.info("login_failed", reason="wrong_password", subject=user.user_id)
            raise InvalidCredentialsError()

        identity = Identity(user_id=user.user_id, role=user.role, username=user.username)
        pair = self._issue_pair(identity)
        # Overwrites any previous refresh token: one active session per account
        await self._store.set_refresh_token_hash(identity.user_id, hash_token(pair.refresh_token))

        logger.info("login_succeeded", subject=identity.user_id)
        return identity, pair

    async def refresh(self, presented_token: str | None) -> TokenPair:
        """
        Exchange a refresh token for a new pair and invalidate the old one.

        Raises:
            InvalidRefreshTokenError: For every failure cause
        """
        if not presented_token:
            _reject_refresh("missing_token")

        try:
            claims = self._issuer.verify_refresh_token(presented_token)
        except InvalidTokenError as e:
            _reject_refresh(f"verification_failed:{e}")

        user_id = claim_user_id(claims)
        if user_id is None:
            _reject_refresh("missing_subject")

        stored_hash = await self._store.get_refresh_token_hash(user_id)
        if stored_hash is None:
            _reject_refresh("no_stored_hash", user_id)

        if not token_hash_matches(presented_token, stored_hash):
            _reject_refresh("hash_mismatch", user_id)

        result = await self._db.execute(
            select(Users.username, Users.role).where(Users.user_id == user_id)  # type: ignore[arg-type]
        )
        row = result.one_or_none()
        if row is None:
            _reject_refresh("user_not_found", user_id)

        # Role comes from the user row, not from the refresh token
        identity = Identity(user_id=user_id, role=row.role, username=row.username)
        pair = self._issue_pair(identity)

        rotated = await self._store.replace_refresh_token_hash(
            user_id, stored_hash, hash_token(pair.refresh_token)
        )
        if not rotated:
            # Another request rotated this token first
            _reject_refresh("rotation_lost_race", user_id)

        logger.info("refresh_succeeded", subject=user_id)
        return pair

    async def logout(self, user_id: int) -> None:
        """Revoke the user's refresh token. Safe to call repeatedly."""
        await self._store.clear_refresh_token_hash(user_id)
        logger.info("logout_succeeded", subject=user_id)

    def _issue_pair(self, identity: Identity) -> TokenPair:
        return TokenPair(
            access_token=self._issuer.issue_access_token(
                identity.user_id, identity.username, identity.role
            ),
            refresh_token=self._issuer.issue_refresh_token(identity.user_id, identity.username),
        )
