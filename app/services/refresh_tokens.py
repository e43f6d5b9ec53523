"""
Refresh token persistence.

One refresh token per user: the SHA-256 of the currently valid token lives
on the user row. Every write is a single UPDATE statement so it relies on
the database's row-level atomicity and needs no application locking.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import Users


class RefreshTokenStore:
    """Reads and writes ``Users.refresh_token_hash``."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def set_refresh_token_hash(self, user_id: int, token_hash: str) -> None:
        """Store the hash for the user's new refresh token, replacing any previous one."""
        await self._db.execute(
            update(Users)
            .where(Users.user_id == user_id)  # type: ignore[arg-type]
            .values(refresh_token_hash=token_hash)
        )
        await self._db.commit()

    async def get_refresh_token_hash(self, user_id: int) -> str | None:
        result = await self._db.execute(
            select(Users.refresh_token_hash).where(Users.user_id == user_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def clear_refresh_token_hash(self, user_id: int) -> None:
        """Revoke refresh capability. A no-op for unknown users."""
        await self._db.execute(
            update(Users)
            .where(Users.user_id == user_id)  # type: ignore[arg-type]
            .values(refresh_token_hash=None)
        )
        await self._db.commit()

    async def replace_refresh_token_hash(
        self, user_id: int, expected_hash: str, new_hash: str
    ) -> bool:
        """
        Swap the stored hash only if it still equals ``expected_hash``.

        Two concurrent rotations of the same refresh token race on this
        statement; exactly one sees a matching row.

        Returns:
            True if this call performed the rotation
        """
        result = await self._db.execute(
            update(Users)
            .where(
                Users.user_id == user_id,  # type: ignore[arg-type]
                Users.refresh_token_hash == expected_hash,  # type: ignore[arg-type]
            )
            .values(refresh_token_hash=new_hash)
            .execution_options(synchronize_session=False)
        )
        await self._db.commit()
        return result.rowcount == 1  # type: ignore[attr-defined]
