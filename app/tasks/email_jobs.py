"""Email background jobs for arq worker."""

from typing import Any

from arq import Retry
from sqlalchemy import select

from app.core.database import get_async_session
from app.core.logging import bind_context, get_logger
from app.core.security import token_hash_matches
from app.models.user import Users
from app.services.email import send_password_reset_email, send_verification_email

logger = get_logger(__name__)


def _retry(ctx: dict[str, Any]) -> Retry:
    # arq counts job_try from 1: 5s, 10s, 15s...
    return Retry(defer=ctx["job_try"] * 5)


async def _load_user(user_id: int) -> Users | None:
    async with get_async_session() as db:
        result = await db.execute(
            select(Users).where(Users.user_id == user_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()


async def send_verification_email_job(ctx: dict[str, Any], user_id: int, token: str) -> None:
    """
    Send the email verification link.

    Skipped when the address is already verified or a newer token replaced
    this one.

    Raises:
        Retry: If the lookup or the send fails (up to max_tries)
    """
    bind_context(task="send_verification_email", subject=user_id)

    try:
        user = await _load_user(user_id)
    except Exception as e:
        logger.error("verification_email_lookup_failed", error_type=type(e).__name__)
        raise _retry(ctx) from e

    if user is None:
        logger.warning("verification_email_user_not_found")
        return
    if user.email_verified:
        logger.info("verification_email_skipped", reason="already_verified")
        return
    if not user.verify_token or not token_hash_matches(token, user.verify_token):
        logger.info("verification_email_skipped", reason="token_superseded")
        return

    if not await send_verification_email(user=user, token=token):
        logger.error("verification_email_failed")
        raise _retry(ctx)
    logger.info("verification_email_sent")


async def send_password_reset_email_job(ctx: dict[str, Any], user_id: int, token: str) -> None:
    """
    Send the password reset link.

    Skipped when the reset token was already used or replaced.

    Raises:
        Retry: If the lookup or the send fails (up to max_tries)
    """
    bind_context(task="send_password_reset_email", subject=user_id)

    try:
        user = await _load_user(user_id)
    except Exception as e:
        logger.error("password_reset_email_lookup_failed", error_type=type(e).__name__)
        raise _retry(ctx) from e

    if user is None:
        logger.warning("password_reset_email_user_not_found")
        return
    if not user.forget_password_token or not token_hash_matches(
        token, user.forget_password_token
    ):
        logger.info("password_reset_email_skipped", reason="token_superseded")
        return

    if not await send_password_reset_email(user=user, token=token):
        logger.error("password_reset_email_failed")
        raise _retry(ctx)
    logger.info("password_reset_email_sent")
