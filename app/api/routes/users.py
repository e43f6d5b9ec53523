"""
User endpoints.

Every route that reads or changes a single account calls ``can_access``
with the account id before touching it: users reach their own account,
admins reach all of them.
"""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy import delete, select

from app.api.dependencies import DbSession
from app.config import settings
from app.core.auth import CurrentIdentity
from app.core.logging import get_logger
from app.core.permissions import can_access
from app.core.security import (
    generate_action_token,
    get_password_hash,
    hash_token,
    verify_password,
)
from app.models.order import OrderItems, Orders
from app.models.user import Users
from app.schemas.auth import MessageResponse
from app.schemas.user import (
    ChangePasswordRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    UserResponse,
    UserUpdate,
)
from app.services.rate_limit import rate_limit
from app.tasks.queue import SEND_PASSWORD_RESET_EMAIL, SEND_VERIFICATION_EMAIL, enqueue_job
from app.utils import utc_now

logger = get_logger(__name__)

router = APIRouter(prefix="/user", tags=["users"])

UserId = Annotated[int, Path(ge=0, description="User ID")]

PASSWORD_RESET_REQUESTED = "If an account with that email exists, a reset link has been sent."


async def _get_user_or_404(db: DbSession, user_id: int) -> Users:
    result = await db.execute(
        select(Users).where(Users.user_id == user_id)  # type: ignore[arg-type]
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# Static paths are declared before /{user_id} so they are matched first.


@router.get("/verify-email/confirm", response_model=MessageResponse)
async def confirm_email(
    db: DbSession,
    token: Annotated[str, Query(min_length=1)],
) -> MessageResponse:
    """Mark the email as verified using the link token. Tokens are single-use."""
    result = await db.execute(
        select(Users).where(Users.verify_token == hash_token(token))  # type: ignore[arg-type]
    )
    user = result.scalar_one_or_none()

    # An expired token is treated exactly like an unknown one
    if user is None or user.verify_token_expiry is None or user.verify_token_expiry < utc_now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification token",
        )

    user.email_verified = True
    user.verify_token = None
    user.verify_token_expiry = None
    user.updated_at = utc_now()
    await db.commit()

    logger.info("email_verified", subject=user.user_id)
    return MessageResponse(message="Email verified")


@router.post("/verify-email/request", response_model=MessageResponse)
async def request_email_verification(
    identity: CurrentIdentity,
    db: DbSession,
) -> MessageResponse:
    """Issue a fresh verification token for the caller and email the link."""
    user = await _get_user_or_404(db, identity.user_id)
    if user.email_verified:
        return MessageResponse(message="Email already verified")

    token = generate_action_token()
    user.verify_token = hash_token(token)
    user.verify_token_expiry = utc_now() + timedelta(hours=settings.VERIFY_TOKEN_EXPIRE_HOURS)
    await db.commit()

    await enqueue_job(SEND_VERIFICATION_EMAIL, user_id=identity.user_id, token=token)
    logger.info("email_verification_requested", subject=identity.user_id)
    return MessageResponse(message="Verification email sent")


@router.post(
    "/password-reset/request",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("password_reset", settings.PASSWORD_RESET_RATE_LIMIT))],
)
async def request_password_reset(
    body: PasswordResetRequest,
    db: DbSession,
) -> MessageResponse:
    """
    Email a password reset link.

    The response is identical whether or not the address is registered.
    """
    result = await db.execute(
        select(Users).where(Users.email == str(body.email).lower())  # type: ignore[arg-type]
    )
    user = result.scalar_one_or_none()

    if user is not None and user.user_id is not None:
        token = generate_action_token()
        user.forget_password_token = hash_token(token)
        user.forget_password_token_expiry = utc_now() + timedelta(
            minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
        )
        await db.commit()
        await enqueue_job(SEND_PASSWORD_RESET_EMAIL, user_id=user.user_id, token=token)
        logger.info("password_reset_requested", subject=user.user_id)
    else:
        logger.info("password_reset_requested_unknown_email")

    return MessageResponse(message=PASSWORD_RESET_REQUESTED)


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    body: PasswordResetConfirm,
    db: DbSession,
) -> MessageResponse:
    """Set a new password with a reset token. Also ends any open session."""
    result = await db.execute(
        select(Users).where(Users.forget_password_token == hash_token(body.token))  # type: ignore[arg-type]
    )
    user = result.scalar_one_or_none()

    if (
        user is None
        or user.forget_password_token_expiry is None
        or user.forget_password_token_expiry < utc_now()
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token",
        )

    user.password_hash = await get_password_hash(body.new_password)
    user.forget_password_token = None
    user.forget_password_token_expiry = None
    user.refresh_token_hash = None
    user.updated_at = utc_now()
    await db.commit()

    logger.info("password_reset_completed", subject=user.user_id)
    return MessageResponse(message="Password has been reset")


@router.put("/change-password/{user_id}", response_model=MessageResponse)
async def change_password(
    user_id: UserId,
    body: ChangePasswordRequest,
    identity: CurrentIdentity,
    db: DbSession,
) -> MessageResponse:
    """
    Change a password after checking the current one.

    The stored refresh token is revoked, so other devices must log in again.
    """
    can_access(identity, user_id)
    user = await _get_user_or_404(db, user_id)

    if not await verify_password(body.old_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    user.password_hash = await get_password_hash(body.new_password)
    user.refresh_token_hash = None
    user.updated_at = utc_now()
    await db.commit()

    logger.info("password_changed", subject=user_id)
    return MessageResponse(message="Password changed")


@router.get("", response_model=list[UserResponse])
async def list_users(identity: CurrentIdentity, db: DbSession) -> list[Users]:
    """List all users (admin only)."""
    can_access(identity)
    result = await db.execute(select(Users).order_by(Users.user_id))  # type: ignore[arg-type]
    return list(result.scalars().all())


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UserId, identity: CurrentIdentity, db: DbSession) -> Users:
    can_access(identity, user_id)
    return await _get_user_or_404(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UserId,
    body: UserUpdate,
    identity: CurrentIdentity,
    db: DbSession,
) -> Users:
    """
    Update profile fields.

    Changing the email address resets its verified state.
    """
    can_access(identity, user_id)
    user = await _get_user_or_404(db, user_id)

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes:
        changes["email"] = str(changes["email"]).lower()

    if "email" in changes and changes["email"] != user.email:
        taken = await db.execute(
            select(Users.user_id).where(Users.email == changes["email"])  # type: ignore[arg-type]
        )
        if taken.first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with that email already exists!",
            )
        user.email_verified = False
        user.verify_token = None
        user.verify_token_expiry = None

    if "username" in changes and changes["username"] != user.username:
        taken = await db.execute(
            select(Users.user_id).where(Users.username == changes["username"])  # type: ignore[arg-type]
        )
        if taken.first() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Username is already taken",
            )

    for field, value in changes.items():
        setattr(user, field, value)
    user.updated_at = utc_now()
    await db.commit()
    await db.refresh(user)

    logger.info("user_updated", subject=user_id, fields=sorted(changes))
    return user


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: UserId, identity: CurrentIdentity, db: DbSession) -> MessageResponse:
    """Delete an account. Its orders are removed with it."""
    can_access(identity, user_id)
    user = await _get_user_or_404(db, user_id)

    # Explicit so backends without enforced foreign keys behave the same
    order_ids = select(Orders.order_id).where(Orders.user_id == user_id)  # type: ignore[arg-type]
    await db.execute(delete(OrderItems).where(OrderItems.order_id.in_(order_ids)))  # type: ignore[attr-defined]
    await db.execute(delete(Orders).where(Orders.user_id == user_id))  # type: ignore[arg-type]
    await db.delete(user)
    await db.commit()

    logger.info("user_deleted", subject=user_id)
    return MessageResponse(message="User deleted")
