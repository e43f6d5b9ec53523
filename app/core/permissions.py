"""
Resource ownership authorization.

Two roles exist: ``admin`` may act on any resource, ``user`` only on
resources it owns. Owner ids are compared for equality, so user id ``0`` is
a legitimate owner and only ``None`` means "no owner" (admin-only lists).
"""

from app.config import Role
from app.core.auth import Identity
from app.core.exceptions import ForbiddenError
from app.core.logging import get_logger

logger = get_logger(__name__)


def is_admin(identity: Identity) -> bool:
    return identity.role == Role.ADMIN


def can_access(identity: Identity, target_owner_id: int | None = None) -> None:
    """
    Authorize ``identity`` against a resource owned by ``target_owner_id``.

    Args:
        identity: The authenticated caller
        target_owner_id: Owner of the resource, or None for resources with no
            single owner (only admins may touch those)

    Raises:
        ForbiddenError: If the caller is neither admin nor the owner
    """
    if is_admin(identity):
        return

    if target_owner_id is not None and identity.user_id == target_owner_id:
        return

    logger.info(
        "access_forbidden",
        role=identity.role,
        target_owner_id=target_owner_id,
    )
    raise ForbiddenError()
