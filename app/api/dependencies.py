"""
Shared route dependencies.

Query parameter models used with ``Depends()`` plus typed aliases for the
database session and the session authenticator.
"""

from typing import Annotated

from fastapi import Depends
from pydantic import BaseModel, Field, computed_field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import TokenIssuerDep
from app.core.csrf import CsrfGuard, get_csrf_guard
from app.core.database import get_db
from app.services.session import SessionAuthenticator

DbSession = Annotated[AsyncSession, Depends(get_db)]
CsrfGuardDep = Annotated[CsrfGuard, Depends(get_csrf_guard)]


class PaginationParams(BaseModel):
    """Common pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number")
    limit: int = Field(default=20, ge=1, le=100, description="Items per page")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def offset(self) -> int:
        """Calculate offset from page and limit."""
        return (self.page - 1) * self.limit


def get_session_authenticator(db: DbSession, issuer: TokenIssuerDep) -> SessionAuthenticator:
    return SessionAuthenticator(db, issuer)


Authenticator = Annotated[SessionAuthenticator, Depends(get_session_authenticator)]
