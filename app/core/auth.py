"""
Request identity resolution.

This module provides:
- The ``Identity`` attached to every authenticated request
- ``IdentityMiddleware``, which resolves it from the access token before
  any handler runs, using the route policy table
- Dependencies for handlers to read it (``CurrentIdentity``)
- Session cookie helpers shared by the auth routes and the middleware
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from app.config import settings
from app.core.csrf import CSRF_COOKIE_NAME
from app.core.exceptions import InvalidTokenError, UnauthorizedError
from app.core.logging import get_logger, set_user_context
from app.core.route_policy import resolve_policy
from app.core.security import TokenIssuer, claim_user_id

logger = get_logger(__name__)

ACCESS_COOKIE_NAME = "access_token"
REFRESH_COOKIE_NAME = "refresh_token"
REFRESH_COOKIE_PATH = "/auth/refresh"


@dataclass(frozen=True)
class Identity:
    """Who is making the request, as asserted by a verified access token."""

    user_id: int
    role: str
    username: str

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Identity | None":
        user_id = claim_user_id(claims)
        role = claims.get("role")
        username = claims.get("username")
        if user_id is None or not isinstance(role, str) or not isinstance(username, str):
            return None
        return cls(user_id=user_id, role=role, username=username)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Process-wide token issuer built from the loaded settings."""
    return TokenIssuer(settings)


def extract_access_token(request: Request) -> str | None:
    """
    Read the access token from the request.

    The ``access_token`` cookie wins; an ``Authorization: Bearer`` header is
    the fallback for non-browser clients.
    """
    cookie_token = request.cookies.get(ACCESS_COOKIE_NAME)
    if cookie_token:
        return cookie_token

    auth_header = request.headers.get("Authorization")
    if auth_header:
        scheme, _, credentials = auth_header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return None


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    """
    Set authentication cookies in response.

    The refresh token cookie is scoped to the refresh endpoint so the browser
    never sends it anywhere else.
    """
    response.set_cookie(
        key=ACCESS_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path=REFRESH_COOKIE_PATH,
    )


def clear_auth_cookies(response: Response) -> None:
    """
    Clear every session cookie from response.

    The refresh cookie is also cleared at ``/`` to remove copies set by
    older clients.
    """
    for key, path in (
        (ACCESS_COOKIE_NAME, "/"),
        (REFRESH_COOKIE_NAME, REFRESH_COOKIE_PATH),
        (REFRESH_COOKIE_NAME, "/"),
        (CSRF_COOKIE_NAME, "/"),
    ):
        response.delete_cookie(
            key=key,
            path=path,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite="lax",
        )


def _reject(status_code: int, detail: str, clear_session: bool) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    response = JSONResponse(status_code=status_code, content={"detail": detail}, headers=headers)
    if clear_session:
        clear_auth_cookies(response)
    return response


class IdentityMiddleware(BaseHTTPMiddleware):
    """
    Resolves the caller's identity before dispatch.

    Public routes pass straight through. Everything else needs a valid
    access token, and role-restricted routes also need a listed role.
    On success the identity is stored on ``request.state.identity``.
    """

    def __init__(self, app: ASGIApp, issuer: TokenIssuer) -> None:
        super().__init__(app)
        self.issuer = issuer

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        policy = resolve_policy(request.method, request.url.path)
        if policy.public:
            return await call_next(request)

        token = extract_access_token(request)
        if token is None:
            logger.info("access_denied", reason="missing_token", path=request.url.path)
            return _reject(
                status.HTTP_401_UNAUTHORIZED, "Not authenticated", policy.clears_session
            )

        try:
            claims = self.issuer.verify_access_token(token)
        except InvalidTokenError as e:
            logger.info("access_denied", reason=str(e), path=request.url.path)
            return _reject(
                status.HTTP_401_UNAUTHORIZED,
                "Could not validate credentials",
                policy.clears_session,
            )

        identity = Identity.from_claims(claims)
        if identity is None:
            logger.info("access_denied", reason="malformed_claims", path=request.url.path)
            return _reject(
                status.HTTP_401_UNAUTHORIZED,
                "Could not validate credentials",
                policy.clears_session,
            )

        set_user_context(identity.user_id)

        if policy.roles and identity.role not in policy.roles:
            logger.info(
                "access_denied",
                reason="role_not_allowed",
                role=identity.role,
                path=request.url.path,
            )
            return _reject(status.HTTP_403_FORBIDDEN, "Forbidden", clear_session=False)

        request.state.identity = identity
        return await call_next(request)


def get_optional_identity(request: Request) -> Identity | None:
    """Identity resolved by the middleware, or None (public routes, logout)."""
    return getattr(request.state, "identity", None)


def get_current_identity(
    identity: Annotated[Identity | None, Depends(get_optional_identity)],
) -> Identity:
    """
    Identity of the authenticated caller.

    Raises:
        UnauthorizedError: If the route ran without a resolved identity
    """
    if identity is None:
        raise UnauthorizedError()
    return identity


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxies/load balancers),
    falls back to direct client IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (client)
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Type aliases for dependency injection
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
OptionalIdentity = Annotated[Identity | None, Depends(get_optional_identity)]
TokenIssuerDep = Annotated[TokenIssuer, Depends(get_token_issuer)]
