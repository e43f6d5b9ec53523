"""
Authentication endpoints.

Session tokens travel in httpOnly cookies: ``access_token`` on every path,
``refresh_token`` only on /auth/refresh. Login and refresh also return a
CSRF token bound to the newly issued access token; the client echoes it in
the ``x-csrf-token`` header on state-changing requests.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from app.api.dependencies import Authenticator, CsrfGuardDep, DbSession
from app.config import Role, settings
from app.core.auth import (
    REFRESH_COOKIE_NAME,
    CurrentIdentity,
    OptionalIdentity,
    clear_auth_cookies,
    set_auth_cookies,
)
from app.core.csrf import CsrfGuard, request_user_agent, set_csrf_cookie
from app.core.logging import get_logger
from app.core.security import get_password_hash
from app.models.user import Users
from app.schemas.auth import (
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    SessionResponse,
)
from app.schemas.user import UserResponse
from app.services.rate_limit import rate_limit
from app.services.session import TokenPair

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _open_session(
    request: Request, response: Response, csrf_guard: CsrfGuard, pair: TokenPair
) -> str:
    """Set session cookies and a CSRF token bound to the new access token."""
    set_auth_cookies(response, pair.access_token, pair.refresh_token)
    csrf_token = csrf_guard.generate_token(pair.access_token, request_user_agent(request))
    set_csrf_cookie(response, csrf_token)
    return csrf_token


@router.post(
    "/login",
    response_model=SessionResponse,
    dependencies=[Depends(rate_limit("login", settings.LOGIN_RATE_LIMIT))],
)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    authenticator: Authenticator,
    csrf_guard: CsrfGuardDep,
) -> SessionResponse:
    """
    Authenticate with username and password.

    Sets the session cookies and returns the CSRF token. Any failure returns
    the same 401 "Incorrect username or password".
    """
    _, pair = await authenticator.login(credentials.username, credentials.password)
    csrf_token = _open_session(request, response, csrf_guard, pair)
    return SessionResponse.build("Logged in", csrf_token)


@router.post(
    "/refresh",
    response_model=SessionResponse,
    dependencies=[Depends(rate_limit("refresh", settings.REFRESH_RATE_LIMIT))],
)
async def refresh(
    request: Request,
    response: Response,
    authenticator: Authenticator,
    csrf_guard: CsrfGuardDep,
    body: RefreshRequest | None = None,
) -> SessionResponse:
    """
    Exchange the refresh token for a new token pair.

    The presented refresh token is single-use: it stops working as soon as
    this call succeeds.
    """
    # A present cookie wins even when empty; the body is only a fallback
    presented = request.cookies.get(REFRESH_COOKIE_NAME)
    if presented is None and body is not None:
        presented = body.refresh_token
    pair = await authenticator.refresh(presented)
    csrf_token = _open_session(request, response, csrf_guard, pair)
    return SessionResponse.build("Refreshed", csrf_token)


@router.post(
    "/logout",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("logout", settings.LOGOUT_RATE_LIMIT))],
)
async def logout(
    response: Response,
    identity: OptionalIdentity,
    authenticator: Authenticator,
) -> MessageResponse | JSONResponse:
    """
    End the session.

    Cookies are cleared before anything else so the client is logged out
    locally even if revoking the refresh token fails.
    """
    clear_auth_cookies(response)

    if identity is None:
        rejection = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Not authenticated"},
        )
        clear_auth_cookies(rejection)
        return rejection

    await authenticator.logout(identity.user_id)
    return MessageResponse(message="Logged out")


@router.get("/profile", response_model=ProfileResponse)
async def profile(identity: CurrentIdentity) -> ProfileResponse:
    """Return the claims of the current access token."""
    return ProfileResponse(
        user_id=identity.user_id, username=identity.username, role=identity.role
    )


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("register", settings.REGISTER_RATE_LIMIT))],
)
async def register(body: RegisterRequest, db: DbSession) -> Users:
    """
    Create a new account with the ``user`` role.

    Registration does not log the user in.
    """
    email = str(body.email).lower()

    existing = await db.execute(
        select(Users.user_id).where(Users.email == email)  # type: ignore[arg-type]
    )
    if existing.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with that email already exists!",
        )

    existing = await db.execute(
        select(Users.user_id).where(Users.username == body.username)  # type: ignore[arg-type]
    )
    if existing.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username is already taken",
        )

    user = Users(
        username=body.username,
        email=email,
        password_hash=await get_password_hash(body.password),
        role=Role.USER,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("user_registered", subject=user.user_id)
    return user
