"""
Double-submit CSRF protection for cookie-authenticated requests.

A token is ``<nonce>.<mac>`` where ``mac`` is HMAC-SHA256 over the session
identifier and the nonce, keyed with ``CSRF_SECRET``. The token is handed to
the client twice: in an httpOnly ``csrf_token`` cookie and in the login /
refresh response body. State-changing requests must echo it back in the
``x-csrf-token`` header.

The session identifier binds a token to the access token cookie it was
issued alongside (plus the User-Agent), so a token minted for one session
is useless in another.
"""

import hashlib
import hmac
import secrets
from functools import lru_cache

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from app.config import Settings, settings
from app.core.exceptions import CsrfError
from app.core.logging import get_logger

logger = get_logger(__name__)

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "x-csrf-token"
CSRF_COOKIE_MAX_AGE = 7 * 24 * 60 * 60
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
ANONYMOUS_SESSION = "anonymous"

# Must match the access cookie name in app.core.auth
_ACCESS_COOKIE_NAME = "access_token"


def session_identifier(access_token: str | None, user_agent: str | None) -> str:
    """Short hash of the access token plus the User-Agent."""
    token_part = (
        hashlib.sha256(access_token.encode("utf-8")).hexdigest()[:16]
        if access_token
        else ANONYMOUS_SESSION
    )
    return f"{token_part}|{user_agent or ''}"


def request_user_agent(request: Request) -> str | None:
    """User-Agent as bound into session identifiers, both when minting and checking."""
    return request.headers.get("User-Agent")


class CsrfGuard:
    """Generates and validates session-bound CSRF tokens."""

    def __init__(self, config: Settings) -> None:
        self._secret = config.CSRF_SECRET.encode("utf-8")
        self._exempt_paths = tuple(config.CSRF_EXEMPT_PATHS)

    def _mac(self, session_id: str, nonce: str) -> str:
        message = f"{session_id}!{nonce}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def generate_token(self, access_token: str | None, user_agent: str | None) -> str:
        """
        Mint a token bound to ``access_token``.

        At login and refresh pass the access token being issued in the same
        response, not the one on the incoming request.
        """
        nonce = secrets.token_hex(32)
        session_id = session_identifier(access_token, user_agent)
        return f"{nonce}.{self._mac(session_id, nonce)}"

    def should_protect(self, method: str, path: str, has_access_cookie: bool) -> bool:
        """
        Only unsafe methods carrying a session cookie are checked.

        Bearer-only clients are not exposed to CSRF, and exempt paths (the
        payment webhook) authenticate by other means.
        """
        if method.upper() not in UNSAFE_METHODS:
            return False
        if any(path.startswith(exempt) for exempt in self._exempt_paths):
            return False
        return has_access_cookie

    def is_valid(
        self,
        header_token: str | None,
        cookie_token: str | None,
        access_token: str | None,
        user_agent: str | None,
    ) -> bool:
        if not header_token or not cookie_token:
            return False
        if not hmac.compare_digest(header_token, cookie_token):
            return False

        nonce, sep, mac = header_token.partition(".")
        if not sep or not nonce or not mac:
            return False
        expected = self._mac(session_identifier(access_token, user_agent), nonce)
        return hmac.compare_digest(mac, expected)

    def validate(self, request: Request) -> None:
        """
        Check the request, raising on failure.

        Raises:
            CsrfError: Header missing, cookie missing, mismatch, or token not
                bound to this session
        """
        access_token = request.cookies.get(_ACCESS_COOKIE_NAME)
        if not self.should_protect(request.method, request.url.path, bool(access_token)):
            return
        valid = self.is_valid(
            request.headers.get(CSRF_HEADER_NAME),
            request.cookies.get(CSRF_COOKIE_NAME),
            access_token,
            request_user_agent(request),
        )
        if not valid:
            raise CsrfError()


@lru_cache
def get_csrf_guard() -> CsrfGuard:
    """Process-wide CSRF guard built from the loaded settings."""
    return CsrfGuard(settings)


def set_csrf_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=CSRF_COOKIE_MAX_AGE,
        path="/",
    )


class CsrfMiddleware(BaseHTTPMiddleware):
    """Rejects unsafe cookie-authenticated requests without a valid CSRF token."""

    def __init__(self, app: ASGIApp, guard: CsrfGuard) -> None:
        super().__init__(app)
        self.guard = guard

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            self.guard.validate(request)
        except CsrfError as e:
            logger.info("csrf_rejected", method=request.method, path=request.url.path)
            return JSONResponse(status_code=e.status_code, content={"detail": e.detail})
        return await call_next(request)
