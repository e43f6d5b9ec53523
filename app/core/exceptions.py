"""
Authentication and authorization errors.

Every client-facing error is an HTTPException subclass so FastAPI renders
it as ``{"detail": "<message>"}`` with the right status code. Messages are
fixed per class: callers log the specific cause server-side and never put
it in the detail.
"""

from fastapi import HTTPException, status


class InvalidTokenError(Exception):
    """A JWT failed verification (bad signature, expired, malformed, wrong type).

    Internal to the token layer; translated into a client-facing error by
    whoever consumes the token.
    """


class InvalidCredentialsError(HTTPException):
    """Unknown username or wrong password. Deliberately says which of neither."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )


class InvalidRefreshTokenError(HTTPException):
    """Any refresh failure: missing, bad signature, expired, no stored hash, mismatch."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )


class UnauthorizedError(HTTPException):
    """Access token missing or invalid on a protected route."""

    def __init__(self, detail: str = "Not authenticated") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(HTTPException):
    """Authenticated, but not entitled to the target resource."""

    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


class CsrfError(HTTPException):
    """Double-submit CSRF token missing or not valid for this session."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="CSRF token missing or invalid",
        )


class HashingError(HTTPException):
    """The password hashing primitive failed. Never carries the plaintext."""

    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )
