"""Helpers shared by API tests."""

from httpx import AsyncClient, Response

from app.core.auth import get_token_issuer
from app.models.user import Users

DEFAULT_PASSWORD = "TestPassword123!"


def auth_headers(user: Users) -> dict[str, str]:
    """Bearer header for ``user`` without going through login."""
    assert user.user_id is not None
    token = get_token_issuer().issue_access_token(user.user_id, user.username, user.role)
    return {"Authorization": f"Bearer {token}"}


async def login(client: AsyncClient, username: str, password: str = DEFAULT_PASSWORD) -> Response:
    """Log in through the API; the client keeps the session cookies."""
    response = await client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response


def csrf_headers(login_response: Response) -> dict[str, str]:
    """Header echoing the CSRF token from a login or refresh response."""
    return {"x-csrf-token": login_response.json()["csrfToken"]}
