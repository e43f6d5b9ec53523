"""Tests for CSRF token generation and validation."""

import pytest

from app.config import Settings
from app.core.csrf import CsrfGuard, session_identifier

UA = "Mozilla/5.0 (X11; Linux x86_64)"


@pytest.fixture
def guard() -> CsrfGuard:
    return CsrfGuard(
        Settings(
            JWT_SECRET="unit-test-access-secret-0123456789abcdef",
            CSRF_SECRET="unit-test-csrf-secret-0123456789abcdef",
            DATABASE_URL="sqlite+aiosqlite://",
            CSRF_EXEMPT_PATHS="/checkout/webhook",
        )
    )


@pytest.mark.unit
class TestSessionIdentifier:
    def test_anonymous_without_access_token(self):
        assert session_identifier(None, UA) == f"anonymous|{UA}"

    def test_hash_prefix_of_access_token(self):
        sid = session_identifier("access.jwt.value", UA)
        token_part, _, agent = sid.partition("|")

        assert len(token_part) == 16
        assert agent == UA

    def test_missing_user_agent(self):
        assert session_identifier(None, None) == "anonymous|"


@pytest.mark.unit
class TestCsrfGuard:
    def test_token_shape(self, guard):
        token = guard.generate_token("access-1", UA)
        nonce, _, mac = token.partition(".")

        assert len(nonce) == 64
        assert len(mac) == 64

    def test_tokens_are_fresh_each_time(self, guard):
        assert guard.generate_token("access-1", UA) != guard.generate_token("access-1", UA)

    def test_valid_when_header_equals_cookie(self, guard):
        token = guard.generate_token("access-1", UA)

        assert guard.is_valid(token, token, "access-1", UA) is True

    def test_header_must_equal_cookie(self, guard):
        token = guard.generate_token("access-1", UA)
        other = guard.generate_token("access-1", UA)

        assert guard.is_valid(token, other, "access-1", UA) is False

    @pytest.mark.parametrize("header,cookie", [(None, "x.y"), ("x.y", None), ("", "")])
    def test_missing_parts(self, guard, header, cookie):
        assert guard.is_valid(header, cookie, "access-1", UA) is False

    def test_bound_to_access_token(self, guard):
        token = guard.generate_token("access-1", UA)

        assert guard.is_valid(token, token, "access-2", UA) is False

    def test_bound_to_user_agent(self, guard):
        token = guard.generate_token("access-1", UA)

        assert guard.is_valid(token, token, "access-1", "curl/8.0") is False

    def test_forged_mac(self, guard):
        token = guard.generate_token("access-1", UA)
        nonce = token.partition(".")[0]
        forged = f"{nonce}.{'0' * 64}"

        assert guard.is_valid(forged, forged, "access-1", UA) is False

    def test_token_without_separator(self, guard):
        assert guard.is_valid("abcdef", "abcdef", "access-1", UA) is False

    def test_other_secret_rejects(self, guard):
        other = CsrfGuard(
            Settings(
                JWT_SECRET="unit-test-access-secret-0123456789abcdef",
                CSRF_SECRET="a-different-csrf-secret-0123456789abcd",
                DATABASE_URL="sqlite+aiosqlite://",
            )
        )
        token = other.generate_token("access-1", UA)

        assert guard.is_valid(token, token, "access-1", UA) is False


@pytest.mark.unit
class TestShouldProtect:
    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "post"])
    def test_unsafe_methods_with_cookie(self, guard, method):
        assert guard.should_protect(method, "/orders", has_access_cookie=True) is True

    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    def test_safe_methods(self, guard, method):
        assert guard.should_protect(method, "/orders", has_access_cookie=True) is False

    def test_bearer_only_requests(self, guard):
        assert guard.should_protect("POST", "/orders", has_access_cookie=False) is False

    def test_exempt_prefix(self, guard):
        assert guard.should_protect("POST", "/checkout/webhook", has_access_cookie=True) is False
        assert (
            guard.should_protect("POST", "/checkout/webhook/stripe", has_access_cookie=True)
            is False
        )
