"""Tests for SessionAuthenticator and RefreshTokenStore."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select

from app.config import Role
from app.core.auth import get_token_issuer
from app.core.exceptions import InvalidCredentialsError, InvalidRefreshTokenError
from app.core.security import hash_token
from app.models.user import Users
from app.services.refresh_tokens import RefreshTokenStore
from app.services.session import SessionAuthenticator
from tests.helpers import DEFAULT_PASSWORD


async def stored_hash(db_session, user_id: int) -> str | None:
    result = await db_session.execute(
        select(Users.refresh_token_hash).where(Users.user_id == user_id)
    )
    return result.scalar_one()


@pytest.fixture
def authenticator(db_session) -> SessionAuthenticator:
    return SessionAuthenticator(db_session, get_token_issuer())


@pytest.mark.unit
class TestLogin:
    async def test_returns_identity_and_stores_refresh_hash(
        self, authenticator, db_session, test_user
    ):
        identity, pair = await authenticator.login("shopper1", DEFAULT_PASSWORD)

        assert identity.user_id == test_user.user_id
        assert identity.role == Role.USER
        assert await stored_hash(db_session, test_user.user_id) == hash_token(pair.refresh_token)

        claims = get_token_issuer().verify_access_token(pair.access_token)
        assert claims["sub"] == str(test_user.user_id)
        assert claims["role"] == Role.USER

    async def test_second_login_replaces_previous_session(self, authenticator, test_user):
        _, first = await authenticator.login("shopper1", DEFAULT_PASSWORD)
        await authenticator.login("shopper1", DEFAULT_PASSWORD)

        with pytest.raises(InvalidRefreshTokenError):
            await authenticator.refresh(first.refresh_token)

    @pytest.mark.parametrize(
        "username,password",
        [
            ("shopper1", "WrongPassword123!"),
            ("nobody", DEFAULT_PASSWORD),
            ("", DEFAULT_PASSWORD),
            ("shopper1", ""),
            ("", ""),
        ],
    )
    async def test_failures_are_indistinguishable(
        self, authenticator, test_user, username, password
    ):
        with pytest.raises(InvalidCredentialsError) as exc_info:
            await authenticator.login(username, password)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Incorrect username or password"

    async def test_failed_login_keeps_existing_session(
        self, authenticator, db_session, test_user
    ):
        _, pair = await authenticator.login("shopper1", DEFAULT_PASSWORD)

        with pytest.raises(InvalidCredentialsError):
            await authenticator.login("shopper1", "WrongPassword123!")

        assert await stored_hash(db_session, test_user.user_id) == hash_token(pair.refresh_token)


@pytest.mark.unit
class TestRefresh:
    async def test_rotation(self, authenticator, db_session, test_user):
        _, first = await authenticator.login("shopper1", DEFAULT_PASSWORD)

        second = await authenticator.refresh(first.refresh_token)

        assert second.refresh_token != first.refresh_token
        assert await stored_hash(db_session, test_user.user_id) == hash_token(second.refresh_token)

    async def test_refresh_token_is_single_use(self, authenticator, test_user):
        _, first = await authenticator.login("shopper1", DEFAULT_PASSWORD)
        await authenticator.refresh(first.refresh_token)

        with pytest.raises(InvalidRefreshTokenError):
            await authenticator.refresh(first.refresh_token)

    async def test_role_is_read_from_user_row(self, authenticator, db_session, test_user):
        _, first = await authenticator.login("shopper1", DEFAULT_PASSWORD)
        test_user.role = Role.ADMIN
        await db_session.commit()

        second = await authenticator.refresh(first.refresh_token)

        claims = get_token_issuer().verify_access_token(second.access_token)
        assert claims["role"] == Role.ADMIN

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    async def test_garbage_tokens(self, authenticator, token):
        with pytest.raises(InvalidRefreshTokenError) as exc_info:
            await authenticator.refresh(token)

        assert exc_info.value.detail == "Invalid refresh token"

    async def test_access_token_is_not_a_refresh_token(self, authenticator, test_user):
        _, pair = await authenticator.login("shopper1", DEFAULT_PASSWORD)

        with pytest.raises(InvalidRefreshTokenError):
            await authenticator.refresh(pair.access_token)

    async def test_expired_refresh_token(self, authenticator, db_session, test_user):
        issuer = get_token_issuer()
        expired = issuer.issue_refresh_token(
            test_user.user_id, test_user.username, expires_delta=timedelta(seconds=-1)
        )
        await RefreshTokenStore(db_session).set_refresh_token_hash(
            test_user.user_id, hash_token(expired)
        )

        with pytest.raises(InvalidRefreshTokenError):
            await authenticator.refresh(expired)

    async def test_after_logout(self, authenticator, test_user):
        _, pair = await authenticator.login("shopper1", DEFAULT_PASSWORD)
        await authenticator.logout(test_user.user_id)

        with pytest.raises(InvalidRefreshTokenError):
            await authenticator.refresh(pair.refresh_token)

    async def test_deleted_user(self, authenticator, db_session, test_user):
        _, pair = await authenticator.login("shopper1", DEFAULT_PASSWORD)
        await db_session.delete(test_user)
        await db_session.commit()

        with pytest.raises(InvalidRefreshTokenError):
            await authenticator.refresh(pair.refresh_token)

    async def test_lost_rotation_race(self, authenticator, db_session, test_user):
        """A concurrent refresh that rotated first makes this one fail."""
        _, pair = await authenticator.login("shopper1", DEFAULT_PASSWORD)

        with patch.object(
            RefreshTokenStore, "replace_refresh_token_hash", return_value=False
        ) as replace:
            with pytest.raises(InvalidRefreshTokenError):
                await authenticator.refresh(pair.refresh_token)

        replace.assert_awaited_once()


@pytest.mark.unit
class TestLogout:
    async def test_is_idempotent(self, authenticator, db_session, test_user):
        await authenticator.login("shopper1", DEFAULT_PASSWORD)

        await authenticator.logout(test_user.user_id)
        await authenticator.logout(test_user.user_id)

        assert await stored_hash(db_session, test_user.user_id) is None

    async def test_unknown_user_is_a_noop(self, authenticator):
        await authenticator.logout(424242)


@pytest.mark.unit
class TestRefreshTokenStore:
    async def test_compare_and_swap(self, db_session, test_user):
        store = RefreshTokenStore(db_session)
        await store.set_refresh_token_hash(test_user.user_id, "a" * 64)

        assert await store.replace_refresh_token_hash(test_user.user_id, "a" * 64, "b" * 64)
        # Second swap from the same expected value loses
        assert not await store.replace_refresh_token_hash(test_user.user_id, "a" * 64, "c" * 64)
        assert await store.get_refresh_token_hash(test_user.user_id) == "b" * 64

    async def test_swap_after_clear_fails(self, db_session, test_user):
        store = RefreshTokenStore(db_session)
        await store.set_refresh_token_hash(test_user.user_id, "a" * 64)
        await store.clear_refresh_token_hash(test_user.user_id)

        assert not await store.replace_refresh_token_hash(test_user.user_id, "a" * 64, "b" * 64)
        assert await store.get_refresh_token_hash(test_user.user_id) is None

    async def test_unknown_user(self, db_session):
        assert await RefreshTokenStore(db_session).get_refresh_token_hash(999) is None
