"""Tests for the arq email jobs."""

from unittest.mock import AsyncMock, patch

import pytest
from arq import Retry

from app.core.security import hash_token
from app.models.user import Users
from app.tasks.email_jobs import send_password_reset_email_job, send_verification_email_job

CTX = {"job_try": 1}


def user_with(**fields) -> Users:
    values = {
        "user_id": 9,
        "username": "shopper9",
        "email": "shopper9@example.com",
        "password_hash": "x",
    }
    values.update(fields)
    return Users(**values)


@pytest.mark.unit
class TestVerificationEmailJob:
    async def test_sends_for_current_token(self):
        user = user_with(verify_token=hash_token("tok"))
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=user),
            patch(
                "app.tasks.email_jobs.send_verification_email",
                new_callable=AsyncMock,
                return_value=True,
            ) as send,
        ):
            await send_verification_email_job(CTX, user_id=9, token="tok")

        send.assert_awaited_once_with(user=user, token="tok")

    async def test_skips_superseded_token(self):
        user = user_with(verify_token=hash_token("newer"))
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=user),
            patch("app.tasks.email_jobs.send_verification_email", new_callable=AsyncMock) as send,
        ):
            await send_verification_email_job(CTX, user_id=9, token="older")

        send.assert_not_awaited()

    async def test_skips_verified_user(self):
        user = user_with(verify_token=hash_token("tok"), email_verified=True)
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=user),
            patch("app.tasks.email_jobs.send_verification_email", new_callable=AsyncMock) as send,
        ):
            await send_verification_email_job(CTX, user_id=9, token="tok")

        send.assert_not_awaited()

    async def test_missing_user(self):
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=None),
            patch("app.tasks.email_jobs.send_verification_email", new_callable=AsyncMock) as send,
        ):
            await send_verification_email_job(CTX, user_id=9, token="tok")

        send.assert_not_awaited()

    async def test_failed_send_retries(self):
        user = user_with(verify_token=hash_token("tok"))
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=user),
            patch(
                "app.tasks.email_jobs.send_verification_email",
                new_callable=AsyncMock,
                return_value=False,
            ),
        ):
            with pytest.raises(Retry):
                await send_verification_email_job({"job_try": 2}, user_id=9, token="tok")

    async def test_lookup_error_retries(self):
        with patch(
            "app.tasks.email_jobs._load_user",
            new_callable=AsyncMock,
            side_effect=ConnectionError("db down"),
        ):
            with pytest.raises(Retry):
                await send_verification_email_job(CTX, user_id=9, token="tok")


@pytest.mark.unit
class TestPasswordResetEmailJob:
    async def test_sends_for_current_token(self):
        user = user_with(forget_password_token=hash_token("reset"))
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=user),
            patch(
                "app.tasks.email_jobs.send_password_reset_email",
                new_callable=AsyncMock,
                return_value=True,
            ) as send,
        ):
            await send_password_reset_email_job(CTX, user_id=9, token="reset")

        send.assert_awaited_once_with(user=user, token="reset")

    async def test_skips_used_token(self):
        user = user_with(forget_password_token=None)
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=user),
            patch("app.tasks.email_jobs.send_password_reset_email", new_callable=AsyncMock) as send,
        ):
            await send_password_reset_email_job(CTX, user_id=9, token="reset")

        send.assert_not_awaited()

    async def test_failed_send_retries(self):
        user = user_with(forget_password_token=hash_token("reset"))
        with (
            patch("app.tasks.email_jobs._load_user", new_callable=AsyncMock, return_value=user),
            patch(
                "app.tasks.email_jobs.send_password_reset_email",
                new_callable=AsyncMock,
                return_value=False,
            ),
        ):
            with pytest.raises(Retry):
                await send_password_reset_email_job(CTX, user_id=9, token="reset")
