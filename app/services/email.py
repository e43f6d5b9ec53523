"""Transactional email over SMTP (account verification, password reset)."""

import asyncio
import html
from email.message import EmailMessage
from urllib.parse import quote

import aiosmtplib
from aiosmtplib.errors import (
    SMTPAuthenticationError,
    SMTPConnectError,
    SMTPConnectTimeoutError,
    SMTPException,
    SMTPReadTimeoutError,
)

from app.config import settings
from app.core.logging import get_logger
from app.models.user import Users

logger = get_logger(__name__)

MAX_CONNECT_ATTEMPTS = 3

_HTML_LAYOUT = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #222; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .button {{
            display: inline-block;
            padding: 12px 24px;
            background-color: #1f6feb;
            color: white;
            text-decoration: none;
            border-radius: 4px;
        }}
    </style>
</head>
<body>
    <div class="container">
        <h2>{heading}</h2>
        <p>Hi {username},</p>
        <p>{intro}</p>
        <p><a href="{url}" class="button">{action}</a></p>
        <p>Or copy this link into your browser:</p>
        <p><code>{url}</code></p>
        <p><small>{expiry}</small></p>
        <p><small>{ignore}</small></p>
    </div>
</body>
</html>
"""


async def send_email(
    to: str,
    subject: str,
    body: str,
    html_body: str | None = None,
) -> bool:
    """
    Send one email via SMTP.

    Only connection failures are retried: once the server may have accepted
    the message a retry risks a duplicate.

    Returns:
        True if the server accepted the message, False otherwise. Never raises.
    """
    message = EmailMessage()
    message["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    for attempt in range(1, MAX_CONNECT_ATTEMPTS + 1):
        try:
            await aiosmtplib.send(
                message,
                hostname=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USER or None,
                password=settings.SMTP_PASSWORD or None,
                use_tls=settings.SMTP_TLS,
                start_tls=settings.SMTP_STARTTLS,
                timeout=30,
            )
            logger.info("email_sent", to=to, subject=subject, attempt=attempt)
            return True

        except (SMTPConnectError, SMTPConnectTimeoutError) as e:
            logger.warning(
                "email_connection_failed",
                to=to,
                attempt=attempt,
                error_type=type(e).__name__,
            )
            if attempt < MAX_CONNECT_ATTEMPTS:
                await asyncio.sleep(2 ** (attempt - 1))

        except (SMTPReadTimeoutError, SMTPAuthenticationError) as e:
            # Ambiguous delivery or bad credentials: retrying cannot help
            logger.error("email_send_failed", to=to, error=str(e), error_type=type(e).__name__)
            return False

        except SMTPException as e:
            logger.error("email_smtp_error", to=to, error=str(e), error_type=type(e).__name__)
            return False

    logger.error("email_connection_failed_all_retries", to=to, subject=subject)
    return False


def _render(
    user: Users,
    heading: str,
    intro: str,
    url: str,
    action: str,
    expiry: str,
    ignore: str,
) -> tuple[str, str]:
    """Build (plain text, html) bodies for a single-link action email."""
    text = f"Hi {user.username},\n\n{intro}\n\n{url}\n\n{expiry}\n\n{ignore}\n"
    rendered = _HTML_LAYOUT.format(
        heading=heading,
        username=html.escape(user.username),
        intro=intro,
        url=html.escape(url, quote=True),
        action=action,
        expiry=expiry,
        ignore=ignore,
    )
    return text, rendered


async def send_verification_email(user: Users, token: str) -> bool:
    """
    Send email verification link to user.

    Args:
        user: Recipient
        token: Raw verification token (not hashed)
    """
    url = f"{settings.FRONTEND_URL}/verify-email?token={quote(token)}"
    hours = settings.VERIFY_TOKEN_EXPIRE_HOURS
    text, rendered = _render(
        user,
        heading=f"Welcome to {settings.PROJECT_NAME}",
        intro="Please confirm your email address to finish setting up your account.",
        url=url,
        action="Verify Email Address",
        expiry=f"This link will expire in {hours} hours.",
        ignore="If you didn't create an account, you can safely ignore this email.",
    )
    return await send_email(
        to=user.email, subject="Verify your email address", body=text, html_body=rendered
    )


async def send_password_reset_email(user: Users, token: str) -> bool:
    """
    Send password reset link to user.

    Args:
        user: Recipient
        token: Raw reset token (not hashed)
    """
    url = f"{settings.FRONTEND_URL}/reset-password?token={quote(token)}"
    minutes = settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
    text, rendered = _render(
        user,
        heading="Reset your password",
        intro="We received a request to reset your password.",
        url=url,
        action="Reset Password",
        expiry=f"This link will expire in {minutes} minutes.",
        ignore="If you didn't request this, you can ignore this email. Your password will not change.",
    )
    return await send_email(
        to=user.email, subject="Reset your password", body=text, html_body=rendered
    )
