"""Email delivery via Resend API."""

import asyncio
import logging
from html import escape

import resend

from reelcut.config import get_settings

logger = logging.getLogger(__name__)


async def send_password_reset_email(to_email: str, name: str, reset_url: str) -> bool:
    """Send a password reset link via Resend.

    Returns True on success, False on failure.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        logger.warning("Resend API key not configured, skipping password reset email")
        return False

    html_body = (
        f"<p>Hi {escape(name)},</p>"
        f"<p>Someone asked to reset the password for your {escape(settings.app_name)} account. "
        f"The link below is valid for {settings.password_reset_ttl_hours} hours and works once.</p>"
        f'<p><a href="{escape(reset_url)}">Reset your password</a></p>'
        "<p>If this wasn't you, you can ignore this email.</p>"
    )
    try:
        await asyncio.to_thread(
            resend.Emails.send,
            {
                "from": settings.email_from,
                "to": [to_email],
                "subject": f"Reset your {settings.app_name} password",
                "html": html_body,
            },
        )
        logger.info("Password reset email sent to %s", to_email)
        return True
    except Exception as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False
