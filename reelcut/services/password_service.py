"""Password reset tokens and password changes.

Tokens are random, stored only as a SHA-256 hash, expire after
``password_reset_ttl_hours`` and are consumed by a conditional UPDATE so a
token can be redeemed at most once.
"""

import hashlib
import logging
import re
import secrets
from datetime import timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.config import get_settings
from reelcut.constants import PASSWORD_MIN_LENGTH, RESET_TOKEN_BYTES
from reelcut.models.account import Account
from reelcut.models.password_reset_token import PasswordResetToken
from reelcut.services.auth_service import hash_password, verify_password
from reelcut.services.email_service import send_password_reset_email
from reelcut.utils import as_utc, now_utc

logger = logging.getLogger(__name__)

_STRENGTH_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


class PasswordError(ValueError):
    """A password operation was refused; the message is safe to show."""


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def validate_password_strength(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise PasswordError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not _STRENGTH_RE.match(password):
        raise PasswordError("Password must contain uppercase, lowercase, and number")


async def request_password_reset(account: Account, db: AsyncSession) -> tuple[str, bool]:
    """Issue a reset token for the account and email the link.

    Returns ``(reset_url, emailed)``.
    """
    settings = get_settings()
    token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
    db.add(
        PasswordResetToken(
            token_hash=_hash_token(token),
            account_id=account.id,
            expires_at=now_utc() + timedelta(hours=settings.password_reset_ttl_hours),
        )
    )
    await db.commit()

    reset_url = f"{settings.app_url}/dashboard/change-password?token={token}"
    emailed = await send_password_reset_email(account.email, account.name, reset_url)
    logger.info("Password reset requested for account %s (emailed=%s)", account.id, emailed)
    return reset_url, emailed


async def reset_password_with_token(token: str, new_password: str, db: AsyncSession) -> None:
    validate_password_strength(new_password)

    token_hash = _hash_token(token)
    stored = await db.scalar(
        select(PasswordResetToken).where(PasswordResetToken.token_hash == token_hash)
    )
    if stored is None or stored.used_at is not None:
        raise PasswordError("Invalid or expired token")
    if as_utc(stored.expires_at) <= now_utc():
        raise PasswordError("Token has expired")

    now = now_utc()
    result = await db.execute(
        update(PasswordResetToken)
        .where(
            PasswordResetToken.token_hash == token_hash,
            PasswordResetToken.used_at.is_(None),
            PasswordResetToken.expires_at > now,
        )
        .values(used_at=now)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        # Redeemed by a concurrent request
        await db.rollback()
        raise PasswordError("Invalid or expired token")

    await db.execute(
        update(Account)
        .where(Account.id == stored.account_id)
        .values(password_hash=hash_password(new_password), updated_at=now)
    )
    await db.commit()
    logger.info("Password reset via token for account %s", stored.account_id)


async def change_password(
    account: Account, current_password: str, new_password: str, db: AsyncSession
) -> None:
    validate_password_strength(new_password)
    if not verify_password(current_password, account.password_hash):
        raise PasswordError("Current password is incorrect")

    account.password_hash = hash_password(new_password)
    await db.commit()
    logger.info("Password changed for account %s", account.id)


async def purge_reset_tokens(db: AsyncSession) -> int:
    """Delete expired and redeemed tokens. Returns the number removed."""
    result = await db.execute(
        delete(PasswordResetToken).where(
            or_(
                PasswordResetToken.expires_at <= now_utc(),
                PasswordResetToken.used_at.is_not(None),
            )
        ).execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount
