"""JWT session lookup, role guard and password hashing."""

import base64
import hashlib
from datetime import datetime, timedelta, UTC

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.config import get_settings
from reelcut.constants import COOKIE_NAME, ROLE_ADMIN
from reelcut.db.session import get_db
from reelcut.models.account import Account


def create_jwt(account_id: str) -> str:
    """Create a signed JWT for the given account."""
    settings = get_settings()
    payload = {
        "sub": account_id,
        "exp": datetime.now(UTC) + timedelta(days=settings.jwt_expire_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode_jwt(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(
        token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub"]},
    )


async def get_current_account(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Account:
    """FastAPI dependency: decode the session cookie and return the Account, or raise 401."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        account_id = str(_decode_jwt(token)["sub"])
    except (jwt.InvalidTokenError, KeyError):
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    result = await db.execute(
        select(Account).where(Account.id == account_id, Account.is_active.is_(True))
    )
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=401, detail="Account not found or deactivated")
    return account


async def require_admin(account: Account = Depends(get_current_account)) -> Account:
    if account.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Forbidden")
    return account


# --- Passwords ---


def _prepare_password(password: str) -> bytes:
    """Pre-hash with SHA-256 to stay under bcrypt's 72-byte input limit."""
    return base64.b64encode(hashlib.sha256(password.encode()).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_prepare_password(password), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(_prepare_password(password), password_hash.encode())
