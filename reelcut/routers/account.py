"""Account routes: password reset and change."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.config import get_settings
from reelcut.db.session import get_db
from reelcut.models.account import Account
from reelcut.schemas.auth import PasswordChangeRequest, PasswordResetRequest, PasswordResult
from reelcut.services.auth_service import get_current_account
from reelcut.services.password_service import (
    PasswordError,
    change_password,
    request_password_reset,
    reset_password_with_token,
)

router = APIRouter(prefix="/api/account/password", tags=["account"])


@router.post("/reset-request", response_model=PasswordResult)
async def reset_request(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    reset_url, emailed = await request_password_reset(account, db)
    message = "Password reset link sent to your email" if emailed else "Password reset link generated"
    # The link is only echoed back in debug mode
    return PasswordResult(message=message, reset_url=reset_url if get_settings().debug else None)


@router.post("/reset", response_model=PasswordResult)
async def reset(body: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    try:
        await reset_password_with_token(body.token, body.new_password, db)
    except PasswordError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PasswordResult(message="Password changed successfully")


@router.post("/change", response_model=PasswordResult)
async def change(
    body: PasswordChangeRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    try:
        await change_password(account, body.current_password, body.new_password, db)
    except PasswordError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PasswordResult(message="Password changed successfully")
