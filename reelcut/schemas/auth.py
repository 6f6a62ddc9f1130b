"""Account/password schemas."""

from reelcut.schemas.billing import CamelModel


class PasswordResetRequest(CamelModel):
    token: str
    new_password: str


class PasswordChangeRequest(CamelModel):
    current_password: str
    new_password: str


class PasswordResult(CamelModel):
    success: bool = True
    message: str
    reset_url: str | None = None
