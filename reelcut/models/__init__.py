"""SQLAlchemy models for the billing ledger."""

from .base import Base
from .account import Account
from .plan import Plan
from .subscription import Subscription
from .usage import Usage
from .payment import Payment
from .password_reset_token import PasswordResetToken

__all__ = [
    "Base",
    "Account",
    "Plan",
    "Subscription",
    "Usage",
    "Payment",
    "PasswordResetToken",
]
