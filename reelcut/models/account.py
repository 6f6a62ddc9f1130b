"""Account model: the billable user, with its Stripe customer linkage."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reelcut.constants import ACCOUNT_ROLES, ROLE_USER
from reelcut.utils import now_utc
from .base import Base, new_id


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(
        Enum(*ACCOUNT_ROLES, name="account_role"), nullable=False, default=ROLE_USER
    )
    stripe_customer_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    # Relationships
    subscriptions: Mapped[list["Subscription"]] = relationship(back_populates="account")
    payments: Mapped[list["Payment"]] = relationship(back_populates="account")
