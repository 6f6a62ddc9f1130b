"""Admin report schemas."""

from datetime import datetime

from reelcut.schemas.billing import CamelModel, PlanOut, SubscriptionOut


class AccountBrief(CamelModel):
    id: str
    name: str
    email: str
    created_at: datetime | None = None


class AdminSubscriptionRow(CamelModel):
    subscription: SubscriptionOut
    plan: PlanOut
    account: AccountBrief


class StatusCount(CamelModel):
    status: str
    count: int


class PlanCount(CamelModel):
    plan_name: str
    count: int


class SubscriptionStats(CamelModel):
    active_subscriptions: int
    subscriptions_by_status: list[StatusCount]
    subscriptions_by_plan: list[PlanCount]
    mrr: float
    arr: float
    total_revenue: float
    monthly_revenue: float


class PaymentOut(CamelModel):
    id: str
    subscription_id: str | None = None
    stripe_payment_intent_id: str
    amount: float
    currency: str
    status: str
    created_at: datetime | None = None


class AdminPaymentRow(CamelModel):
    payment: PaymentOut
    account: AccountBrief


class GrowthPoint(CamelModel):
    month: str  # YYYY-MM
    count: int
