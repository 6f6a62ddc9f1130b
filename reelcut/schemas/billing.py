"""Billing request/response schemas (camelCase on the wire)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Requests ---


class CheckoutRequest(CamelModel):
    price_id: str | None = None
    plan_id: str | None = None


class SubscriptionActionRequest(CamelModel):
    subscription_id: str | None = None


# --- Responses ---


class CheckoutResponse(CamelModel):
    url: str


class PlanOut(CamelModel):
    id: str
    name: str
    description: str | None = None
    stripe_price_id: str | None = None
    price: float
    interval: str
    video_limit: int | None = None
    features: list[str] = []


class SubscriptionOut(CamelModel):
    id: str
    plan_id: str
    stripe_subscription_id: str
    status: str
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None


class UsageOut(CamelModel):
    videos_created: int
    month: int
    year: int
    limit: int | None = None


class SubscriptionOverview(CamelModel):
    subscription: SubscriptionOut
    plan: PlanOut
    usage: UsageOut


class StripeSubscriptionSummary(CamelModel):
    id: str
    status: str
    cancel_at_period_end: bool
    cancel_at: int | None = None
    current_period_end: int | None = None


class SubscriptionActionResponse(CamelModel):
    success: bool = True
    subscription: StripeSubscriptionSummary


class EntitlementResult(CamelModel):
    allowed: bool
    limit: int | None = None  # None = unlimited
    used: int | None = None
    plan_id: str
    reason: str | None = None


class UsageRecorded(CamelModel):
    used: int


class WebhookAck(BaseModel):
    received: bool = True
