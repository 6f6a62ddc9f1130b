"""Stripe subscription management: checkout, cancel/resume, status overview.

None of these write subscription state locally. They call Stripe and return;
the webhook reconciler is the only writer of status and periods.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.config import get_settings
from reelcut.constants import METADATA_ACCOUNT_KEY, METADATA_PLAN_KEY
from reelcut.models.account import Account
from reelcut.schemas.billing import (
    PlanOut,
    StripeSubscriptionSummary,
    SubscriptionOut,
    SubscriptionOverview,
    UsageOut,
)
from reelcut.services import ledger, stripe_gateway
from reelcut.utils import now_utc

logger = logging.getLogger(__name__)


class BillingError(Exception):
    """A billing action that cannot proceed. Carries the HTTP status to surface."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCheckoutRequest(BillingError):
    status_code = 400


class SubscriptionNotFound(BillingError):
    status_code = 404


class StripeOperationFailed(BillingError):
    status_code = 500


async def _ensure_customer(account: Account, db: AsyncSession) -> str:
    """Return the account's Stripe customer, creating and linking it on first use."""
    if account.stripe_customer_id:
        return account.stripe_customer_id

    customer_id = await stripe_gateway.create_customer(
        email=account.email, name=account.name, account_id=account.id
    )
    linked = await ledger.link_customer(db, account.id, customer_id)
    await db.commit()
    if linked != customer_id:
        logger.warning(
            "Account %s was linked to customer %s concurrently; discarding %s",
            account.id, linked, customer_id,
        )
    account.stripe_customer_id = linked
    return linked


async def create_checkout_session(
    account: Account,
    price_id: str | None,
    plan_id: str | None,
    db: AsyncSession,
) -> str:
    """Start a hosted Checkout for ``price_id`` and return its URL."""
    if not price_id:
        raise InvalidCheckoutRequest("Price ID is required")

    plan = await ledger.get_plan_by_price(db, price_id)
    if plan is None or not plan.is_active:
        raise InvalidCheckoutRequest("Unknown price")
    if plan_id and plan_id != plan.id:
        logger.warning("Checkout plan %s does not match price %s (plan %s)", plan_id, price_id, plan.id)
    plan_id = plan.id
    # Read before the try: a rollback expires the loaded account
    account_id = account.id

    settings = get_settings()
    try:
        customer_id = await _ensure_customer(account, db)
        url = await stripe_gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            metadata={METADATA_ACCOUNT_KEY: account_id, METADATA_PLAN_KEY: plan_id},
            trial_period_days=settings.trial_period_days,
        )
    except Exception:
        await db.rollback()
        logger.exception("Checkout session creation failed for account %s", account_id)
        raise StripeOperationFailed("Failed to create checkout session")

    logger.info("Checkout session created for account %s (plan %s)", account_id, plan_id)
    return url


async def _owned_subscription(account: Account, stripe_subscription_id: str | None, db: AsyncSession):
    if not stripe_subscription_id:
        raise SubscriptionNotFound("Subscription not found")
    sub = await ledger.get_subscription_by_stripe_id(db, stripe_subscription_id)
    if sub is None or sub.account_id != account.id:
        raise SubscriptionNotFound("Subscription not found")
    return sub


async def _set_cancel_flag(
    account: Account, stripe_subscription_id: str | None, db: AsyncSession, cancel: bool
) -> StripeSubscriptionSummary:
    await _owned_subscription(account, stripe_subscription_id, db)
    action = "cancel" if cancel else "resume"
    try:
        summary = await stripe_gateway.set_cancel_at_period_end(stripe_subscription_id, cancel)
    except Exception:
        logger.exception("Failed to %s subscription %s", action, stripe_subscription_id)
        raise StripeOperationFailed(f"Failed to {action} subscription")

    logger.info(
        "Subscription %s set cancel_at_period_end=%s by account %s",
        stripe_subscription_id, cancel, account.id,
    )
    return StripeSubscriptionSummary.model_validate(summary)


async def cancel_subscription(
    account: Account, stripe_subscription_id: str | None, db: AsyncSession
) -> StripeSubscriptionSummary:
    """Schedule cancellation at period end. Access continues until then."""
    return await _set_cancel_flag(account, stripe_subscription_id, db, cancel=True)


async def resume_subscription(
    account: Account, stripe_subscription_id: str | None, db: AsyncSession
) -> StripeSubscriptionSummary:
    """Clear a scheduled cancellation."""
    return await _set_cancel_flag(account, stripe_subscription_id, db, cancel=False)


async def get_subscription_overview(account: Account, db: AsyncSession) -> SubscriptionOverview | None:
    """Current subscription with its plan and this month's usage, or None."""
    sub = await ledger.get_current_subscription(db, account.id)
    if sub is None:
        return None

    today = now_utc().date()
    used = await ledger.get_usage_count(db, account.id, today.month, today.year)
    return SubscriptionOverview(
        subscription=SubscriptionOut.model_validate(sub),
        plan=PlanOut.model_validate(sub.plan),
        usage=UsageOut(
            videos_created=used,
            month=today.month,
            year=today.year,
            limit=sub.plan.video_limit,
        ),
    )
