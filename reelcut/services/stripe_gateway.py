"""Thin async wrappers around the Stripe SDK.

The SDK is synchronous; every call is pushed to a worker thread so request
handlers never block the event loop.
"""

import asyncio
import logging

import stripe

from reelcut.config import get_settings
from reelcut.constants import METADATA_ACCOUNT_KEY

logger = logging.getLogger(__name__)


def init_stripe() -> None:
    """Set the Stripe API key from settings. Call once at startup."""
    settings = get_settings()
    stripe.api_key = settings.stripe_secret_key


def verify_webhook(payload: str, signature: str) -> None:
    """Check a webhook signature header against the shared secret.

    Raises ``stripe.SignatureVerificationError`` on mismatch or stale timestamp.
    """
    settings = get_settings()
    stripe.WebhookSignature.verify_header(
        payload,
        signature,
        settings.stripe_webhook_secret,
        tolerance=settings.stripe_webhook_tolerance,
    )


async def create_customer(*, email: str, name: str, account_id: str) -> str:
    """Create a Stripe customer and return its id."""
    customer = await asyncio.to_thread(
        stripe.Customer.create,
        email=email,
        name=name,
        metadata={METADATA_ACCOUNT_KEY: account_id},
    )
    logger.info("Created Stripe customer %s for account %s", customer.id, account_id)
    return customer.id


async def create_checkout_session(
    *,
    customer_id: str,
    price_id: str,
    metadata: dict[str, str],
    trial_period_days: int,
) -> str:
    """Create a subscription-mode Checkout session and return the hosted URL."""
    settings = get_settings()
    session = await asyncio.to_thread(
        stripe.checkout.Session.create,
        customer=customer_id,
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=f"{settings.app_url}/dashboard/billing?success=true",
        cancel_url=f"{settings.app_url}/pricing",
        metadata=metadata,
        subscription_data={
            "trial_period_days": trial_period_days,
            "metadata": metadata,
        },
    )
    return session.url


async def set_cancel_at_period_end(subscription_id: str, cancel: bool) -> dict:
    """Toggle cancel_at_period_end upstream and summarize Stripe's response."""
    stripe_sub = await asyncio.to_thread(
        stripe.Subscription.modify,
        subscription_id,
        cancel_at_period_end=cancel,
    )
    return _summarize_subscription(stripe_sub)


def _summarize_subscription(stripe_sub) -> dict:
    return {
        "id": stripe_sub.id,
        "status": stripe_sub.status,
        "cancel_at_period_end": stripe_sub.cancel_at_period_end,
        "cancel_at": getattr(stripe_sub, "cancel_at", None),
        "current_period_end": getattr(stripe_sub, "current_period_end", None),
    }
