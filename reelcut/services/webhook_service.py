"""Stripe webhook reconciliation: converge the local ledger onto Stripe's state.

Stripe delivers events at least once, in no particular order, and sometimes
twice. Every handler here is idempotent: subscriptions are upserted by their
Stripe id and guarded by the event's ``created`` timestamp, payments are keyed
by payment-intent id, and cancellation is a conditional update.

Handlers commit their own transaction. Events that cannot be attributed to a
local account or plan are logged and dropped; anything that raises propagates
so the caller can answer 500 and let Stripe redeliver.
"""

import json
import logging
import time
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.constants import (
    DEFAULT_CURRENCY,
    EVENT_CHECKOUT_COMPLETED,
    EVENT_INVOICE_FAILED,
    EVENT_INVOICE_PAID,
    EVENT_SUBSCRIPTION_CREATED,
    EVENT_SUBSCRIPTION_DELETED,
    EVENT_SUBSCRIPTION_UPDATED,
    METADATA_ACCOUNT_KEY,
    METADATA_PLAN_KEY,
    SUBSCRIPTION_STATUSES,
)
from reelcut.services import ledger, stripe_gateway
from reelcut.utils import from_unix, now_utc

logger = logging.getLogger(__name__)

Handler = Callable[[dict, AsyncSession, int], Awaitable[None]]


class WebhookPayloadError(ValueError):
    """A verified event whose object does not have the shape its type promises."""


class InvalidPayloadError(ValueError):
    """The request body is not a JSON event."""


def construct_event(payload: bytes, signature: str) -> dict:
    """Verify the signature over the raw bytes, then parse the event.

    Raises ``stripe.SignatureVerificationError`` before anything is parsed when
    the signature does not match.
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidPayloadError("Body is not valid UTF-8") from e

    stripe_gateway.verify_webhook(text, signature)

    try:
        event = json.loads(text)
    except ValueError as e:
        raise InvalidPayloadError("Body is not valid JSON") from e
    if not isinstance(event, dict):
        raise InvalidPayloadError("Event is not a JSON object")
    return event


# --- Payload helpers ---


def _require(obj: Any, *path: str | int) -> Any:
    """Walk ``path`` into a nested payload, raising WebhookPayloadError if it is missing."""
    current = obj
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            raise WebhookPayloadError(f"missing field {'.'.join(str(p) for p in path)}")
    if current is None:
        raise WebhookPayloadError(f"null field {'.'.join(str(p) for p in path)}")
    return current


def _metadata(obj: dict) -> dict:
    metadata = obj.get("metadata") or {}
    return metadata if isinstance(metadata, dict) else {}


def _get_period_timestamps(stripe_sub: dict) -> tuple[int | None, int | None]:
    """Extract current_period_start/end, handling Stripe API version differences.

    Newer API versions (2024-06-20+) moved these fields to items.data[0].
    """
    if stripe_sub.get("current_period_start") or stripe_sub.get("current_period_end"):
        return stripe_sub.get("current_period_start"), stripe_sub.get("current_period_end")
    try:
        item = stripe_sub["items"]["data"][0]
        return item.get("current_period_start"), item.get("current_period_end")
    except (KeyError, TypeError, IndexError):
        pass
    return None, None


def _invoice_subscription_id(invoice: dict) -> str | None:
    """Subscription reference, top-level on older API versions, under parent on newer."""
    if invoice.get("subscription"):
        return invoice["subscription"]
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def _invoice_account_id(invoice: dict) -> str | None:
    for details in (
        invoice.get("subscription_details"),
        (invoice.get("parent") or {}).get("subscription_details"),
    ):
        if details:
            account_id = _metadata(details).get(METADATA_ACCOUNT_KEY)
            if account_id:
                return account_id
    return None


def _event_timestamp(event: dict) -> int:
    """The event's ``created`` in unix seconds, or now when Stripe left it out."""
    created = event.get("created")
    if created is None:
        return int(time.time())
    if isinstance(created, bool) or not isinstance(created, int):
        raise WebhookPayloadError(f"created is not a unix timestamp: {created!r}")
    return created


def _cents_to_amount(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) / 100).quantize(Decimal("0.01"))


# --- Handlers ---


async def handle_checkout_completed(session_data: dict, db: AsyncSession, event_at: int) -> None:
    """Signal only: the subscription itself arrives via customer.subscription.created."""
    metadata = _metadata(session_data)
    account_id = metadata.get(METADATA_ACCOUNT_KEY)
    plan_id = metadata.get(METADATA_PLAN_KEY)
    if not account_id or not plan_id:
        logger.error(
            "Missing %s or %s in checkout session %s",
            METADATA_ACCOUNT_KEY, METADATA_PLAN_KEY, session_data.get("id"),
        )
        return
    logger.info(
        "Checkout completed for account %s (plan %s, subscription %s)",
        account_id, plan_id, session_data.get("subscription"),
    )


async def handle_subscription_upsert(sub_data: dict, db: AsyncSession, event_at: int) -> None:
    """Create or refresh the local row for customer.subscription.created/updated."""
    subscription_id = _require(sub_data, "id")

    account_id = _metadata(sub_data).get(METADATA_ACCOUNT_KEY)
    if not account_id:
        logger.error("Missing %s in metadata of subscription %s", METADATA_ACCOUNT_KEY, subscription_id)
        return

    status = sub_data.get("status")
    if status not in SUBSCRIPTION_STATUSES:
        logger.error("Unknown status %r on subscription %s", status, subscription_id)
        return

    if await ledger.get_account(db, account_id) is None:
        logger.error("Subscription %s references unknown account %s", subscription_id, account_id)
        return

    price_id = _require(sub_data, "items", "data", 0, "price", "id")
    plan = await ledger.get_plan_by_price(db, price_id)
    if plan is None:
        logger.error("No plan found for price ID %s (subscription %s)", price_id, subscription_id)
        return

    period_start, period_end = _get_period_timestamps(sub_data)
    written = await ledger.upsert_subscription(
        db,
        {
            "account_id": account_id,
            "plan_id": plan.id,
            "stripe_subscription_id": subscription_id,
            "status": status,
            "current_period_start": from_unix(period_start),
            "current_period_end": from_unix(period_end),
            "cancel_at_period_end": bool(sub_data.get("cancel_at_period_end", False)),
            "canceled_at": from_unix(sub_data.get("canceled_at")),
            "trial_start": from_unix(sub_data.get("trial_start")),
            "trial_end": from_unix(sub_data.get("trial_end")),
            "last_event_at": event_at,
        },
    )
    await db.commit()

    if written:
        logger.info("Subscription %s reconciled: status=%s plan=%s", subscription_id, status, plan.id)
    else:
        logger.info("Skipped stale event for subscription %s (event_at=%s)", subscription_id, event_at)


async def handle_subscription_deleted(sub_data: dict, db: AsyncSession, event_at: int) -> None:
    subscription_id = _require(sub_data, "id")
    canceled_at = from_unix(sub_data.get("canceled_at")) or now_utc()

    changed = await ledger.cancel_subscription_row(db, subscription_id, canceled_at, event_at)
    await db.commit()

    if changed:
        logger.info("Subscription %s canceled", subscription_id)
    else:
        logger.info("Deletion of subscription %s was a no-op (unknown or already canceled)", subscription_id)


async def _record_invoice(invoice: dict, db: AsyncSession, event_at: int, *, succeeded: bool) -> None:
    invoice_id = invoice.get("id")
    subscription_ref = _invoice_subscription_id(invoice)
    if not subscription_ref:
        logger.info("Invoice %s is not tied to a subscription, skipping", invoice_id)
        return

    sub = await ledger.get_subscription_by_stripe_id(db, subscription_ref)
    if sub is None:
        logger.warning(
            "Invoice %s arrived before subscription %s is known locally, dropping",
            invoice_id, subscription_ref,
        )
        return

    account_id = _invoice_account_id(invoice)
    if not account_id:
        logger.info(
            "Invoice %s has no %s metadata, attributing to account %s of subscription %s",
            invoice_id, METADATA_ACCOUNT_KEY, sub.account_id, subscription_ref,
        )
    elif account_id != sub.account_id:
        logger.warning(
            "Invoice %s metadata names account %s but subscription %s belongs to %s",
            invoice_id, account_id, subscription_ref, sub.account_id,
        )
    account_id = sub.account_id

    payment_ref = invoice.get("payment_intent") or _require(invoice, "id")
    if succeeded:
        amount = _cents_to_amount(invoice.get("amount_paid"))
    else:
        amount = _cents_to_amount(invoice.get("amount_due"))

    inserted = await ledger.record_payment(
        db,
        account_id=account_id,
        subscription_id=sub.id,
        stripe_payment_intent_id=payment_ref,
        amount=amount,
        currency=invoice.get("currency") or DEFAULT_CURRENCY,
        status="succeeded" if succeeded else "failed",
    )
    if not succeeded:
        await ledger.mark_past_due(db, sub.id, event_at)
    await db.commit()

    if inserted:
        logger.info(
            "Recorded %s payment %s (%s %s) for subscription %s",
            "succeeded" if succeeded else "failed", payment_ref, amount,
            invoice.get("currency") or DEFAULT_CURRENCY, subscription_ref,
        )
    else:
        logger.info("Payment %s already recorded, ignoring replay", payment_ref)


async def handle_payment_succeeded(invoice: dict, db: AsyncSession, event_at: int) -> None:
    await _record_invoice(invoice, db, event_at, succeeded=True)


async def handle_payment_failed(invoice: dict, db: AsyncSession, event_at: int) -> None:
    await _record_invoice(invoice, db, event_at, succeeded=False)


EVENT_HANDLERS: dict[str, Handler] = {
    EVENT_CHECKOUT_COMPLETED: handle_checkout_completed,
    EVENT_SUBSCRIPTION_CREATED: handle_subscription_upsert,
    EVENT_SUBSCRIPTION_UPDATED: handle_subscription_upsert,
    EVENT_SUBSCRIPTION_DELETED: handle_subscription_deleted,
    EVENT_INVOICE_PAID: handle_payment_succeeded,
    EVENT_INVOICE_FAILED: handle_payment_failed,
}


async def process_event(event: dict, db: AsyncSession) -> bool:
    """Dispatch a verified event. Returns False for event types we do not handle."""
    event_type = event.get("type")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info("Unhandled Stripe event type: %s", event_type)
        return False

    data = _require(event, "data", "object")
    if not isinstance(data, dict):
        raise WebhookPayloadError("data.object is not an object")
    event_at = _event_timestamp(event)

    await handler(data, db, event_at)
    return True


def event_reference(event: dict) -> str | None:
    """Best-effort external reference for log context."""
    try:
        data = event["data"]["object"]
    except (KeyError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    if str(data.get("object")) == "invoice":
        return _invoice_subscription_id(data) or data.get("id")
    return data.get("id")
