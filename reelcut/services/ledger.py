"""Ledger store: data access for plans, subscriptions, usage and payments.

No business rules live here. Every write the webhook reconciler depends on is a
single statement so concurrent deliveries rely on row-level atomicity and the
unique constraints rather than read-modify-write in Python.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reelcut.db.dialects import insert_for
from reelcut.models.account import Account
from reelcut.models.base import new_id
from reelcut.models.payment import Payment
from reelcut.models.plan import Plan
from reelcut.models.subscription import Subscription
from reelcut.models.usage import Usage
from reelcut.utils import now_utc


# --- Accounts ---


async def get_account(db: AsyncSession, account_id: str) -> Account | None:
    result = await db.execute(select(Account).where(Account.id == account_id))
    return result.scalar_one_or_none()


async def link_customer(db: AsyncSession, account_id: str, customer_id: str) -> str:
    """Attach a Stripe customer to an account unless one is already linked.

    Returns the customer id that is linked after the call, which is the stored
    one when a concurrent request got there first.
    """
    result = await db.execute(
        update(Account)
        .where(Account.id == account_id, Account.stripe_customer_id.is_(None))
        .values(stripe_customer_id=customer_id, updated_at=now_utc())
    )
    if result.rowcount:
        return customer_id
    stored = await db.scalar(select(Account.stripe_customer_id).where(Account.id == account_id))
    return stored


# --- Plans ---


async def get_plan(db: AsyncSession, plan_id: str) -> Plan | None:
    result = await db.execute(select(Plan).where(Plan.id == plan_id))
    return result.scalar_one_or_none()


async def get_plan_by_price(db: AsyncSession, price_id: str | None) -> Plan | None:
    if not price_id:
        return None
    result = await db.execute(select(Plan).where(Plan.stripe_price_id == price_id))
    return result.scalar_one_or_none()


async def list_active_plans(db: AsyncSession) -> list[Plan]:
    result = await db.execute(
        select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.price)
    )
    return list(result.scalars().all())


# --- Subscriptions ---


async def get_subscription_by_stripe_id(
    db: AsyncSession, stripe_subscription_id: str
) -> Subscription | None:
    result = await db.execute(
        select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
    )
    return result.scalar_one_or_none()


async def get_current_subscription(db: AsyncSession, account_id: str) -> Subscription | None:
    """Most recently created subscription for the account, with its plan loaded."""
    result = await db.execute(
        select(Subscription)
        .options(selectinload(Subscription.plan))
        .where(Subscription.account_id == account_id)
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_subscription(db: AsyncSession, values: dict[str, Any]) -> bool:
    """Insert or update a subscription keyed by ``stripe_subscription_id``.

    ``values`` must carry ``last_event_at``; an existing row is only overwritten
    when its stored ``last_event_at`` is not newer. Returns True when a row was
    written.
    """
    insert = insert_for(db)
    now = now_utc()
    stmt = insert(Subscription).values(id=new_id(), created_at=now, updated_at=now, **values)
    changes = {key: stmt.excluded[key] for key in values if key != "stripe_subscription_id"}
    changes["updated_at"] = stmt.excluded.updated_at
    stmt = stmt.on_conflict_do_update(
        index_elements=[Subscription.stripe_subscription_id],
        set_=changes,
        where=Subscription.last_event_at <= stmt.excluded.last_event_at,
    )
    result = await db.execute(stmt)
    return bool(result.rowcount)


async def cancel_subscription_row(
    db: AsyncSession, stripe_subscription_id: str, canceled_at: datetime, event_at: int
) -> bool:
    """Mark a subscription canceled. Rows already canceled with a timestamp are left alone."""
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.stripe_subscription_id == stripe_subscription_id,
            ~((Subscription.status == "canceled") & Subscription.canceled_at.is_not(None)),
        )
        .values(
            status="canceled",
            canceled_at=func.coalesce(Subscription.canceled_at, canceled_at),
            last_event_at=case(
                (Subscription.last_event_at < event_at, event_at),
                else_=Subscription.last_event_at,
            ),
            updated_at=now_utc(),
        )
    )
    return bool(result.rowcount)


async def mark_past_due(db: AsyncSession, subscription_id: str, event_at: int) -> bool:
    """Flip a live subscription to past_due unless a newer subscription event already landed.

    An invoice only speaks for the status, so ``last_event_at`` is left alone and a
    subscription event created before the invoice can still bring the periods up to date.
    Canceled rows stay canceled.
    """
    result = await db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription_id,
            Subscription.status != "canceled",
            Subscription.last_event_at <= event_at,
        )
        .values(status="past_due", updated_at=now_utc())
    )
    return bool(result.rowcount)


# --- Usage ---


async def get_usage(db: AsyncSession, account_id: str, month: int, year: int) -> Usage | None:
    result = await db.execute(
        select(Usage).where(
            Usage.account_id == account_id,
            Usage.month == month,
            Usage.year == year,
        )
    )
    return result.scalar_one_or_none()


async def get_usage_count(db: AsyncSession, account_id: str, month: int, year: int) -> int:
    usage = await get_usage(db, account_id, month, year)
    return usage.videos_created if usage else 0


async def increment_usage(db: AsyncSession, account_id: str, month: int, year: int) -> int:
    """Atomically add one to the period counter, creating it on first use."""
    insert = insert_for(db)
    now = now_utc()
    stmt = insert(Usage).values(
        id=new_id(),
        account_id=account_id,
        month=month,
        year=year,
        videos_created=1,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Usage.account_id, Usage.month, Usage.year],
        set_={
            "videos_created": Usage.videos_created + 1,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await db.execute(stmt)
    return await db.scalar(
        select(Usage.videos_created).where(
            Usage.account_id == account_id,
            Usage.month == month,
            Usage.year == year,
        )
    )


# --- Payments ---


async def record_payment(
    db: AsyncSession,
    *,
    account_id: str,
    subscription_id: str | None,
    stripe_payment_intent_id: str,
    amount: Decimal,
    currency: str,
    status: str,
) -> bool:
    """Append a payment row; a replayed payment-intent reference is ignored.

    Returns True when a new row was inserted.
    """
    insert = insert_for(db)
    stmt = insert(Payment).values(
        id=new_id(),
        account_id=account_id,
        subscription_id=subscription_id,
        stripe_payment_intent_id=stripe_payment_intent_id,
        amount=amount,
        currency=currency,
        status=status,
        created_at=now_utc(),
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=[Payment.stripe_payment_intent_id])
    result = await db.execute(stmt)
    return bool(result.rowcount)

