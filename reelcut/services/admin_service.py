"""Admin billing reports: subscriptions, revenue and growth."""

from collections import Counter
from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from reelcut.constants import GROWTH_WINDOW_MONTHS, RECENT_PAYMENTS_LIMIT
from reelcut.models.account import Account
from reelcut.models.payment import Payment
from reelcut.models.plan import Plan
from reelcut.models.subscription import Subscription
from reelcut.schemas.admin import (
    AccountBrief,
    AdminPaymentRow,
    AdminSubscriptionRow,
    GrowthPoint,
    PaymentOut,
    PlanCount,
    StatusCount,
    SubscriptionStats,
)
from reelcut.schemas.billing import PlanOut, SubscriptionOut
from reelcut.utils import now_utc


def _money(value) -> float:
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.01")))


def _months_ago(moment: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` back, clamped to the 28th to stay valid."""
    total = moment.year * 12 + (moment.month - 1) - months
    return moment.replace(year=total // 12, month=total % 12 + 1, day=min(moment.day, 28))


async def list_subscriptions(db: AsyncSession) -> list[AdminSubscriptionRow]:
    result = await db.execute(
        select(Subscription)
        .options(selectinload(Subscription.plan), selectinload(Subscription.account))
        .order_by(Subscription.created_at.desc())
    )
    return [
        AdminSubscriptionRow(
            subscription=SubscriptionOut.model_validate(sub),
            plan=PlanOut.model_validate(sub.plan),
            account=AccountBrief.model_validate(sub.account),
        )
        for sub in result.scalars().all()
    ]


async def subscription_stats(db: AsyncSession) -> SubscriptionStats:
    active = await db.scalar(
        select(func.count()).select_from(Subscription).where(Subscription.status == "active")
    )

    by_status = await db.execute(
        select(Subscription.status, func.count()).group_by(Subscription.status)
    )
    by_plan = await db.execute(
        select(Plan.name, func.count())
        .join(Subscription, Subscription.plan_id == Plan.id)
        .group_by(Plan.name)
    )

    monthly_value = case(
        (Plan.interval == "month", Plan.price),
        (Plan.interval == "year", Plan.price / 12.0),
        else_=0,
    )
    annual_value = case(
        (Plan.interval == "month", Plan.price * 12),
        (Plan.interval == "year", Plan.price),
        else_=0,
    )
    recurring = await db.execute(
        select(func.coalesce(func.sum(monthly_value), 0), func.coalesce(func.sum(annual_value), 0))
        .select_from(Subscription)
        .join(Plan, Subscription.plan_id == Plan.id)
        .where(Subscription.status == "active")
    )
    mrr, arr = recurring.one()

    total_revenue = await db.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == "succeeded")
    )
    month_start = now_utc().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    monthly_revenue = await db.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.status == "succeeded", Payment.created_at >= month_start
        )
    )

    return SubscriptionStats(
        active_subscriptions=active or 0,
        subscriptions_by_status=[StatusCount(status=s, count=c) for s, c in by_status.all()],
        subscriptions_by_plan=[PlanCount(plan_name=n, count=c) for n, c in by_plan.all()],
        mrr=_money(mrr),
        arr=_money(arr),
        total_revenue=_money(total_revenue),
        monthly_revenue=_money(monthly_revenue),
    )


async def recent_payments(db: AsyncSession, limit: int = RECENT_PAYMENTS_LIMIT) -> list[AdminPaymentRow]:
    result = await db.execute(
        select(Payment, Account)
        .join(Account, Payment.account_id == Account.id)
        .order_by(Payment.created_at.desc())
        .limit(limit)
    )
    return [
        AdminPaymentRow(
            payment=PaymentOut.model_validate(payment),
            account=AccountBrief.model_validate(account),
        )
        for payment, account in result.all()
    ]


async def subscription_growth(db: AsyncSession) -> list[GrowthPoint]:
    """New subscriptions per calendar month over the trailing window, oldest first."""
    cutoff = _months_ago(now_utc(), GROWTH_WINDOW_MONTHS)
    result = await db.execute(
        select(Subscription.created_at).where(Subscription.created_at >= cutoff)
    )
    # Bucketed here; month formatting differs between PostgreSQL and SQLite
    buckets = Counter(created.strftime("%Y-%m") for created in result.scalars().all())
    return [GrowthPoint(month=month, count=buckets[month]) for month in sorted(buckets)]
