"""Entitlement checks for metered actions (video creation)."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.config import get_settings
from reelcut.constants import ENTITLED_STATUSES
from reelcut.models.plan import Plan
from reelcut.schemas.billing import EntitlementResult
from reelcut.services import ledger
from reelcut.utils import as_utc, now_utc

logger = logging.getLogger(__name__)


def _limit_reason(limit: int) -> str:
    return f"You've reached your monthly limit of {limit} videos. Please upgrade your plan."


async def resolve_plan(db: AsyncSession, account_id: str) -> Plan:
    """Plan governing the account: its current subscription's plan, else the free tier.

    Subscription status is not consulted here; a canceled or past-due row keeps
    its plan until a newer subscription replaces it.
    """
    subscription = await ledger.get_current_subscription(db, account_id)
    if subscription is not None:
        return subscription.plan

    settings = get_settings()
    free_plan = await ledger.get_plan(db, settings.free_plan_id)
    if free_plan is not None:
        return free_plan

    logger.warning(
        "Free plan %r not found; falling back to a limit of %d videos",
        settings.free_plan_id, settings.free_tier_video_limit,
    )
    return Plan(
        id=settings.free_plan_id,
        name="Free",
        price=Decimal("0"),
        interval="month",
        video_limit=settings.free_tier_video_limit,
        features=[],
    )


async def evaluate_video_entitlement(
    db: AsyncSession, account_id: str, today: date | None = None
) -> EntitlementResult:
    """Decide whether the account may create one more video this calendar month."""
    plan = await resolve_plan(db, account_id)
    if plan.video_limit is None:
        return EntitlementResult(allowed=True, plan_id=plan.id)

    today = today or now_utc().date()
    used = await ledger.get_usage_count(db, account_id, today.month, today.year)
    if used < plan.video_limit:
        return EntitlementResult(allowed=True, limit=plan.video_limit, used=used, plan_id=plan.id)

    logger.info("Account %s hit video limit %d on plan %s", account_id, plan.video_limit, plan.id)
    return EntitlementResult(
        allowed=False,
        limit=plan.video_limit,
        used=used,
        plan_id=plan.id,
        reason=_limit_reason(plan.video_limit),
    )


async def record_video_usage(db: AsyncSession, account_id: str, today: date | None = None) -> int:
    """Count one created video against the current month. Call after the video exists."""
    today = today or now_utc().date()
    count = await ledger.increment_usage(db, account_id, today.month, today.year)
    await db.commit()
    return count


async def has_active_subscription(db: AsyncSession, account_id: str) -> bool:
    subscription = await ledger.get_current_subscription(db, account_id)
    if subscription is None or subscription.status not in ENTITLED_STATUSES:
        return False
    period_end = as_utc(subscription.current_period_end)
    return period_end is not None and period_end > now_utc()
