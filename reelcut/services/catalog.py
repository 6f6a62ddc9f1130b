"""Plan catalogue seeding and admin promotion."""

import logging
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.config import Settings, get_settings
from reelcut.constants import ROLE_ADMIN
from reelcut.db.dialects import insert_for
from reelcut.models.account import Account
from reelcut.models.plan import Plan
from reelcut.utils import now_utc

logger = logging.getLogger(__name__)

_PRO_FEATURES = [
    "100 videos per month",
    "All templates",
    "1080p HD video quality",
    "Advanced editing tools",
    "Priority support",
    "Custom branding",
]
_BUSINESS_FEATURES = [
    "Unlimited videos",
    "All templates & premium content",
    "4K video quality",
    "Advanced editing tools",
    "Team collaboration",
    "White-label options",
    "24/7 priority support",
    "API access",
]


def default_plans(settings: Settings) -> list[dict]:
    """The standard catalogue, with Stripe price ids taken from settings."""
    return [
        {
            "id": settings.free_plan_id,
            "name": "Free",
            "description": "Perfect for trying out the platform",
            "stripe_price_id": None,
            "price": Decimal("0"),
            "interval": "month",
            "video_limit": settings.free_tier_video_limit,
            "features": [
                f"{settings.free_tier_video_limit} videos per month",
                "Basic templates",
                "720p video quality",
                "Email support",
            ],
        },
        {
            "id": "pro-monthly",
            "name": "Pro",
            "description": "Great for regular content creators",
            "stripe_price_id": settings.stripe_pro_monthly_price_id or None,
            "price": Decimal("19.00"),
            "interval": "month",
            "video_limit": 100,
            "features": _PRO_FEATURES,
        },
        {
            "id": "pro-yearly",
            "name": "Pro (Yearly)",
            "description": "Save 17% with annual billing",
            "stripe_price_id": settings.stripe_pro_yearly_price_id or None,
            "price": Decimal("190.00"),
            "interval": "year",
            "video_limit": 100,
            "features": _PRO_FEATURES,
        },
        {
            "id": "business-monthly",
            "name": "Business",
            "description": "For teams and agencies",
            "stripe_price_id": settings.stripe_business_monthly_price_id or None,
            "price": Decimal("49.00"),
            "interval": "month",
            "video_limit": None,
            "features": _BUSINESS_FEATURES,
        },
        {
            "id": "business-yearly",
            "name": "Business (Yearly)",
            "description": "Save 17% with annual billing",
            "stripe_price_id": settings.stripe_business_yearly_price_id or None,
            "price": Decimal("490.00"),
            "interval": "year",
            "video_limit": None,
            "features": _BUSINESS_FEATURES,
        },
    ]


async def seed_plans(db: AsyncSession, plans: list[dict] | None = None) -> int:
    """Insert or refresh the catalogue by plan id. Returns the number of plans written."""
    plans = plans if plans is not None else default_plans(get_settings())
    insert = insert_for(db)
    for plan in plans:
        now = now_utc()
        stmt = insert(Plan).values(is_active=True, created_at=now, updated_at=now, **plan)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Plan.id],
            set_={
                **{key: stmt.excluded[key] for key in plan if key != "id"},
                "is_active": True,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await db.execute(stmt)
        logger.info("Seeded plan %s", plan["id"])
    await db.commit()
    return len(plans)


async def promote_admin(db: AsyncSession, email: str) -> bool:
    """Give an existing account the admin role. Returns False if no account has that email."""
    result = await db.execute(
        update(Account).where(Account.email == email).values(role=ROLE_ADMIN, updated_at=now_utc())
    )
    await db.commit()
    if result.rowcount:
        logger.info("Promoted %s to admin", email)
    return bool(result.rowcount)
