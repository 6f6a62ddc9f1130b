"""Admin billing reports."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.constants import RECENT_PAYMENTS_LIMIT
from reelcut.db.session import get_db
from reelcut.schemas.admin import AdminPaymentRow, AdminSubscriptionRow, GrowthPoint, SubscriptionStats
from reelcut.services import admin_service
from reelcut.services.auth_service import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/subscriptions", response_model=list[AdminSubscriptionRow])
async def all_subscriptions(db: AsyncSession = Depends(get_db)):
    return await admin_service.list_subscriptions(db)


@router.get("/stats", response_model=SubscriptionStats)
async def stats(db: AsyncSession = Depends(get_db)):
    return await admin_service.subscription_stats(db)


@router.get("/payments", response_model=list[AdminPaymentRow])
async def payments(
    limit: int = Query(RECENT_PAYMENTS_LIMIT, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.recent_payments(db, limit=limit)


@router.get("/growth", response_model=list[GrowthPoint])
async def growth(db: AsyncSession = Depends(get_db)):
    return await admin_service.subscription_growth(db)
