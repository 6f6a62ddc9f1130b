"""Billing API: plans, checkout, subscription lifecycle, entitlements."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.db.session import get_db
from reelcut.models.account import Account
from reelcut.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    EntitlementResult,
    PlanOut,
    SubscriptionActionRequest,
    SubscriptionActionResponse,
    SubscriptionOverview,
    UsageRecorded,
)
from reelcut.services import ledger
from reelcut.services.auth_service import get_current_account
from reelcut.services.entitlement_service import evaluate_video_entitlement, record_video_usage
from reelcut.services.subscription_service import (
    BillingError,
    cancel_subscription,
    create_checkout_session,
    get_subscription_overview,
    resume_subscription,
)

router = APIRouter(prefix="/api", tags=["billing"])


@router.get("/plans", response_model=list[PlanOut])
async def list_plans(db: AsyncSession = Depends(get_db)):
    return [PlanOut.model_validate(plan) for plan in await ledger.list_active_plans(db)]


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    try:
        url = await create_checkout_session(account, body.price_id, body.plan_id, db)
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return CheckoutResponse(url=url)


@router.get("/subscription", response_model=SubscriptionOverview | None)
async def current_subscription(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await get_subscription_overview(account, db)


@router.post("/cancel-subscription", response_model=SubscriptionActionResponse)
async def cancel(
    body: SubscriptionActionRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    try:
        summary = await cancel_subscription(account, body.subscription_id, db)
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return SubscriptionActionResponse(subscription=summary)


@router.post("/resume-subscription", response_model=SubscriptionActionResponse)
async def resume(
    body: SubscriptionActionRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    try:
        summary = await resume_subscription(account, body.subscription_id, db)
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return SubscriptionActionResponse(subscription=summary)


# --- Metering ---


@router.get("/entitlements/videos", response_model=EntitlementResult)
async def video_entitlement(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await evaluate_video_entitlement(db, account.id)


@router.post("/usage/videos", response_model=UsageRecorded)
async def record_video(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Count a video after it has been created client-side."""
    return UsageRecorded(used=await record_video_usage(db, account.id))
