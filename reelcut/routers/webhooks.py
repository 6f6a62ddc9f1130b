"""Webhook routes: Stripe."""

import logging

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from reelcut.db.session import get_db
from reelcut.schemas.billing import WebhookAck
from reelcut.services.webhook_service import (
    InvalidPayloadError,
    WebhookPayloadError,
    construct_event,
    event_reference,
    process_event,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
):
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="No signature provided")

    payload = await request.body()
    try:
        event = construct_event(payload, stripe_signature)
    except stripe.SignatureVerificationError:
        logger.warning("Rejected Stripe webhook with invalid signature")
        raise HTTPException(status_code=400, detail="Invalid signature")
    except InvalidPayloadError as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail="Invalid payload")

    event_type = event.get("type")
    event_id = event.get("id")
    logger.info("Stripe webhook: %s (%s)", event_type, event_id)

    try:
        await process_event(event, db)
    except WebhookPayloadError as e:
        await db.rollback()
        logger.error(
            "Malformed %s event %s (ref %s): %s",
            event_type, event_id, event_reference(event), e,
        )
    except Exception:
        await db.rollback()
        logger.exception(
            "Webhook handler failed for %s event %s (ref %s)",
            event_type, event_id, event_reference(event),
        )
        return JSONResponse(status_code=500, content={"error": "Webhook handler failed"})

    return WebhookAck()
