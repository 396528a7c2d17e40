"""Inbound webhooks from the billing provider."""

from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from totaldash.api import deps
from totaldash.api.router import TrailingSlashRouter
from totaldash.billing.webhook_handler import BillingWebhookProcessor
from totaldash.core.exceptions import WebhookSignatureError
from totaldash.core.logging import logger
from totaldash.integrations.notification_client import NotificationClient
from totaldash.integrations.stripe_client import StripeClient
from totaldash.schemas.billing_event import decode_event

router = TrailingSlashRouter()


@router.post("/billing", include_in_schema=False)
async def billing_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(deps.get_db),
    stripe: StripeClient = Depends(deps.get_stripe_client),
    notifier: NotificationClient = Depends(deps.get_notification_client),
) -> JSONResponse:
    """Handle Stripe webhook events.

    The raw body is verified against the Stripe-Signature header before it is
    parsed. Event types without a handler are acknowledged.

    Returns:
        200 ``{"received": true}`` once handled or ignored, 400 on a bad
        signature, 500 when handling fails so Stripe redelivers.
    """
    payload = await request.body()

    try:
        raw_event = stripe.verify_webhook_signature(payload, stripe_signature)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected billing webhook: {e.message}")
        return JSONResponse(status_code=400, content={"detail": e.message})

    try:
        event = decode_event(raw_event)
    except (ValidationError, ValueError, TypeError, AttributeError) as e:
        # Redelivery cannot fix a malformed event
        logger.error(f"Malformed {raw_event.get('type')} event {raw_event.get('id')}: {e}")
        return JSONResponse(status_code=200, content={"received": True})

    try:
        processor = BillingWebhookProcessor(db, stripe, notifier)
        await processor.process_event(event)
    except Exception:
        return JSONResponse(status_code=500, content={"detail": "Webhook handling failed"})

    return JSONResponse(status_code=200, content={"received": True})
