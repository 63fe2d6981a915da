"""Stripe webhook endpoint"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from ... import config
from ...errors import ValidationError
from ...webhook_security import verify_stripe_signature
from .service import PaymentEventProcessor, get_payment_processor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def handle_stripe_webhook(
    request: Request, processor: PaymentEventProcessor = Depends(get_payment_processor)
):
    """
    Receive a Stripe event.

    Security:
    - Signature verification over the raw body (HMAC-SHA256, Stripe-Signature header)
    - Deliveries older than WEBHOOK_TOLERANCE_SECONDS are rejected
    """
    body = await request.body()
    verify_stripe_signature(
        body,
        request.headers.get("Stripe-Signature"),
        config.STRIPE_WEBHOOK_SECRET,
        config.WEBHOOK_TOLERANCE_SECONDS,
    )

    try:
        event = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Invalid webhook payload") from e
    if not isinstance(event, dict):
        raise ValidationError("Invalid webhook payload")

    outcome = await processor.process_event(event)
    return {"received": True, "outcome": outcome}
