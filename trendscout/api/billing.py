"""
Billing API routes.

- POST /api/billing/checkout: Create a Pro checkout session
- POST /api/billing/webhook: Handle Stripe webhooks
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from trendscout.core.auth import resolve_user_id
from trendscout.core.errors import AppError, UnauthenticatedError
from trendscout.core.logging import log_event
from trendscout.features.billing.provider import (
    BillingProviderError,
    BillingWebhookError,
    WebhookSignatureError,
)
from trendscout.features.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


class CheckoutResponse(BaseModel):
    """Response with checkout session id and hosted URL."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    url: str


@router.post("/checkout", response_model=CheckoutResponse, response_model_by_alias=True)
def create_checkout(
    user_id: Optional[str] = Depends(resolve_user_id),
    services: Services = Depends(get_services),
):
    """
    Create Stripe checkout session for the Pro plan.

    Returns:
        {"sessionId": "cs_...", "url": "https://checkout.stripe.com/..."}

    Errors:
        401: Not signed in
        503: Billing disabled (Stripe or price not configured)
        502: Stripe API error
    """
    if not user_id:
        raise UnauthenticatedError("User must be authenticated to start checkout")

    try:
        session = services.billing.create_checkout_session(user_id)
    except BillingProviderError as e:
        logger.error("[billing] checkout failed", extra={"user_id": user_id, "error_message": str(e)})
        raise AppError(
            "Could not start checkout. Please try again.",
            code="billing_provider_error",
            status_code=502,
        )
    return CheckoutResponse(session_id=session.session_id, url=session.url)


@router.post("/webhook")
async def handle_webhook(request: Request, services: Services = Depends(get_services)):
    """
    Handle Stripe webhook events.

    Verifies the signature over the raw body, skips already-processed events
    and applies the rest.

    Returns:
        {"received": true, "event_id": ...}

    Errors:
        400: Invalid signature or payload
        503: Billing disabled
        500: Processing failed (Stripe will retry)
    """
    body = await request.body()
    headers = dict(request.headers)

    try:
        return services.billing.process_webhook(headers, body)
    except WebhookSignatureError as e:
        log_event("warning", "[billing] webhook signature rejected", error_code="webhook_signature_invalid", extra={"reason": e})
        raise AppError("Invalid webhook signature", code="webhook_signature_invalid", status_code=400)
    except BillingWebhookError as e:
        log_event("warning", "[billing] webhook payload rejected", error_code="invalid_webhook_payload", extra={"reason": e})
        raise AppError("Invalid webhook payload", code="invalid_webhook_payload", status_code=400)
