"""
Stripe adapter for BillingProvider.

The secret key is passed per request (`api_key=`) rather than set on the
`stripe` module, so several configurations can coexist in one process.
"""
import json
from typing import Any, Dict, Optional

import stripe

from trendscout.features.billing.provider import (
    BillingConfigurationError,
    BillingEvent,
    BillingProviderError,
    BillingWebhookError,
    CheckoutSession,
    WebhookSignatureError,
)

SIGNATURE_HEADER = "stripe-signature"


class StripeProvider:
    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str] = None):
        if not secret_key:
            raise BillingConfigurationError("STRIPE_SECRET_KEY not configured")
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def create_checkout_session(
        self,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_id: Optional[str] = None,
    ) -> CheckoutSession:
        params: Dict[str, Any] = dict(
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
        if customer_id:
            params["customer"] = customer_id
        try:
            session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe checkout failed: {e.user_message or e}") from e
        return CheckoutSession(session_id=session.id, url=session.url)

    def construct_event(self, headers: Dict[str, str], body: bytes) -> BillingEvent:
        if not self.webhook_secret:
            raise BillingConfigurationError("STRIPE_WEBHOOK_SECRET not configured")

        signature = {k.lower(): v for k, v in headers.items()}.get(SIGNATURE_HEADER)
        if not signature:
            raise WebhookSignatureError(f"Missing {SIGNATURE_HEADER} header")

        try:
            stripe.Webhook.construct_event(body, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e)) from e
        except ValueError as e:
            raise BillingWebhookError(f"Undecodable webhook body: {e}") from e

        # Verified; read the plain JSON rather than Stripe's object wrappers
        return parse_event(json.loads(body))


def parse_event(payload: Dict[str, Any]) -> BillingEvent:
    try:
        return BillingEvent(
            event_id=payload["id"],
            event_type=payload["type"],
            created=payload.get("created"),
            data=(payload.get("data") or {}).get("object") or {},
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise BillingWebhookError(f"Malformed event: {e}") from e
