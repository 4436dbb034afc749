"""
Payment-provider seam.

BillingService talks to this Protocol only; StripeProvider implements it for
production and tests plug in a double.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class CheckoutSession:
    """A hosted checkout page the client is redirected to."""
    session_id: str
    url: str


@dataclass(frozen=True)
class BillingEvent:
    """A verified webhook event, reduced to what the handlers read."""
    event_id: str
    event_type: str
    created: Optional[int]  # epoch seconds, provider clock
    data: Dict[str, Any] = field(default_factory=dict)  # event.data.object


class BillingProvider(Protocol):
    def create_checkout_session(
        self,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_id: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Start a subscription checkout for one price.

        `metadata` must end up on both the session and the subscription it
        creates, so later subscription events can be tied back to the user.
        Pass `customer_id` to reuse a customer from an earlier checkout.

        Raises:
            BillingProviderError: The provider call failed
        """
        ...

    def construct_event(self, headers: Dict[str, str], body: bytes) -> BillingEvent:
        """
        Authenticate a webhook delivery and decode it.

        `body` is the raw request body; the signature covers those exact bytes.

        Raises:
            BillingConfigurationError: No webhook secret to verify against
            WebhookSignatureError: Signature header absent or not valid
            BillingWebhookError: Body is not a decodable event
        """
        ...


class BillingProviderError(Exception):
    """The payment provider could not complete a request."""


class BillingConfigurationError(BillingProviderError):
    """A secret the provider needs is not configured."""


class BillingWebhookError(BillingProviderError):
    """A webhook delivery could not be turned into an event."""


class WebhookSignatureError(BillingWebhookError):
    """Signature header missing, or not valid for the configured secret."""
