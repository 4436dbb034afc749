"""
Billing service orchestrator.

Coordinates:
- Checkout session creation (user id embedded as metadata for correlation)
- Webhook verification, deduplication and dispatch
- Subscription record upserts and user tier synchronization

All Stripe-specific code is in stripe_provider.py.

Every handler is a function of (stored state, event) and is safe to apply
twice or out of order: subscriptions are upserted on the provider
subscription id, and an event older than the last one applied to that
subscription is ignored.
"""
import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Dict, Optional
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trendscout.core.database import get_db_session, billing_events, subscriptions
from trendscout.core.errors import BillingDisabledError
from trendscout.features.billing.provider import (
    BillingConfigurationError,
    BillingEvent,
    BillingProvider,
    CheckoutSession,
)
from trendscout.features.entitlements.service import EntitlementResolver
from trendscout.features.users.service import UserStore
from trendscout.models.subscription import SubscriptionStatus
from trendscout.models.user import Tier

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def _object_id(value: Any) -> Optional[str]:
    """Stripe references are ids, or objects when expanded."""
    if isinstance(value, dict):
        return value.get("id")
    return value


def _first_item(subscription: Dict[str, Any]) -> Dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def tier_from_subscription(subscription: Dict[str, Any]) -> Tier:
    """Tier from the price metadata of the first item; paid plans default to pro."""
    price = _first_item(subscription).get("price") or {}
    value = (price.get("metadata") or {}).get("tier")
    if value in (Tier.FREE.value, Tier.PRO.value):
        return Tier(value)
    return Tier.PRO


def period_end_from_subscription(subscription: Dict[str, Any]) -> Optional[datetime]:
    ts = subscription.get("current_period_end") or _first_item(subscription).get("current_period_end")
    if not ts:
        return None
    return datetime.fromtimestamp(ts, timezone.utc)


class BillingService:
    def __init__(
        self,
        provider: Optional[BillingProvider],
        user_store: UserStore,
        entitlements: EntitlementResolver,
        session_scope: Callable[[], ContextManager[Session]] = get_db_session,
        price_id: Optional[str] = None,
        webapp_url: str = "http://localhost:3000",
    ):
        self.provider = provider
        self.user_store = user_store
        self.entitlements = entitlements
        self._session_scope = session_scope
        self.price_id = price_id
        self.webapp_url = webapp_url.rstrip("/")

    def billing_enabled(self) -> bool:
        """Check if billing is enabled (provider configured)."""
        return self.provider is not None

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_checkout_session(self, user_id: str) -> CheckoutSession:
        """
        Start a Pro subscription checkout for the user.

        Raises:
            BillingDisabledError: Provider or price not configured
            BillingProviderError: Provider call failed
        """
        if not self.provider:
            raise BillingDisabledError("Billing is not available right now.")
        if not self.price_id:
            raise BillingDisabledError("No price configured for the Pro plan.")

        user = self.user_store.get_or_create_user(user_id)
        session = self.provider.create_checkout_session(
            price_id=self.price_id,
            success_url=f"{self.webapp_url}/subscription?success=true",
            cancel_url=f"{self.webapp_url}/subscription?canceled=true",
            metadata={"userId": user_id},
            customer_id=user.stripe_customer_id,
        )
        logger.info("[billing] checkout session created", extra={"user_id": user_id})
        return session

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def process_webhook(self, headers: Dict[str, str], body: bytes) -> Dict[str, Any]:
        """
        Verify and apply one provider event.

        1. Verify signature (nothing is read or written before this)
        2. Skip events already processed
        3. Dispatch by event type
        4. Mark as processed, or record the error and re-raise so the
           provider retries

        Raises:
            BillingDisabledError: Provider not configured
            WebhookSignatureError: Missing or invalid signature
            BillingWebhookError: Unparseable payload
        """
        if not self.provider:
            raise BillingDisabledError("Billing is not available right now.")
        try:
            event = self.provider.construct_event(headers, body)
        except BillingConfigurationError as e:
            raise BillingDisabledError(str(e))

        if not self._record_event(event, hashlib.sha256(body).hexdigest()):
            logger.info(
                "[billing] duplicate event skipped",
                extra={"event_id": event.event_id, "event_type": event.event_type},
            )
            return {"received": True, "event_id": event.event_id, "duplicate": True}

        try:
            handled = self.dispatch(event)
        except Exception as e:
            logger.error(
                "[billing] event processing failed",
                exc_info=True,
                extra={"event_id": event.event_id, "event_type": event.event_type},
            )
            self._mark_event(event.event_id, error=str(e))
            raise

        self._mark_event(event.event_id)
        return {"received": True, "event_id": event.event_id, "handled": handled}

    def _record_event(self, event: BillingEvent, payload_hash: str) -> bool:
        """Record the event; False when it was already processed."""
        with self._session_scope() as session:
            row = session.execute(
                select(billing_events.c.processed).where(
                    billing_events.c.stripe_event_id == event.event_id
                )
            ).first()
            if row is not None:
                # A failed earlier attempt is retried
                return not row.processed
        try:
            with self._session_scope() as session:
                session.execute(
                    insert(billing_events).values(
                        stripe_event_id=event.event_id,
                        event_type=event.event_type,
                        payload_hash=payload_hash,
                        processed=False,
                    )
                )
        except IntegrityError:
            # Race: another delivery of the same event got here first
            return False
        return True

    def _mark_event(self, event_id: str, error: Optional[str] = None) -> None:
        values: Dict[str, Any] = {"error": error}
        if error is None:
            values.update(processed=True, processed_at=datetime.now(timezone.utc))
        with self._session_scope() as session:
            session.execute(
                update(billing_events)
                .where(billing_events.c.stripe_event_id == event_id)
                .values(**values)
            )

    def dispatch(self, event: BillingEvent) -> bool:
        """Apply one verified event. Returns False when it was a no-op."""
        if event.event_type == CHECKOUT_COMPLETED:
            return self.handle_checkout_completed(event.data)
        if event.event_type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
            return self.handle_subscription_update(event.data, event.created)
        if event.event_type == SUBSCRIPTION_DELETED:
            return self.handle_subscription_deleted(event.data, event.created)

        logger.info(f"[billing] unhandled event type: {event.event_type}", extra={"event_id": event.event_id})
        return False

    def handle_checkout_completed(self, checkout: Dict[str, Any]) -> bool:
        """Attach the provider customer id to the user named in the session metadata."""
        metadata = checkout.get("metadata") or {}
        user_id = metadata.get("userId")
        if not user_id:
            logger.error("[billing] missing userId in checkout session metadata")
            return False

        customer_id = _object_id(checkout.get("customer"))
        if not customer_id:
            logger.error("[billing] checkout session has no customer", extra={"user_id": user_id})
            return False

        try:
            self.user_store.attach_customer(user_id, customer_id)
        except IntegrityError:
            logger.error(
                "[billing] customer already attached to another user",
                extra={"user_id": user_id},
            )
            return False
        logger.info("[billing] customer attached", extra={"user_id": user_id})
        return True

    def handle_subscription_update(self, subscription: Dict[str, Any], event_created: Optional[int] = None) -> bool:
        subscription_id = subscription.get("id")
        if not subscription_id:
            logger.error("[billing] subscription event without id ignored")
            return False

        customer_id = _object_id(subscription.get("customer"))
        user = self.user_store.find_by_customer_id(customer_id) if customer_id else None
        if not user:
            logger.error(f"[billing] user not found for customer {customer_id}")
            return False

        status = SubscriptionStatus.from_provider(subscription.get("status"))
        tier = tier_from_subscription(subscription)
        applied = self._upsert_subscription(
            user_id=user.user_id,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            tier=tier,
            status=status,
            current_period_end=period_end_from_subscription(subscription),
            event_created=event_created,
        )
        if not applied:
            logger.info(
                "[billing] stale subscription event ignored",
                extra={"user_id": user.user_id, "status": status.value},
            )
            return False

        # The only path by which a user moves onto a paid tier
        if status == SubscriptionStatus.ACTIVE:
            self.entitlements.update_tier(user.user_id, tier)
        return True

    def handle_subscription_deleted(self, subscription: Dict[str, Any], event_created: Optional[int] = None) -> bool:
        subscription_id = subscription.get("id")
        if not subscription_id:
            logger.error("[billing] subscription event without id ignored")
            return False

        customer_id = _object_id(subscription.get("customer"))
        user = self.user_store.find_by_customer_id(customer_id) if customer_id else None
        if not user:
            logger.error(f"[billing] user not found for customer {customer_id}")
            return False

        self._upsert_subscription(
            user_id=user.user_id,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            tier=tier_from_subscription(subscription),
            status=SubscriptionStatus.CANCELED,
            current_period_end=period_end_from_subscription(subscription),
            event_created=event_created,
            terminal=True,
        )
        self.entitlements.update_tier(user.user_id, Tier.FREE)
        return True

    def _upsert_subscription(self, **fields) -> bool:
        for attempt in range(2):
            try:
                return self._write_subscription(**fields)
            except IntegrityError:
                # Concurrent insert for the same subscription id; retry as an update
                if attempt:
                    raise
        return False

    def _write_subscription(
        self,
        *,
        user_id: str,
        stripe_customer_id: Optional[str],
        stripe_subscription_id: str,
        tier: Tier,
        status: SubscriptionStatus,
        current_period_end: Optional[datetime],
        event_created: Optional[int],
        terminal: bool = False,
    ) -> bool:
        """Upsert keyed by provider subscription id. False when the event is stale.

        A deletion (`terminal`) always applies and marks the row deleted; any
        non-terminal event arriving after that is ignored whatever its
        timestamp. Otherwise the stored timestamp only ever moves forward so
        older updates delivered late are ignored. Events without a `created`
        timestamp skip the ordering check.
        """
        now = datetime.now(timezone.utc)
        deleted_at = now if terminal else None
        with self._session_scope() as session:
            row = session.execute(
                select(
                    subscriptions.c.status,
                    subscriptions.c.last_event_created,
                    subscriptions.c.deleted_at,
                ).where(subscriptions.c.stripe_subscription_id == stripe_subscription_id)
            ).first()

            if row is None:
                session.execute(
                    insert(subscriptions).values(
                        user_id=user_id,
                        tier=tier.value,
                        status=status.value,
                        stripe_customer_id=stripe_customer_id,
                        stripe_subscription_id=stripe_subscription_id,
                        current_period_end=current_period_end,
                        last_event_created=event_created,
                        deleted_at=deleted_at,
                        created_at=now,
                        updated_at=now,
                    )
                )
                return True

            last = row.last_event_created
            if not terminal:
                if row.deleted_at is not None:
                    return False
                if last is not None and event_created is not None and event_created < last:
                    return False

            values: Dict[str, Any] = {
                "tier": tier.value,
                "status": status.value,
                "updated_at": now,
            }
            if terminal and row.deleted_at is None:
                values["deleted_at"] = deleted_at
            if current_period_end is not None:
                values["current_period_end"] = current_period_end
            if event_created is not None:
                values["last_event_created"] = max(event_created, last or event_created)
            session.execute(
                update(subscriptions)
                .where(subscriptions.c.stripe_subscription_id == stripe_subscription_id)
                .values(**values)
            )
            return True
