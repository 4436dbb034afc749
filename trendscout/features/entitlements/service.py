"""
trendscout/features/entitlements/service.py

Entitlement resolution.

Handles:
- user id -> tier, creating free-tier users lazily
- active subscription lookup
- explicit tier updates

Reads never raise: any storage failure resolves to the free tier.
"""

import logging
from typing import Callable, ContextManager
from sqlalchemy import select, and_
from sqlalchemy.orm import Session

from trendscout.core.database import get_db_session, subscriptions
from trendscout.features.users.service import UserStore
from trendscout.models.subscription import Subscription, SubscriptionStatus
from trendscout.models.user import Tier


logger = logging.getLogger(__name__)

_FREE_SUBSCRIPTION = Subscription(tier=Tier.FREE, status=SubscriptionStatus.ACTIVE)


class EntitlementResolver:
    def __init__(
        self,
        user_store: UserStore,
        session_scope: Callable[[], ContextManager[Session]] = get_db_session,
    ):
        self.user_store = user_store
        self._session_scope = session_scope

    def get_tier(self, user_id: str) -> Tier:
        try:
            user = self.user_store.get_or_create_user(user_id)
        except Exception:
            logger.warning(
                "[entitlement] tier lookup failed, defaulting to free",
                exc_info=True,
                extra={"user_id": user_id},
            )
            return Tier.FREE
        return user.subscription_tier or Tier.FREE

    def get_user_subscription(self, user_id: str) -> Subscription:
        """Most recent active subscription, or a synthetic free one."""
        try:
            with self._session_scope() as session:
                row = session.execute(
                    select(subscriptions)
                    .where(
                        and_(
                            subscriptions.c.user_id == user_id,
                            subscriptions.c.status == SubscriptionStatus.ACTIVE.value,
                        )
                    )
                    .order_by(subscriptions.c.updated_at.desc(), subscriptions.c.id.desc())
                    .limit(1)
                ).first()
        except Exception:
            logger.warning(
                "[entitlement] subscription lookup failed",
                exc_info=True,
                extra={"user_id": user_id},
            )
            return _FREE_SUBSCRIPTION

        if not row:
            return _FREE_SUBSCRIPTION

        return Subscription(
            user_id=row.user_id,
            tier=Tier.parse(row.tier),
            status=SubscriptionStatus(row.status),
            stripe_customer_id=row.stripe_customer_id,
            stripe_subscription_id=row.stripe_subscription_id,
            current_period_end=row.current_period_end,
        )

    def update_tier(self, user_id: str, tier: Tier) -> None:
        """Write the enforced tier. Unlike reads, failures propagate."""
        self.user_store.set_tier(user_id, tier)
        logger.info("[entitlement] tier updated", extra={"user_id": user_id, "tier": Tier(tier).value})
