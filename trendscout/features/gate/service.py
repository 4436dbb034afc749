"""
trendscout/features/gate/service.py

Request gate for topic fetches.

Order of checks (each step only runs if the previous passed):
1. authenticated principal
2. timeRange present and a string
3. tier resolution
4. free tier: monthly quota
5. free tier: business context is a pro feature
6. model call
7. usage increment (only after a successful fetch)

No model cost is incurred for a request that will be rejected, and quota is
only consumed by requests that actually reached the model.
"""

import logging
from typing import Any, Dict, List, Optional

from trendscout.core.errors import (
    PermissionError,
    QuotaExceededError,
    UnauthenticatedError,
    ValidationError,
)
from trendscout.features.entitlements.service import EntitlementResolver
from trendscout.features.topics.service import TopicFetcher
from trendscout.features.usage.service import UsageService
from trendscout.models.topic import Topic
from trendscout.models.user import Tier

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = "Monthly search limit reached. Upgrade to Pro for unlimited searches."
BUSINESS_CONTEXT_MESSAGE = (
    "Business context personalization is available in Pro tier only. "
    "Upgrade to Pro to unlock this feature."
)


class TopicRequestGate:
    def __init__(self, entitlements: EntitlementResolver, usage: UsageService, fetcher: TopicFetcher):
        self.entitlements = entitlements
        self.usage = usage
        self.fetcher = fetcher

    def get_trending_topics(
        self,
        user_id: Optional[str],
        time_range: Any,
        search_term: Optional[str] = None,
        business_context: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Dict[str, List[Topic]]:
        if not user_id:
            raise UnauthenticatedError("User must be authenticated to fetch trending topics")

        if not time_range or not isinstance(time_range, str) or not time_range.strip():
            raise ValidationError("timeRange is required")

        tier = self.entitlements.get_tier(user_id)

        if tier == Tier.FREE and not self.usage.check_limit(user_id, tier=tier):
            logger.info("[gate] rejected: quota exhausted", extra={"user_id": user_id, "tier": tier.value})
            raise QuotaExceededError(QUOTA_MESSAGE)

        has_context = isinstance(business_context, str) and bool(business_context.strip())
        if has_context and tier == Tier.FREE:
            logger.info("[gate] rejected: business context on free tier", extra={"user_id": user_id})
            raise PermissionError(BUSINESS_CONTEXT_MESSAGE)

        topics = self.fetcher.fetch_trending_topics(
            time_range,
            search_term=search_term or None,
            business_context=business_context or None,
            category=category or None,
        )

        self.usage.increment(user_id)
        return {"topics": topics}

    def get_usage_statistics(self, user_id: Optional[str]):
        if not user_id:
            raise UnauthenticatedError("User must be authenticated")
        return self.usage.stats(user_id)

    def get_subscription_info(self, user_id: Optional[str]) -> Dict[str, Any]:
        if not user_id:
            raise UnauthenticatedError("User must be authenticated")
        tier = self.entitlements.get_tier(user_id)
        return {"tier": tier, "usage": self.usage.stats(user_id)}
