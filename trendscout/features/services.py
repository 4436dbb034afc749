"""
Service wiring.

Builds every feature service from settings once, at app creation. Routes pull
the container off `app.state`; tests build their own with doubles.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from trendscout.core.config import Settings, settings
from trendscout.features.billing.provider import BillingProvider
from trendscout.features.billing.service import BillingService
from trendscout.features.billing.stripe_provider import StripeProvider
from trendscout.features.entitlements.service import EntitlementResolver
from trendscout.features.gate.service import TopicRequestGate
from trendscout.features.topics.groq_provider import GroqTopicGenerator
from trendscout.features.topics.provider import TopicGenerator
from trendscout.features.topics.service import TopicFetcher
from trendscout.features.usage.service import UsageService
from trendscout.features.users.service import UserStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    users: UserStore
    entitlements: EntitlementResolver
    usage: UsageService
    fetcher: TopicFetcher
    gate: TopicRequestGate
    billing: BillingService


def get_billing_provider(settings_obj: Optional[Settings] = None) -> Optional[BillingProvider]:
    """Stripe provider when STRIPE_SECRET_KEY is set, otherwise None (billing disabled)."""
    cfg = settings_obj or settings
    if not cfg.STRIPE_SECRET_KEY:
        logger.info("[billing] STRIPE_SECRET_KEY not set, billing disabled")
        return None
    return StripeProvider(secret_key=cfg.STRIPE_SECRET_KEY, webhook_secret=cfg.STRIPE_WEBHOOK_SECRET)


def build_services(
    settings_obj: Optional[Settings] = None,
    generator: Optional[TopicGenerator] = None,
    billing_provider: Optional[BillingProvider] = None,
) -> Services:
    cfg = settings_obj or settings

    users = UserStore()
    entitlements = EntitlementResolver(users)
    usage = UsageService(entitlements, free_limit=cfg.FREE_TIER_MONTHLY_LIMIT)

    if generator is None:
        generator = GroqTopicGenerator(
            api_key=cfg.GROQ_API_KEY,
            model=cfg.GROQ_MODEL,
            temperature=cfg.GROQ_TEMPERATURE,
        )
    fetcher = TopicFetcher(generator, target_count=cfg.TOPICS_TARGET_COUNT)
    gate = TopicRequestGate(entitlements, usage, fetcher)

    if billing_provider is None:
        billing_provider = get_billing_provider(cfg)
    billing = BillingService(
        billing_provider,
        users,
        entitlements,
        price_id=cfg.STRIPE_PRO_PRICE_ID,
        webapp_url=cfg.WEBAPP_URL,
    )

    return Services(
        users=users,
        entitlements=entitlements,
        usage=usage,
        fetcher=fetcher,
        gate=gate,
        billing=billing,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
