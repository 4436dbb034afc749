"""
Subscription model.

One record per provider subscription id. Only an `active` subscription
grants its tier; the user row carries the tier actually enforced.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from trendscout.models.user import Tier


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"

    @classmethod
    def from_provider(cls, status: Optional[str]) -> "SubscriptionStatus":
        """Map a Stripe subscription status onto the three tracked states."""
        if status == "active":
            return cls.ACTIVE
        if status == "past_due":
            return cls.PAST_DUE
        return cls.CANCELED


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: Tier
    status: SubscriptionStatus
    user_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
