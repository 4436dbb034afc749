from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Tier(str, Enum):
    """Entitlement level controlling quota and feature access."""
    FREE = "free"
    PRO = "pro"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Tier":
        """Stored/untrusted value -> Tier, falling back to FREE."""
        try:
            return cls(value)
        except ValueError:
            return cls.FREE


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    subscription_tier: Tier = Tier.FREE
    stripe_customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
