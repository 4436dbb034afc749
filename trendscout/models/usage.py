"""
Usage models for monthly metering.

A UsageRecord is keyed by (user_id, month) where month is "YYYY-MM" on the
UTC clock. A new month means a new key, so counters never need resetting.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UsageRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    month: str
    search_count: int = 0
    last_search_at: Optional[datetime] = None


class UsageStats(BaseModel):
    """Caller-facing usage summary. `limit` is None when the tier has no cap."""
    model_config = ConfigDict(frozen=True)

    current: int
    limit: Optional[int]
    month: str
