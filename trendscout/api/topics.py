"""Trending topics API.

POST /v1/topics/trending: gated topic generation (auth, quota, tier features).
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from trendscout.core.auth import resolve_user_id
from trendscout.features.services import Services, get_services

router = APIRouter(prefix="/v1/topics", tags=["topics"])


class TrendingTopicsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_range: Optional[str] = Field(None, alias="timeRange")
    search_term: Optional[str] = Field(None, alias="searchTerm")
    business_context: Optional[str] = Field(None, alias="businessContext")
    category: Optional[str] = None


@router.post("/trending")
def trending_topics(
    body: TrendingTopicsRequest,
    user_id: Optional[str] = Depends(resolve_user_id),
    services: Services = Depends(get_services),
):
    """
    Generate trending topics for a time range.

    Errors:
        401: Not signed in
        400: timeRange missing
        429: Free-tier monthly limit reached, or AI service rate limited
        403: businessContext on the free tier
        502/503: AI service failures
    """
    return services.gate.get_trending_topics(
        user_id,
        body.time_range,
        search_term=body.search_term,
        business_context=body.business_context,
        category=body.category,
    )
