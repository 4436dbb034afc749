"""Usage and subscription read endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends

from trendscout.core.auth import resolve_user_id
from trendscout.features.services import Services, get_services

router = APIRouter(prefix="/v1", tags=["usage"])


@router.get("/usage")
def usage_statistics(
    user_id: Optional[str] = Depends(resolve_user_id),
    services: Services = Depends(get_services),
):
    """Current month's search count and limit (`limit` is null for pro)."""
    return services.gate.get_usage_statistics(user_id)


@router.get("/subscription")
def subscription_info(
    user_id: Optional[str] = Depends(resolve_user_id),
    services: Services = Depends(get_services),
):
    return services.gate.get_subscription_info(user_id)
