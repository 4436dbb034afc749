"""
Auth utilities for the TrendScout API.

Validates bearer JWTs and extracts the principal's user id from the `sub`
claim. Falls back to the X-User-Id header only when AUTH_ALLOW_USER_HEADER is
enabled (tests, local development).

The dependency never raises for a *missing* principal: it returns None and
the operation being called rejects with UnauthenticatedError, keeping the
authentication check first in each operation's own ordering.
"""
from fastapi import Header, Request
from typing import Optional
from trendscout.core.config import settings
from trendscout.core.errors import UnauthenticatedError
import jwt
import logging

logger = logging.getLogger(__name__)


def verify_jwt(token: str, settings_obj=None) -> Optional[str]:
    """
    Verify a bearer JWT and extract user_id.

    Args:
        token: JWT from Authorization header (Bearer {token})

    Returns:
        user_id from the 'sub' claim, or None when no secret is configured

    Raises:
        UnauthenticatedError: Invalid or expired token
    """
    cfg = settings_obj or settings
    if not cfg.AUTH_JWT_SECRET:
        logger.debug("No AUTH_JWT_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            cfg.AUTH_JWT_SECRET,
            algorithms=cfg.jwt_algorithms,
            options={"verify_signature": True, "verify_exp": True, "verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Session expired. Please sign in again.")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthenticatedError("Invalid authentication token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthenticatedError("Invalid authentication token")
    return user_id


async def resolve_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Test/dev user ID (only when enabled)"),
) -> Optional[str]:
    """
    Extract the current user ID from request context.

    Priority:
    1. JWT from Authorization header
    2. X-User-Id header (when AUTH_ALLOW_USER_HEADER is on)
    3. None (caller is unauthenticated)
    """
    cfg = getattr(request.app.state, "settings", None) or settings

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        user_id = verify_jwt(auth_header[7:], cfg)
        if user_id:
            request.state.user_id = user_id
            return user_id

    if x_user_id and cfg.AUTH_ALLOW_USER_HEADER:
        request.state.user_id = x_user_id
        return x_user_id

    return None
