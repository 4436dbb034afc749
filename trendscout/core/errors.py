"""Error taxonomy and FastAPI handlers.

Every caller-facing rejection is an AppError subclass carrying a stable
`code`, an HTTP status, and a human-readable message that is shown to the end
user as-is.
"""

import logging
import builtins
from typing import Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from trendscout.core.logging import get_request_id

logger = logging.getLogger("trendscout.errors")


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class UnauthenticatedError(AppError):
    code = "unauthenticated"
    status_code = 401


class ValidationError(AppError, ValueError):
    code = "invalid_argument"
    status_code = 400


class PermissionError(AppError, builtins.PermissionError):
    """Premium feature requested by a tier that does not include it."""
    code = "permission_denied"
    status_code = 403


class QuotaExceededError(AppError):
    """Free-tier monthly search limit reached."""
    code = "quota_exhausted"
    status_code = 429


class TopicGenerationError(AppError):
    """Generic failure while generating topics."""
    code = "topic_generation_failed"
    status_code = 502


class UpstreamUnavailableError(TopicGenerationError):
    """The generative model could not be reached or failed server-side."""
    code = "upstream_unavailable"
    status_code = 503


class UpstreamRateLimitedError(TopicGenerationError):
    code = "upstream_rate_limited"
    status_code = 429


class UpstreamMalformedError(TopicGenerationError):
    """The model responded, but with nothing usable."""
    code = "upstream_malformed"
    status_code = 502


class BillingDisabledError(AppError):
    code = "billing_disabled"
    status_code = 503


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or uuid4().hex


def error_response(request: Request, status_code: int, code: str, message: str, request_id: Optional[str] = None) -> JSONResponse:
    """The one error body shape: {"error": {code, message, request_id}, "detail": message}."""
    rid = request_id or _request_id(request)
    content = {"error": {"code": code, "message": message, "request_id": rid}, "detail": message}
    return JSONResponse(status_code=status_code, content=content, headers={"x-request-id": rid})


async def app_error_handler(request: Request, exc: AppError):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(level, f"[error] {exc.code}: {exc.message}", extra={"error_code": exc.code, "status": exc.status_code})
    return error_response(request, exc.status_code, exc.code, exc.message, exc.request_id)


async def http_error_handler(request: Request, exc: HTTPException):
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning(f"[error] http {exc.status_code}", extra={"error_code": code, "status": exc.status_code})
    return error_response(request, exc.status_code, code, str(exc.detail or "HTTP error"))


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Schema failures are ordinary invalid arguments (400), not 422."""
    message = "Invalid request"
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        reason = first.get("msg", "invalid value")
        message = f"{field}: {reason}" if field else reason
    logger.warning(f"[error] invalid request: {message}", extra={"error_code": ValidationError.code, "status": 400})
    return error_response(request, 400, ValidationError.code, message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("[error] unhandled exception", exc_info=exc, extra={"error_code": "internal_error", "status": 500})
    return error_response(request, 500, "internal_error", "Unexpected error")
