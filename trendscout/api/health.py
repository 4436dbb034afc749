"""Liveness and readiness probes."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from trendscout.core.database import check_connection, get_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

REQUIRED_TABLES = ("app_users", "subscriptions", "usage_records", "billing_events")


def _not_ready(detail: str) -> JSONResponse:
    logger.warning(f"[readyz] not ready: {detail}")
    return JSONResponse(status_code=503, content={"status": "error", "detail": detail})


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Ready once the database answers and every table exists."""
    if not check_connection():
        return _not_ready("database unreachable")

    inspector = inspect(get_engine())
    missing = [name for name in REQUIRED_TABLES if not inspector.has_table(name)]
    if missing:
        return _not_ready(f"missing tables: {', '.join(missing)}")
    return {"status": "ok"}
