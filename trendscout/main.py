import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from trendscout/.env
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from trendscout.core.config import Settings, settings, validate_config
from trendscout.core.database import create_all_tables
from trendscout.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_error_handler,
    unhandled_exception_handler,
)
from trendscout.core.logging import configure_logging
from trendscout.core.middleware.request_id import RequestIdMiddleware
from trendscout.core.validation import validate_env
from trendscout.api import billing, health, topics, usage
from trendscout.features.services import Services, build_services


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("trendscout")
    logger.info("Starting TrendScout backend...")
    app.state.startup_time = time.time()
    try:
        create_all_tables()
    except ValueError as e:
        # No DATABASE_URL: liveness still answers, readiness reports the problem
        logger.error(f"[startup] database not initialized: {e}")
    try:
        yield
    finally:
        logger.info("Stopping TrendScout backend...")


def create_app(services: Optional[Services] = None, settings_obj: Optional[Settings] = None) -> FastAPI:
    cfg = settings_obj or settings

    configure_logging(cfg.ENV)
    validate_env(settings_obj=cfg)
    validate_config(settings_obj=cfg)

    app = FastAPI(title="TrendScout API", lifespan=lifespan)
    app.state.settings = cfg
    app.state.services = services or build_services(cfg)

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(topics.router)
    app.include_router(usage.router)
    app.include_router(billing.router, prefix="/api")
    app.include_router(health.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("trendscout.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
