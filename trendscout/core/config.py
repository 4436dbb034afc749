"""Runtime configuration, read from the environment and `.env`."""

import logging
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Keys a deployed instance cannot do its job without
REQUIRED_KEYS = (
    "DATABASE_URL",
    "AUTH_JWT_SECRET",
    "GROQ_API_KEY",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_PRO_PRICE_ID",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Topic generation (Groq)
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "openai/gpt-oss-20b"
    GROQ_TEMPERATURE: float = Field(0.8, ge=0.0, le=2.0)
    TOPICS_TARGET_COUNT: int = Field(100, ge=1)

    # Auth: HS* bearer tokens, `sub` is the user id
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWT_ALGORITHMS: str = "HS256"
    AUTH_ALLOW_USER_HEADER: bool = False

    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_PRO_PRICE_ID: Optional[str] = None

    WEBAPP_URL: str = "http://localhost:3000"
    CORS_ORIGINS: str = "http://localhost:3000"

    FREE_TIER_MONTHLY_LIMIT: int = 10

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def jwt_algorithms(self) -> List[str]:
        return [alg.strip() for alg in self.AUTH_JWT_ALGORITHMS.split(",") if alg.strip()] or ["HS256"]

    def missing_keys(self) -> List[str]:
        return [key for key in REQUIRED_KEYS if not getattr(self, key, None)]


settings = Settings()


def validate_config(
    strict: Optional[bool] = None,
    settings_obj: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Report missing required keys (names only, never values).

    Warns by default; raises RuntimeError when strict (CONFIG_STRICT).
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("trendscout.config")
    if strict is None:
        strict = cfg.CONFIG_STRICT

    missing = cfg.missing_keys()
    if not missing:
        return True

    message = f"Missing required configuration: {', '.join(missing)}"
    if strict:
        raise RuntimeError(message)
    log.warning(message)
    return True
