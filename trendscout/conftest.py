# trendscout/conftest.py
import os
import sys
from pathlib import Path

import pytest

# Repo root on PYTHONPATH so `trendscout.*` imports resolve
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

os.environ.setdefault("SKIP_ENV_VALIDATION", "1")
os.environ.setdefault("ENV", "test")

from trendscout.tests.mocks import WEBHOOK_SECRET  # noqa: E402


@pytest.fixture(scope="function", autouse=True)
def db():
    """
    Fresh in-memory SQLite database per test.

    StaticPool keeps one shared connection, so every session in the test sees
    the same database.
    """
    from trendscout.core.database import init_engine, reset_database, dispose_engine

    init_engine("sqlite://")
    reset_database()
    yield
    dispose_engine()


@pytest.fixture
def test_settings():
    from trendscout.core.config import Settings

    return Settings(
        _env_file=None,
        ENV="test",
        AUTH_ALLOW_USER_HEADER=True,
        AUTH_JWT_SECRET="test-jwt-secret-with-at-least-32-bytes",
        GROQ_API_KEY=None,
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        STRIPE_PRO_PRICE_ID="price_pro_monthly",
        WEBAPP_URL="https://app.example.com",
        FREE_TIER_MONTHLY_LIMIT=10,
        TOPICS_TARGET_COUNT=100,
    )


@pytest.fixture
def fake_generator():
    from trendscout.tests.mocks import FakeTopicGenerator

    return FakeTopicGenerator()


@pytest.fixture
def fake_billing():
    from trendscout.tests.mocks import FakeBillingProvider

    return FakeBillingProvider()


@pytest.fixture
def services(test_settings, fake_generator, fake_billing):
    from trendscout.features.services import build_services

    return build_services(test_settings, generator=fake_generator, billing_provider=fake_billing)


@pytest.fixture
def client(services, test_settings):
    from fastapi.testclient import TestClient
    from trendscout.main import create_app

    return TestClient(create_app(services=services, settings_obj=test_settings))
