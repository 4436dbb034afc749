"""HTTP surface for topics, usage and subscription info."""

import jwt

from trendscout.core.errors import UpstreamRateLimitedError


def test_trending_topics_with_user_header(client, fake_generator):
    resp = client.post(
        "/v1/topics/trending",
        headers={"X-User-Id": "user_a"},
        json={"timeRange": "6 months", "searchTerm": "AI Agents", "category": "All"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["topics"]) == 3
    assert set(body["topics"][0]) == {"id", "name", "category", "description", "growth"}
    assert '"AI Agents"' in fake_generator.prompts[0]


def test_trending_topics_with_bearer_token(client):
    token = jwt.encode({"sub": "user_jwt"}, "test-jwt-secret-with-at-least-32-bytes", algorithm="HS256")
    resp = client.post(
        "/v1/topics/trending",
        headers={"Authorization": f"Bearer {token}"},
        json={"timeRange": "1 month"},
    )
    assert resp.status_code == 200

    usage = client.get("/v1/usage", headers={"Authorization": f"Bearer {token}"})
    assert usage.json()["current"] == 1


def test_invalid_token_is_401(client):
    token = jwt.encode({"sub": "user_jwt"}, "a-different-secret-of-at-least-32-bytes", algorithm="HS256")
    resp = client.post(
        "/v1/topics/trending",
        headers={"Authorization": f"Bearer {token}"},
        json={"timeRange": "1 month"},
    )
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"


def test_missing_principal_is_401(client, fake_generator):
    resp = client.post("/v1/topics/trending", json={"timeRange": "6 months"})
    assert resp.status_code == 401
    assert fake_generator.call_count == 0


def test_user_header_ignored_when_disabled(services, test_settings):
    from fastapi.testclient import TestClient
    from trendscout.main import create_app

    cfg = test_settings.model_copy(update={"AUTH_ALLOW_USER_HEADER": False})
    client = TestClient(create_app(services=services, settings_obj=cfg))

    resp = client.get("/v1/usage", headers={"X-User-Id": "user_a"})
    assert resp.status_code == 401


def test_missing_time_range_is_400(client):
    resp = client.post("/v1/topics/trending", headers={"X-User-Id": "user_a"}, json={})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_argument"


def test_non_string_category_is_400(client):
    resp = client.post(
        "/v1/topics/trending",
        headers={"X-User-Id": "user_a"},
        json={"timeRange": "6 months", "category": 3},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_argument"


def test_quota_exhausted_is_429(client, fake_generator):
    headers = {"X-User-Id": "user_a"}
    for _ in range(10):
        assert client.post("/v1/topics/trending", headers=headers, json={"timeRange": "6 months"}).status_code == 200

    resp = client.post("/v1/topics/trending", headers=headers, json={"timeRange": "6 months"})
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "quota_exhausted"
    assert fake_generator.call_count == 10


def test_business_context_on_free_is_403(client):
    resp = client.post(
        "/v1/topics/trending",
        headers={"X-User-Id": "user_a"},
        json={"timeRange": "6 months", "businessContext": "Indie game studio"},
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "permission_denied"


def test_upstream_rate_limit_is_429(client, fake_generator):
    fake_generator.error = UpstreamRateLimitedError("AI service quota exceeded. Please try again later.")
    resp = client.post("/v1/topics/trending", headers={"X-User-Id": "user_a"}, json={"timeRange": "6 months"})
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "upstream_rate_limited"


def test_malformed_model_output_is_502(client, fake_generator):
    fake_generator.response = '{"topics": []}'
    resp = client.post("/v1/topics/trending", headers={"X-User-Id": "user_a"}, json={"timeRange": "6 months"})
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "upstream_malformed"


def test_usage_and_subscription_endpoints(client, services):
    headers = {"X-User-Id": "user_a"}
    client.post("/v1/topics/trending", headers=headers, json={"timeRange": "6 months"})

    usage = client.get("/v1/usage", headers=headers).json()
    assert usage["current"] == 1
    assert usage["limit"] == 10
    assert len(usage["month"]) == 7

    services.entitlements.update_tier("user_a", "pro")
    sub = client.get("/v1/subscription", headers=headers).json()
    assert sub["tier"] == "pro"
    assert sub["usage"]["limit"] is None
