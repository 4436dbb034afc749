"""Topic response validation and model error classification."""

import json
from unittest.mock import Mock

import groq
import httpx
import pytest

from trendscout.core.errors import (
    TopicGenerationError,
    UpstreamMalformedError,
    UpstreamRateLimitedError,
    UpstreamUnavailableError,
    ValidationError,
)
from trendscout.features.topics.groq_provider import GroqTopicGenerator
from trendscout.features.topics.service import (
    EMPTY_RESPONSE_MESSAGE,
    NO_TOPICS_MESSAGE,
    NOT_A_LIST_MESSAGE,
    UNPARSEABLE_RESPONSE_MESSAGE,
    TopicFetcher,
    parse_topics,
)
from trendscout.tests.mocks import FakeCompletion, FakeTopicGenerator, topics_payload

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"


def _groq_client(side_effect=None, content=None):
    client = Mock()
    if side_effect is not None:
        client.chat.completions.create.side_effect = side_effect
    else:
        client.chat.completions.create.return_value = FakeCompletion(content)
    return client


def _status_error(cls, status, body=None):
    request = httpx.Request("POST", GROQ_URL)
    return cls("upstream error", response=httpx.Response(status, request=request), body=body)


# --- parsing -----------------------------------------------------------------


def test_parse_normalizes_topics():
    text = json.dumps(
        {
            "topics": [
                {"id": "AI Copilot Builder", "name": " AI Copilots ", "category": "AI", "description": "x", "growth": 120},
                {"name": "No Id Topic", "category": "SaaS", "description": "y", "growth": 45.5},
            ]
        }
    )
    topics = parse_topics(text)

    assert [t.id for t in topics] == ["ai-copilot-builder", "no-id-topic"]
    assert topics[0].name == "AI Copilots"
    assert topics[1].growth == 45.5


def test_parse_drops_invalid_items():
    text = json.dumps(
        {
            "topics": [
                {"id": "ok", "name": "Ok", "category": "AI", "description": "fine", "growth": 1},
                {"id": "blank", "name": "  ", "category": "AI", "description": "x", "growth": 1},
                {"id": "nogrowth", "name": "No growth", "category": "AI", "description": "x"},
                {"id": "bool", "name": "Bool", "category": "AI", "description": "x", "growth": True},
                {"id": "text", "name": "Text", "category": "AI", "description": "x", "growth": "12"},
                "not-an-object",
            ]
        }
    )
    assert [t.id for t in parse_topics(text)] == ["ok"]


def test_parse_deduplicates_ids():
    item = {"id": "same", "name": "Same", "category": "AI", "description": "x", "growth": 1}
    topics = parse_topics(json.dumps({"topics": [item, item]}))
    assert len({t.id for t in topics}) == 2


@pytest.mark.parametrize(
    "text,message",
    [
        ("", EMPTY_RESPONSE_MESSAGE),
        ("{not json", UNPARSEABLE_RESPONSE_MESSAGE),
        (json.dumps({"topics": "lots"}), NOT_A_LIST_MESSAGE),
        (json.dumps({"topics": []}), NO_TOPICS_MESSAGE),
        (json.dumps([{"id": "a", "name": "A", "category": "AI", "description": "x", "growth": 1}]), NO_TOPICS_MESSAGE),
    ],
)
def test_parse_rejections_have_distinct_messages(text, message):
    with pytest.raises(UpstreamMalformedError) as exc:
        parse_topics(text)
    assert exc.value.message == message


def test_all_items_invalid_is_malformed():
    text = json.dumps({"topics": [{"id": "x"}]})
    with pytest.raises(UpstreamMalformedError):
        parse_topics(text)


# --- fetcher -----------------------------------------------------------------


def test_fetch_returns_topics_and_passes_prompt():
    generator = FakeTopicGenerator(response=topics_payload(5))
    fetcher = TopicFetcher(generator)

    topics = fetcher.fetch_trending_topics("6 months", search_term="AI Agents", category="All")

    assert len(topics) == 5
    assert generator.call_count == 1
    assert '"AI Agents"' in generator.prompts[0]


def test_fetch_rejects_non_string_inputs():
    generator = FakeTopicGenerator()
    fetcher = TopicFetcher(generator)

    with pytest.raises(ValidationError):
        fetcher.fetch_trending_topics("6 months", category=7)
    with pytest.raises(ValidationError):
        fetcher.fetch_trending_topics("6 months", search_term=["a"])
    assert generator.call_count == 0


def test_unexpected_failure_gets_category_message():
    fetcher = TopicFetcher(FakeTopicGenerator(error=RuntimeError("boom")))

    with pytest.raises(TopicGenerationError) as exc:
        fetcher.fetch_trending_topics("6 months", category="Gaming")
    assert exc.value.code == "topic_generation_failed"
    assert 'for category "Gaming"' in exc.value.message


def test_app_errors_pass_through_unchanged():
    fetcher = TopicFetcher(FakeTopicGenerator(error=UpstreamUnavailableError("down")))
    with pytest.raises(UpstreamUnavailableError):
        fetcher.fetch_trending_topics("6 months")


# --- groq classification -----------------------------------------------------


def test_groq_generator_requests_json_schema():
    client = _groq_client(content=topics_payload(1))
    generator = GroqTopicGenerator(api_key="gsk_test", model="test-model", client=client)

    assert json.loads(generator.generate("prompt"))["topics"]
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["response_format"]["type"] == "json_schema"
    assert kwargs["response_format"]["json_schema"]["name"] == "trending_topics"


def test_connection_failure_is_unavailable():
    error = groq.APIConnectionError(request=httpx.Request("POST", GROQ_URL))
    generator = GroqTopicGenerator(api_key="gsk_test", client=_groq_client(side_effect=error))
    with pytest.raises(UpstreamUnavailableError):
        generator.generate("prompt")


def test_rate_limit_is_classified():
    error = _status_error(groq.RateLimitError, 429)
    generator = GroqTopicGenerator(api_key="gsk_test", client=_groq_client(side_effect=error))
    with pytest.raises(UpstreamRateLimitedError) as exc:
        generator.generate("prompt")
    assert exc.value.status_code == 429


def test_server_error_is_unavailable():
    error = _status_error(groq.InternalServerError, 500)
    generator = GroqTopicGenerator(api_key="gsk_test", client=_groq_client(side_effect=error))
    with pytest.raises(UpstreamUnavailableError):
        generator.generate("prompt")


def test_schema_validation_failure_is_malformed():
    error = _status_error(groq.BadRequestError, 400, body={"error": {"code": "json_validate_failed"}})
    generator = GroqTopicGenerator(api_key="gsk_test", client=_groq_client(side_effect=error))
    with pytest.raises(UpstreamMalformedError):
        generator.generate("prompt")


def test_missing_api_key_is_unavailable(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    generator = GroqTopicGenerator(api_key=None)
    with pytest.raises(UpstreamUnavailableError):
        generator.generate("prompt")


def test_empty_completion_surfaces_as_empty_response():
    generator = GroqTopicGenerator(api_key="gsk_test", client=_groq_client(content=None))
    fetcher = TopicFetcher(generator)
    with pytest.raises(UpstreamMalformedError) as exc:
        fetcher.fetch_trending_topics("6 months")
    assert exc.value.message == EMPTY_RESPONSE_MESSAGE
