"""Trending-topic fetcher.

Builds the instruction, runs one structured-generation call, and validates
the response. Each way a response can be unusable has its own message so the
client can pick between retry, pricing prompt, and a generic error.
"""

import json
import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from trendscout.core.errors import (
    AppError,
    TopicGenerationError,
    UpstreamMalformedError,
    ValidationError,
)
from trendscout.features.topics.prompts import ALL_CATEGORIES, build_topics_prompt
from trendscout.features.topics.provider import TopicGenerator
from trendscout.models.topic import Topic, slugify

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "Empty response from AI service. Please try again."
UNPARSEABLE_RESPONSE_MESSAGE = "Failed to parse AI response. The service returned invalid data. Please try again."
NOT_A_LIST_MESSAGE = "Invalid response format from AI service. Expected an array of topics."
NO_TOPICS_MESSAGE = "No topics were generated. Please try a different category or time range."


def _optional_str(name: str, value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {name} parameter. {name} must be a string.")
    value = value.strip()
    return value or None


def _failure_message(category: Optional[str]) -> str:
    scope = f' for category "{category}"' if category and category != ALL_CATEGORIES else ""
    return f"Failed to generate topics{scope}. Please try again or select a different category."


def parse_topics(text: Optional[str]) -> List[Topic]:
    """Validate a raw model response and normalize its topics."""
    if not text or not text.strip():
        raise UpstreamMalformedError(EMPTY_RESPONSE_MESSAGE)

    try:
        parsed = json.loads(text.strip())
    except ValueError:
        logger.warning("[topics] unparseable response", extra={"response_head": text[:500]})
        raise UpstreamMalformedError(UNPARSEABLE_RESPONSE_MESSAGE)

    if not isinstance(parsed, dict):
        raise UpstreamMalformedError(NO_TOPICS_MESSAGE)
    raw_topics = parsed.get("topics") or []
    if not isinstance(raw_topics, list):
        raise UpstreamMalformedError(NOT_A_LIST_MESSAGE)
    if not raw_topics:
        raise UpstreamMalformedError(NO_TOPICS_MESSAGE)

    topics: List[Topic] = []
    seen_ids = set()
    dropped = 0
    for item in raw_topics:
        if not isinstance(item, dict):
            dropped += 1
            continue
        if not item.get("id") and isinstance(item.get("name"), str):
            item = {**item, "id": slugify(item["name"])}
        try:
            topic = Topic.model_validate(item)
        except PydanticValidationError:
            dropped += 1
            continue
        if topic.id in seen_ids:
            topic = topic.model_copy(update={"id": f"{topic.id}-{len(topics) + 1}"})
        seen_ids.add(topic.id)
        topics.append(topic)

    if dropped:
        logger.warning(f"[topics] dropped {dropped} invalid topic(s) of {len(raw_topics)}")
    if not topics:
        raise UpstreamMalformedError(NO_TOPICS_MESSAGE)
    return topics


class TopicFetcher:
    def __init__(self, generator: TopicGenerator, target_count: int = 100):
        self.generator = generator
        self.target_count = target_count

    def build_prompt(
        self,
        time_range: str,
        search_term: Optional[str] = None,
        business_context: Optional[str] = None,
        category: Optional[str] = None,
    ) -> str:
        return build_topics_prompt(
            time_range,
            search_term=search_term,
            business_context=business_context,
            category=category,
            target_count=self.target_count,
        )

    def fetch_trending_topics(
        self,
        time_range: str,
        search_term: Optional[str] = None,
        business_context: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[Topic]:
        """Generate topics for the request.

        Raises:
            ValidationError: Non-string inputs
            UpstreamUnavailableError / UpstreamRateLimitedError: Model call failed
            UpstreamMalformedError: Model responded with nothing usable
            TopicGenerationError: Anything else
        """
        if not isinstance(time_range, str) or not time_range.strip():
            raise ValidationError("timeRange is required")
        category = _optional_str("category", category)
        search_term = _optional_str("searchTerm", search_term)
        business_context = _optional_str("businessContext", business_context)

        prompt = self.build_prompt(time_range.strip(), search_term, business_context, category)
        try:
            text = self.generator.generate(prompt)
            topics = parse_topics(text)
        except AppError:
            raise
        except Exception as e:
            logger.error(
                "[topics] generation failed",
                exc_info=True,
                extra={"category": category or ALL_CATEGORIES, "time_range": time_range},
            )
            raise TopicGenerationError(_failure_message(category)) from e

        logger.info(
            f"[topics] generated {len(topics)} topic(s)",
            extra={"category": category or ALL_CATEGORIES, "time_range": time_range},
        )
        return topics
