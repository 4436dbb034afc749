"""
Groq topic generator.

Implements TopicGenerator using the Groq chat completions API with a
JSON-schema response format. Groq SDK errors are classified here so the
caller can tell "retry later" from "service gave nothing usable".
"""
import logging
import os
from typing import Any, Optional

import groq

from trendscout.core.errors import (
    UpstreamMalformedError,
    UpstreamRateLimitedError,
    UpstreamUnavailableError,
)
from trendscout.features.topics.prompts import SYSTEM_PROMPT, TOPICS_SCHEMA

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "AI service is temporarily unavailable. Please try again in a moment."
RATE_LIMITED_MESSAGE = "AI service quota exceeded. Please try again later."
SCHEMA_REJECTED_MESSAGE = "The AI service returned data in an unexpected format. Please try again."


def _error_code(exc: Exception) -> Optional[str]:
    code = getattr(exc, "code", None)
    if code:
        return code
    body: Any = getattr(exc, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict):
            return inner.get("code")
    return None


class GroqTopicGenerator:
    """Groq implementation of TopicGenerator protocol."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "openai/gpt-oss-20b",
        temperature: float = 0.8,
        client: Optional[groq.Groq] = None,
    ):
        self.api_key = api_key or os.getenv("GROQ_API_KEY")
        self.model = model
        self.temperature = temperature
        self._client = client

    @property
    def client(self) -> groq.Groq:
        if self._client is None:
            if not self.api_key:
                raise UpstreamUnavailableError("AI service is not configured. Please try again later.")
            self._client = groq.Groq(api_key=self.api_key)
        return self._client

    def generate(self, prompt: str) -> str:
        client = self.client
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "trending_topics", "schema": TOPICS_SCHEMA},
                },
                temperature=self.temperature,
            )
        except groq.RateLimitError as e:
            logger.warning("[topics] groq rate limited", extra={"error_code": _error_code(e)})
            raise UpstreamRateLimitedError(RATE_LIMITED_MESSAGE) from e
        except groq.APIConnectionError as e:
            # Includes APITimeoutError
            logger.warning(f"[topics] groq connection failed: {e}")
            raise UpstreamUnavailableError(UNAVAILABLE_MESSAGE) from e
        except groq.BadRequestError as e:
            if _error_code(e) == "json_validate_failed":
                logger.warning("[topics] groq output failed schema validation")
                raise UpstreamMalformedError(SCHEMA_REJECTED_MESSAGE) from e
            logger.error(f"[topics] groq rejected request: {e}")
            raise UpstreamUnavailableError(UNAVAILABLE_MESSAGE) from e
        except groq.APIStatusError as e:
            logger.error(f"[topics] groq returned status {e.status_code}")
            raise UpstreamUnavailableError(UNAVAILABLE_MESSAGE) from e

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""
