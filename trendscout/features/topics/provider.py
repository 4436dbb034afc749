"""
Topic generator protocol.

Defines the interface for generative model backends (Groq, test doubles).
A generator returns the raw response text; parsing and validation live in
the topic service so every backend is held to the same contract.
"""
from typing import Protocol


class TopicGenerator(Protocol):
    """
    Protocol for generative model backends.

    Implementations must:
    - Request a schema-constrained JSON response (see prompts.TOPICS_SCHEMA)
    - Translate transport/service failures into UpstreamUnavailableError
    - Translate provider quota / rate-limit failures into UpstreamRateLimitedError
    """

    def generate(self, prompt: str) -> str:
        """
        Run one structured-generation call.

        Args:
            prompt: Natural-language instruction built by build_topics_prompt

        Returns:
            Raw response text (expected to be a JSON object with `topics`)

        Raises:
            UpstreamUnavailableError: Service unreachable, failing, or not configured
            UpstreamRateLimitedError: Provider quota or rate limit hit
            UpstreamMalformedError: Provider rejected its own output against the schema
        """
        ...
