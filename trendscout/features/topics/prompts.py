"""Prompt templates and response schema for trending-topic generation.

The instruction is built by priority: a business context dominates, then a
search term, then a diverse spread across DEFAULT_CATEGORIES. A category
other than "All" adds a hard constraint sentence.
"""

from typing import Optional

ALL_CATEGORIES = "All"

DEFAULT_CATEGORIES = [
    "AI",
    "SaaS",
    "Health & Wellness",
    "E-commerce",
    "FinTech",
    "Gaming",
    "Creator Economy",
    "Future of Work",
]

TOPICS_SCHEMA = {
    "type": "object",
    "properties": {
        "topics": {
            "type": "array",
            "description": "A list of real trending topics.",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": 'A unique slug-like ID for the topic (e.g., "ai-copilot-builder")'},
                    "name": {"type": "string", "description": "The name of the trending topic"},
                    "category": {"type": "string", "description": 'The category of the topic (e.g., "AI", "SaaS", "Health")'},
                    "description": {"type": "string", "description": "A one-sentence compelling description of the topic."},
                    "growth": {"type": "number", "description": "Estimated percentage search growth over the requested time period."},
                },
                "required": ["id", "name", "category", "description", "growth"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["topics"],
    "additionalProperties": False,
}

SYSTEM_PROMPT = (
    "You are a market research analyst who tracks fast-growing topics across "
    "search, social and product launches. You answer with JSON only, matching "
    "the requested schema exactly."
)


def base_instruction(target_count: int) -> str:
    return (
        f'Generate a diverse list of {target_count} real, "exploding topics" that are showing '
        "rapid growth in interest. These should be recent and relevant."
    )


def core_instruction(search_term: Optional[str], business_context: Optional[str]) -> str:
    if business_context:
        return (
            "IMPORTANT: The results MUST be highly relevant to the following business context: "
            f'"{business_context}". Prioritize niche topics that are direct opportunities for this '
            "business over general mainstream trends."
        )
    if search_term:
        return (
            f'IMPORTANT: All topics MUST be directly related to the search query: "{search_term}". '
            "The results should be tightly focused on this query. Do not include unrelated topics."
        )
    return f"Span a diverse range of categories like {', '.join(DEFAULT_CATEGORIES)}."


def category_constraint(category: Optional[str]) -> str:
    if not category or category == ALL_CATEGORIES:
        return ""
    return f'All topics MUST also belong to the "{category}" category.'


def build_topics_prompt(
    time_range: str,
    search_term: Optional[str] = None,
    business_context: Optional[str] = None,
    category: Optional[str] = None,
    target_count: int = 100,
) -> str:
    parts = [
        base_instruction(target_count),
        core_instruction(search_term, business_context),
    ]
    constraint = category_constraint(category)
    if constraint:
        parts.append(constraint)
    parts += [
        "",
        "For each topic, provide a unique slug-like id, a name, a category, a short one-sentence "
        f"description, and an estimated growth percentage over the last {time_range}. "
        "The growth number should reflect this specific time period.",
    ]
    return "\n".join(parts)
