"""Prompt construction for topic generation."""

from trendscout.features.topics.prompts import (
    DEFAULT_CATEGORIES,
    build_topics_prompt,
    category_constraint,
)


def test_search_term_prompt_without_category_constraint():
    prompt = build_topics_prompt("6 months", search_term="AI Agents", category="All")

    assert '"AI Agents"' in prompt
    assert "6 months" in prompt
    assert "category." not in prompt
    assert category_constraint("All") == ""


def test_business_context_dominates_search_term():
    prompt = build_topics_prompt(
        "1 year",
        search_term="AI Agents",
        business_context="Boutique coffee roaster selling online",
    )

    assert "Boutique coffee roaster selling online" in prompt
    assert "niche" in prompt
    assert "AI Agents" not in prompt


def test_default_prompt_spans_categories():
    prompt = build_topics_prompt("3 months")

    for category in DEFAULT_CATEGORIES:
        assert category in prompt
    assert "100" in prompt


def test_specific_category_appends_constraint():
    prompt = build_topics_prompt("3 months", category="FinTech")

    assert 'All topics MUST also belong to the "FinTech" category.' in prompt


def test_target_count_is_configurable():
    assert "25 real" in build_topics_prompt("1 month", target_count=25)
