from dataclasses import replace

import pytest

from errors import TextGenerationError
from insights import (
    CategoryTotal,
    InsightGenerator,
    ReportTotals,
    build_insight_prompt,
    fallback_insights,
    parse_insights,
)


class FakeProvider:
    def __init__(self, name, replies):
        self.name = name
        self.replies = list(replies)
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def _totals(savings_rate=50.0, categories=None):
    return ReportTotals(
        period_label="January 1, 2025 - January 31, 2025",
        income_cents=100000,
        expenses_cents=50000,
        balance_cents=50000,
        savings_rate=savings_rate,
        categories=categories if categories is not None else [
            CategoryTotal("Food", 30000, 60),
            CategoryTotal("Rent", 20000, 40),
        ],
    )


@pytest.mark.parametrize(
    "rate, expected",
    [
        (-20.0, "Suggestion: Your savings rate is low. Consider reviewing discretionary spending."),
        (9.99, "Suggestion: Your savings rate is low. Consider reviewing discretionary spending."),
        (10.0, "Suggestion: Decent savings. Small tweaks could increase it further."),
        (24.9, "Suggestion: Decent savings. Small tweaks could increase it further."),
        (25.0, "Great job, your savings rate looks healthy!"),
    ],
)
def test_fallback_suggestion_bands(rate, expected):
    assert fallback_insights(_totals(savings_rate=rate))[-1] == expected


def test_fallback_lists_totals_and_categories():
    lines = fallback_insights(_totals())

    assert lines[0] == "Report for January 1, 2025 - January 31, 2025."
    assert lines[1] == "Total income: ₹1,000.00. Total expenses: ₹500.00."
    assert lines[2] == "Available balance: ₹500.00. Savings rate: 50.0%"
    assert lines[3] == "Top spending categories: Food: ₹300.00 (60%), Rent: ₹200.00 (40%)"


def test_fallback_without_expenses():
    lines = fallback_insights(_totals(categories=[]))
    assert "No expense categories to show." in lines


def test_prompt_mentions_period_and_categories():
    prompt = build_insight_prompt(_totals())
    assert "January 1, 2025 - January 31, 2025" in prompt
    assert "- Food: ₹300.00 (60%)" in prompt
    assert "JSON array" in prompt


def test_parse_insights_strips_code_fences():
    text = '```json\n["Cut dining out", "  ", "Automate savings"]\n```'
    assert parse_insights(text) == ["Cut dining out", "Automate savings"]


def test_parse_insights_keeps_plain_text_as_single_insight():
    assert parse_insights("Spend less on food.") == ["Spend less on food."]
    assert parse_insights('{"tip": "x"}') == ['{"tip": "x"}']
    assert parse_insights("") == []
    assert parse_insights("```\n```") == []


def test_generator_uses_first_provider_reply(settings):
    provider = FakeProvider("model-a", ['["Track groceries weekly"]'])
    result = InsightGenerator(settings, [provider]).generate(_totals())

    assert result == ["Track groceries weekly"]
    assert "Savings rate: 50.0%" in provider.prompts[0]


def test_generator_retries_then_falls_back(settings):
    sleeps = []
    provider = FakeProvider("model-a", [TextGenerationError("busy", status_code=503)])
    result = InsightGenerator(settings, [provider], sleep=sleeps.append).generate(_totals())

    assert len(provider.prompts) == settings.ai_max_attempts
    assert len(sleeps) == settings.ai_max_attempts - 1
    assert 0.5 <= sleeps[0] <= 0.8
    assert 1.0 <= sleeps[1] <= 1.3
    assert result[0] == "Report for January 1, 2025 - January 31, 2025."
    assert result[-1] == "Great job, your savings rate looks healthy!"


def test_generator_fails_over_to_next_provider(settings):
    sleeps = []
    rejected = FakeProvider("model-a", [TextGenerationError("bad request", status_code=400)])
    backup = FakeProvider("model-b", ['["Use the backup model"]'])
    result = InsightGenerator(settings, [rejected, backup], sleep=sleeps.append).generate(
        _totals()
    )

    assert result == ["Use the backup model"]
    assert len(rejected.prompts) == 1
    assert sleeps == []


def test_generator_recovers_after_transient_error(settings):
    sleeps = []
    provider = FakeProvider(
        "model-a", [TextGenerationError("slow down", status_code=429), "Keep it up."]
    )
    result = InsightGenerator(settings, [provider], sleep=sleeps.append).generate(_totals())

    assert result == ["Keep it up."]
    assert len(sleeps) == 1


def test_generator_empty_reply_falls_back(settings):
    provider = FakeProvider("model-a", [""])
    result = InsightGenerator(settings, [provider]).generate(_totals(savings_rate=5.0))

    assert result[-1].startswith("Suggestion: Your savings rate is low")


def test_generator_without_providers_falls_back(settings):
    assert InsightGenerator(settings).generate(_totals()) == fallback_insights(_totals())


def test_generator_fallback_survives_unknown_locale(settings):
    odd_locale = replace(settings, currency_locale="zz_ZZ")
    result = InsightGenerator(odd_locale).generate(_totals())

    assert result[0] == "Report for January 1, 2025 - January 31, 2025."
    assert result[1] == "Total income: INR 1,000.00. Total expenses: INR 500.00."
    assert result[-1] == "Great job, your savings rate looks healthy!"
