import json
import logging
import re
from dataclasses import dataclass, field
from functools import partial
from typing import Sequence

from config import Settings
from currency import format_currency, to_major_units
from text_generation import TextGenerator, call_with_retries


logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\n?")


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    amount_cents: int
    percent: int


@dataclass(frozen=True)
class ReportTotals:
    period_label: str
    income_cents: int
    expenses_cents: int
    balance_cents: int
    savings_rate: float
    categories: list[CategoryTotal] = field(default_factory=list)


def _money(cents: int, locale: str, currency: str) -> str:
    return format_currency(to_major_units(cents), locale, currency)


def build_insight_prompt(
    totals: ReportTotals, *, locale: str = "en_IN", currency: str = "INR"
) -> str:
    if totals.categories:
        category_lines = "\n".join(
            f"- {cat.name}: {_money(cat.amount_cents, locale, currency)} ({cat.percent}%)"
            for cat in totals.categories
        )
    else:
        category_lines = "- none"
    return (
        "You are a personal finance assistant. Review this user's spending for "
        f"{totals.period_label} and give 3 to 5 short, practical insights.\n\n"
        f"Total income: {_money(totals.income_cents, locale, currency)}\n"
        f"Total expenses: {_money(totals.expenses_cents, locale, currency)}\n"
        f"Available balance: {_money(totals.balance_cents, locale, currency)}\n"
        f"Savings rate: {round(totals.savings_rate, 1)}%\n"
        f"Top spending categories:\n{category_lines}\n\n"
        "Reply with a JSON array of strings only, for example "
        '["Insight one", "Insight two"]. Do not use markdown.'
    )


def parse_insights(text: str) -> list[str]:
    cleaned = _CODE_FENCE.sub("", text or "").strip()
    if not cleaned:
        return []
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return [cleaned]
    if isinstance(data, list):
        return [str(item).strip() for item in data if str(item).strip()]
    return [cleaned]


def fallback_insights(
    totals: ReportTotals, *, locale: str = "en_IN", currency: str = "INR"
) -> list[str]:
    """Rule-based insights; pure, used whenever the providers give nothing."""
    rate = round(totals.savings_rate, 1)
    insights = [
        f"Report for {totals.period_label}.",
        f"Total income: {_money(totals.income_cents, locale, currency)}. "
        f"Total expenses: {_money(totals.expenses_cents, locale, currency)}.",
        f"Available balance: {_money(totals.balance_cents, locale, currency)}. "
        f"Savings rate: {rate}%",
    ]

    top = sorted(totals.categories, key=lambda cat: cat.amount_cents, reverse=True)[:3]
    if top:
        listed = ", ".join(
            f"{cat.name}: {_money(cat.amount_cents, locale, currency)} ({cat.percent}%)"
            for cat in top
        )
        insights.append(f"Top spending categories: {listed}")
    else:
        insights.append("No expense categories to show.")

    if totals.savings_rate < 10:
        insights.append(
            "Suggestion: Your savings rate is low. Consider reviewing discretionary spending."
        )
    elif totals.savings_rate < 25:
        insights.append(
            "Suggestion: Decent savings. Small tweaks could increase it further."
        )
    else:
        insights.append("Great job, your savings rate looks healthy!")
    return insights


class InsightGenerator:
    def __init__(
        self,
        settings: Settings,
        providers: Sequence[TextGenerator] = (),
        *,
        sleep=None,
    ) -> None:
        self.settings = settings
        self.providers = list(providers)
        self.sleep = sleep

    def generate(self, totals: ReportTotals) -> list[str]:
        locale = self.settings.currency_locale
        currency = self.settings.currency_code
        prompt = build_insight_prompt(totals, locale=locale, currency=currency)

        retry_kwargs = {
            "max_attempts": self.settings.ai_max_attempts,
            "base_delay": self.settings.ai_base_delay_secs,
        }
        if self.sleep is not None:
            retry_kwargs["sleep"] = self.sleep

        for provider in self.providers:
            try:
                text = call_with_retries(
                    partial(provider.generate, prompt), **retry_kwargs
                )
            except Exception:
                logger.exception(f"insights: provider={provider.name} failed")
                continue
            insights = parse_insights(text)
            if insights:
                return insights
            logger.info(f"insights: provider={provider.name} returned nothing usable")

        logger.info(f"insights: using fallback for period={totals.period_label!r}")
        return fallback_insights(totals, locale=locale, currency=currency)
