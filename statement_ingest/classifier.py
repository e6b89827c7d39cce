"""
Category Classifier.

A fixed, ordered list of ``(pattern, category)`` rules evaluated top to
bottom against lower-cased description / merchant text.  The first rule that
matches decides; nothing matching means ``Category.OTHER``.

Rule order is part of the contract.  Descriptions routinely hit several
vocabularies ("blinkit" reads as both groceries and shopping, "interest
credit" as both income and banking) and first-match-wins is the tie-break.
Do not reorder.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional, Sequence, Tuple

from statement_ingest.logging_setup import get_logger
from statement_ingest.schema import Category

logger = get_logger("classifier")


class CategoryRule(NamedTuple):
    pattern: re.Pattern
    category: Category


def _rule(pattern: str, category: Category) -> CategoryRule:
    return CategoryRule(re.compile(pattern), category)


DEFAULT_RULES: Tuple[CategoryRule, ...] = (
    _rule(
        r"salary|freelance|interest|credit|deposit|refund|dividend|profit",
        Category.SALARY,
    ),
    _rule(
        r"swiggy|zomato|\bfood|restaurant|\bcafe|mcdonald|starbucks|domino"
        r"|pizza|burger|\btea\b|canteen",
        Category.FOOD,
    ),
    _rule(
        r"\buber|\bola\b|petrol|\bfuel|transport|\bmetro|\brail|flight|irctc"
        r"|fastag|\bbus\b|\bauto\b|\bfare\b",
        Category.TRANSPORT,
    ),
    _rule(
        r"amazon|flipkart|shopping|\bstore|mart\b|myntra|zudio|uniqlo|blinkit"
        r"|zepto|stationery|\bbooks?\b",
        Category.SHOPPING,
    ),
    _rule(
        r"electricity|\bwater|internet|\bmobile|\bjio\b|airtel|bsnl|broadband"
        r"|netflix|spotify|recharge",
        Category.UTILITIES,
    ),
    _rule(r"\brent|\bemi\b|\bloan|housing|landlord|broker", Category.RENT),
    _rule(
        r"hospital|medical|pharmacy|doctor|clinic|\blab\b|health|\b1mg|apollo",
        Category.HEALTHCARE,
    ),
    _rule(
        r"\bsip\b|zerodha|groww|stocks?\b|mutual fund|investment|\bgold\b",
        Category.INVESTMENT,
    ),
    _rule(
        r"subscription|hotstar|prime video|youtube premium|\bicloud|membership",
        Category.SUBSCRIPTIONS,
    ),
    _rule(
        r"movie|cinema|\bpvr\b|\binox\b|bookmyshow|concert|gaming|steam",
        Category.ENTERTAINMENT,
    ),
    _rule(
        r"hotel|makemytrip|goibibo|airbnb|\boyo\b|cleartrip|holiday|\btrip\b",
        Category.TRAVEL,
    ),
    _rule(
        r"school|college|tuition|university|\bcourse|udemy|coursera|byju",
        Category.EDUCATION,
    ),
)


class CategoryClassifier:
    """First-match-wins keyword classifier.

    Parameters
    ----------
    rules:
        Ordered rules; defaults to ``DEFAULT_RULES``.
    """

    def __init__(self, rules: Optional[Sequence[CategoryRule]] = None) -> None:
        self._rules: Tuple[CategoryRule, ...] = tuple(
            rules if rules is not None else DEFAULT_RULES
        )

    def classify(self, text: str) -> Category:
        """Return the category of the first matching rule, else ``OTHER``."""
        if not text:
            return Category.OTHER
        lowered = text.lower()
        for rule in self._rules:
            if rule.pattern.search(lowered):
                logger.debug("classify: %r → %s", text, rule.category.value)
                return rule.category
        return Category.OTHER

    @property
    def rules(self) -> Tuple[CategoryRule, ...]:
        return self._rules


_DEFAULT = CategoryClassifier()


def classify(text: str) -> Category:
    """Module-level shortcut using ``DEFAULT_RULES``."""
    return _DEFAULT.classify(text)
