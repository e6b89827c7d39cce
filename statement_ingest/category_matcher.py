"""
Category Coercion Layer.

Free-form category labels (as returned by the generative service) are
mapped onto the closed taxonomy:

1. Exact taxonomy value ("food").
2. Known display label or alias ("Food & Dining", "groceries").
3. ``rapidfuzz`` match against all values and aliases.  Matches **below**
   ``fuzzy_threshold`` are rejected, and if the runner-up is within
   ``fuzzy_ambiguity_delta`` the match is ambiguous and also rejected.

A rejected label returns ``None`` so the caller can fall back to the
deterministic keyword classifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from rapidfuzz import fuzz, process

from statement_ingest.config import CategoryMatchConfig
from statement_ingest.logging_setup import get_logger
from statement_ingest.schema import Category, category_lookup

logger = get_logger("category_matcher")


# Display labels plus aliases commonly emitted by models and other apps.
_ALIASES: Dict[str, Category] = {
    "food & dining": Category.FOOD,
    "dining": Category.FOOD,
    "groceries": Category.FOOD,
    "grocery": Category.FOOD,
    "restaurants": Category.FOOD,
    "housing": Category.RENT,
    "emi": Category.RENT,
    "travel & transport": Category.TRANSPORT,
    "fuel": Category.TRANSPORT,
    "subscription": Category.SUBSCRIPTIONS,
    "bills": Category.UTILITIES,
    "bills & utilities": Category.UTILITIES,
    "medical": Category.HEALTHCARE,
    "health": Category.HEALTHCARE,
    "income": Category.SALARY,
    "freelance": Category.SALARY,
    "investments": Category.INVESTMENT,
    "miscellaneous": Category.OTHER,
    "uncategorized": Category.OTHER,
}


@dataclass
class CategoryCandidate:
    """Outcome of a coercion attempt."""

    category: Category
    score: float  # 0–100
    method: str  # "exact" | "alias" | "fuzzy"


class CategoryMatcher:
    """Coerce arbitrary labels onto :class:`Category`.

    Parameters
    ----------
    config:
        Fuzzy thresholds.
    """

    def __init__(self, config: Optional[CategoryMatchConfig] = None) -> None:
        self._config = config or CategoryMatchConfig()

        # Target pool: lowercase key → category
        self._targets: Dict[str, Category] = {c.value: c for c in Category}
        self._targets.update(_ALIASES)
        self._target_keys: list[str] = list(self._targets.keys())

    def match(self, label: object) -> Optional[CategoryCandidate]:
        """Find the taxonomy member for *label*, or ``None``."""
        if not isinstance(label, str):
            return None
        norm = " ".join(label.strip().lower().split())
        if not norm:
            return None

        exact = category_lookup(norm)
        if exact is not None:
            return CategoryCandidate(exact, 100.0, "exact")

        if norm in _ALIASES:
            return CategoryCandidate(_ALIASES[norm], 100.0, "alias")

        results = process.extract(
            norm,
            self._target_keys,
            scorer=fuzz.token_sort_ratio,
            limit=5,
        )
        if not results:
            return None

        best_key, best_score, _ = results[0]
        if best_score < self._config.fuzzy_threshold:
            logger.info(
                "Fuzzy best for %r is %r (%.1f) — below threshold %.1f; rejected",
                norm,
                best_key,
                best_score,
                self._config.fuzzy_threshold,
            )
            return None

        best_category = self._targets[best_key]
        for key, score, _ in results[1:]:
            if (
                self._targets[key] is not best_category
                and best_score - score <= self._config.fuzzy_ambiguity_delta
            ):
                logger.warning(
                    "Ambiguous category %r: best=%r (%.1f), runner-up=%r (%.1f)",
                    norm,
                    best_key,
                    best_score,
                    key,
                    score,
                )
                return None

        logger.info(
            "Fuzzy category: %r → %r (score=%.1f)",
            norm,
            best_category.value,
            best_score,
        )
        return CategoryCandidate(best_category, best_score, "fuzzy")

    def coerce(self, label: object) -> Optional[Category]:
        """Shortcut returning just the category."""
        candidate = self.match(label)
        return candidate.category if candidate else None
