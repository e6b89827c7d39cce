"""
Confidence Scoring Utility.

A pure function of caller-supplied inputs (no clock, no state), shared by
the SMS extractor and by downstream insight consumers:

    dataCompleteness       = min(100, count/50 * 50 + days/90 * 50)
    historicalConsistency  = categoryConsistency * 100
    patternStrength        = patternStrength * 100
    raw                    = 0.3*dc + 0.3*hc + 0.4*ps

Levels are taken from the unrounded ``raw``: ``>= 70`` high, ``>= 40``
medium, else low.  Reported numbers are rounded half up, so 69.6 reports
as 70 yet stays medium.
"""

from __future__ import annotations

import math

from statement_ingest.schema import ConfidenceFactors, ConfidenceLevel, ConfidenceScore

HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 40

_WEIGHTS = (0.3, 0.3, 0.4)

_BADGES = {
    ConfidenceLevel.HIGH: "High confidence",
    ConfidenceLevel.MEDIUM: "Medium confidence",
    ConfidenceLevel.LOW: "Low confidence",
}


def _unit(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def level_for(score_value: float) -> ConfidenceLevel:
    if score_value >= HIGH_THRESHOLD:
        return ConfidenceLevel.HIGH
    if score_value >= MEDIUM_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def score(
    transaction_count: int,
    days_of_data: int,
    category_consistency: float,
    pattern_strength: float,
) -> ConfidenceScore:
    """Combine the three factors into a ``ConfidenceScore``.

    Parameters
    ----------
    transaction_count:
        Number of transactions the insight is based on.
    days_of_data:
        Span of history, in days.
    category_consistency, pattern_strength:
        Ratios in ``[0, 1]``; values outside are clamped.
    """
    data_completeness = min(
        100.0,
        max(0, transaction_count) / 50 * 50 + max(0, days_of_data) / 90 * 50,
    )
    historical = _unit(category_consistency) * 100
    pattern = _unit(pattern_strength) * 100

    w_dc, w_hc, w_ps = _WEIGHTS
    raw = w_dc * data_completeness + w_hc * historical + w_ps * pattern
    raw = min(100.0, max(0.0, raw))

    return ConfidenceScore(
        level=level_for(raw),
        score=_round_half_up(raw),
        factors=ConfidenceFactors(
            data_completeness=_round_half_up(data_completeness),
            historical_consistency=_round_half_up(historical),
            pattern_strength=_round_half_up(pattern),
        ),
    )


def badge_text(level: ConfidenceLevel) -> str:
    return _BADGES[level]


def describe(confidence: ConfidenceScore) -> str:
    """Plain-language sentence explaining a score to the end user."""
    if confidence.level is ConfidenceLevel.HIGH:
        return "I have enough data to be confident about this insight."
    if confidence.level is ConfidenceLevel.MEDIUM:
        return "I'm fairly confident, but more data would help me be more certain."
    if confidence.factors.data_completeness < MEDIUM_THRESHOLD:
        return (
            "I don't have much data yet, so take this as a gentle suggestion "
            "rather than a strong signal."
        )
    if confidence.factors.pattern_strength < MEDIUM_THRESHOLD:
        return (
            "The pattern isn't very strong yet, so this might change as I "
            "learn more about your spending."
        )
    return "I'm still learning your patterns, so this is more of a heads-up than a certainty."
