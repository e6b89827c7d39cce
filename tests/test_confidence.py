"""
Unit tests for the confidence scoring utility.
"""

from __future__ import annotations

import pytest

from statement_ingest.confidence import badge_text, describe, level_for, score
from statement_ingest.schema import ConfidenceLevel


# ======================================================================
# Scoring
# ======================================================================

class TestScore:
    def test_full_marks(self) -> None:
        result = score(100, 90, 1.0, 1.0)
        assert result.score == 100
        assert result.level is ConfidenceLevel.HIGH
        assert result.factors.data_completeness == 100

    def test_nothing_known(self) -> None:
        result = score(0, 0, 0.0, 0.0)
        assert result.score == 0
        assert result.level is ConfidenceLevel.LOW

    def test_weighted_mix(self) -> None:
        result = score(25, 45, 0.5, 0.5)
        assert result.factors.data_completeness == 50
        assert result.factors.historical_consistency == 50
        assert result.factors.pattern_strength == 50
        assert result.score == 50
        assert result.level is ConfidenceLevel.MEDIUM

    def test_ratios_clamped(self) -> None:
        result = score(0, 0, 1.5, -0.2)
        assert result.factors.historical_consistency == 100
        assert result.factors.pattern_strength == 0

    def test_half_rounds_up(self) -> None:
        # raw 4.5 from data completeness alone
        assert score(15, 0, 0.0, 0.0).score == 5

    def test_level_uses_unrounded_score(self) -> None:
        result = score(0, 0, 1.0, 0.99)
        assert result.score == 70
        assert result.level is ConfidenceLevel.MEDIUM

    def test_factors_round_half_up(self) -> None:
        assert score(0, 0, 0.125, 0.0).factors.historical_consistency == 13

    def test_pure(self) -> None:
        assert score(12, 30, 0.4, 0.7) == score(12, 30, 0.4, 0.7)

    def test_completeness_monotonic_in_count(self) -> None:
        values = [score(n, 30, 0.5, 0.5).factors.data_completeness for n in range(0, 120, 5)]
        assert values == sorted(values)

    def test_completeness_monotonic_in_days(self) -> None:
        values = [score(10, d, 0.5, 0.5).factors.data_completeness for d in range(0, 200, 10)]
        assert values == sorted(values)
        assert values[-1] == 100

    def test_to_dict(self) -> None:
        d = score(100, 90, 1.0, 1.0).to_dict()
        assert d["level"] == "high"
        assert d["factors"]["pattern_strength"] == 100


class TestLevels:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (100, ConfidenceLevel.HIGH),
            (70, ConfidenceLevel.HIGH),
            (69, ConfidenceLevel.MEDIUM),
            (40, ConfidenceLevel.MEDIUM),
            (39, ConfidenceLevel.LOW),
            (0, ConfidenceLevel.LOW),
        ],
    )
    def test_thresholds(self, value: int, expected: ConfidenceLevel) -> None:
        assert level_for(value) is expected


# ======================================================================
# Presentation
# ======================================================================

class TestPresentation:
    def test_badges(self) -> None:
        assert badge_text(ConfidenceLevel.HIGH) == "High confidence"
        assert badge_text(ConfidenceLevel.MEDIUM) == "Medium confidence"
        assert badge_text(ConfidenceLevel.LOW) == "Low confidence"

    def test_high_description(self) -> None:
        assert "confident about this insight" in describe(score(100, 90, 1.0, 1.0))

    def test_medium_description(self) -> None:
        assert "fairly confident" in describe(score(25, 45, 0.5, 0.5))

    def test_low_with_little_data(self) -> None:
        assert "don't have much data" in describe(score(0, 0, 1.0, 0.0))

    def test_low_with_weak_pattern(self) -> None:
        assert "pattern isn't very strong" in describe(score(100, 90, 0.0, 0.0))

    def test_low_otherwise(self) -> None:
        assert "still learning" in describe(score(40, 0, 0.0, 0.4))
