"""
NDIS Compliance Platform - Audit Scoring Tests

Unit tests for indicator point values and the overall score.
"""

import random
from decimal import Decimal

import pytest

from app.schemas.audit import IndicatorRating
from app.services.audit_scoring import (
    MAX_POINTS_PER_INDICATOR,
    RATING_ORDER,
    ScoreBand,
    calculate_scores,
    group_by_rating,
    round_half_up,
    score_band,
    score_for_rating,
)


class TestRatingPoints:
    """Point values per rating."""

    @pytest.mark.parametrize("rating,points", [
        ("CONFORMITY_BEST_PRACTICE", 3),
        ("CONFORMITY", 2),
        ("MINOR_NC", 1),
        ("MAJOR_NC", 0),
    ])
    def test_points_per_rating(self, rating, points):
        assert score_for_rating(rating) == points
        assert score_for_rating(IndicatorRating(rating)) == points

    def test_unknown_rating_rejected(self):
        with pytest.raises(ValueError):
            score_for_rating("NOT_A_RATING")

    def test_max_points_is_best_practice(self):
        assert MAX_POINTS_PER_INDICATOR == score_for_rating(IndicatorRating.CONFORMITY_BEST_PRACTICE)


class TestCalculateScores:
    """Aggregate score calculation."""

    def test_empty_input_is_all_zero(self):
        summary = calculate_scores([])

        assert summary.total == 0
        assert summary.points == 0
        assert summary.max_points == 0
        assert summary.percentage == 0

    def test_mixed_ratings(self, indicator_responses):
        summary = calculate_scores(indicator_responses)

        assert summary.best_practice == 1
        assert summary.conformity == 3
        assert summary.minor_nc == 1
        assert summary.major_nc == 1
        assert summary.total == 6
        assert summary.points == 10
        assert summary.max_points == 18
        # 10 / 18 = 55.56%
        assert summary.percentage == 56

    def test_counts_add_up_to_total(self, indicator_responses):
        summary = calculate_scores(indicator_responses)

        assert summary.best_practice + summary.conformity + summary.minor_nc + summary.major_nc == summary.total
        assert summary.max_points == summary.total * 3

    def test_all_best_practice_scores_100(self, response_factory):
        responses = [response_factory(f"ind-{i}", "CONFORMITY_BEST_PRACTICE") for i in range(5)]

        assert calculate_scores(responses).percentage == 100

    def test_all_major_nc_scores_0(self, response_factory):
        responses = [response_factory(f"ind-{i}", "MAJOR_NC") for i in range(4)]
        summary = calculate_scores(responses)

        assert summary.points == 0
        assert summary.max_points == 12
        assert summary.percentage == 0

    def test_order_independent(self, indicator_responses):
        shuffled = list(indicator_responses)
        random.Random(7).shuffle(shuffled)

        assert calculate_scores(shuffled) == calculate_scores(indicator_responses)

    def test_half_percent_rounds_up(self, response_factory):
        """3 of 24 points is 12.5%, shown as 13%."""
        responses = [
            response_factory("ind-1", "CONFORMITY"),
            response_factory("ind-2", "MINOR_NC"),
        ] + [response_factory(f"ind-{i}", "MAJOR_NC") for i in range(3, 9)]

        summary = calculate_scores(responses)

        assert summary.max_points == 24
        assert summary.points == 3
        assert summary.percentage == 13

    def test_to_dict(self, indicator_responses):
        data = calculate_scores(indicator_responses).to_dict()

        assert data["points"] == 10
        assert set(data) == {
            "best_practice", "conformity", "minor_nc", "major_nc",
            "total", "points", "max_points", "percentage",
        }


class TestRoundHalfUp:
    """Rounding helper."""

    def test_rounds_half_away_from_zero(self):
        assert round_half_up(2.5) == Decimal("3")
        assert round_half_up(Decimal("0.25"), 1) == Decimal("0.3")

    def test_rounds_down_below_half(self):
        assert round_half_up(Decimal("66.4")) == Decimal("66")


class TestGroupByRating:
    """Grouping responses for display."""

    def test_keys_in_display_order(self, indicator_responses):
        grouped = group_by_rating(indicator_responses)

        assert list(grouped) == RATING_ORDER

    def test_keeps_input_order_within_group(self, indicator_responses):
        grouped = group_by_rating(indicator_responses)

        conformity_ids = [r.template_indicator_id for r in grouped[IndicatorRating.CONFORMITY]]
        assert conformity_ids == ["ind-002", "ind-005", "ind-006"]

    def test_empty_groups_present(self):
        grouped = group_by_rating([])

        assert all(grouped[rating] == [] for rating in RATING_ORDER)


class TestScoreBand:
    """Colour band thresholds."""

    @pytest.mark.parametrize("percentage,band", [
        (0, ScoreBand.POOR),
        (49, ScoreBand.POOR),
        (50, ScoreBand.FAIR),
        (74, ScoreBand.FAIR),
        (75, ScoreBand.GOOD),
        (100, ScoreBand.GOOD),
    ])
    def test_thresholds(self, percentage, band):
        assert score_band(percentage) == band
