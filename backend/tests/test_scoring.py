"""Tests for score computation: weighted aggregation, tier matching and question scoring."""

import uuid
from types import SimpleNamespace

import pytest

from scoreflow.services.scoring import (
    CategoryResult, compute_score, match_tier, percentage, round_half_up,
    score_question, validate_tier_bands, weighted_percentage,
)


def _tier(label, min_pct, max_pct, sort_order):
    return SimpleNamespace(id=uuid.uuid4(), label=label, min_pct=min_pct, max_pct=max_pct,
                           sort_order=sort_order, colour=None)


def _bands():
    return [
        _tier("Emerging", 0, 40, 0),
        _tier("Developing", 41, 70, 1),
        _tier("Leading", 71, 100, 2),
    ]


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(76.5) == 77
        assert round_half_up(2.5) == 3

    def test_below_half_rounds_down(self):
        assert round_half_up(76.49) == 76

    def test_percentage_zero_possible(self):
        assert percentage(5, 0) == 0

    def test_percentage(self):
        assert percentage(7, 9) == 78


class TestWeightedPercentage:
    def test_weighted_example(self):
        cats = [CategoryResult(80, 40), CategoryResult(60, 30), CategoryResult(90, 30)]
        assert weighted_percentage(cats) == 77

    def test_zero_weights_use_mean(self):
        cats = [CategoryResult(80, 0), CategoryResult(60, 0), CategoryResult(40, 0)]
        assert weighted_percentage(cats) == 60

    def test_single_category_full_weight(self):
        assert weighted_percentage([CategoryResult(85, 100)]) == 85

    def test_rounding_applied_to_final_value_only(self):
        # 50*1 + 51*1 = 101 / 2 = 50.5 -> 51
        assert weighted_percentage([CategoryResult(50, 1), CategoryResult(51, 1)]) == 51

    def test_empty_input_rejected(self):
        with pytest.raises(ValueError):
            weighted_percentage([])


class TestMatchTier:
    def setup_method(self):
        self.tiers = _bands()

    def test_band_edges(self):
        assert match_tier(40, self.tiers).label == "Emerging"
        assert match_tier(41, self.tiers).label == "Developing"
        assert match_tier(70, self.tiers).label == "Developing"
        assert match_tier(71, self.tiers).label == "Leading"

    def test_extremes(self):
        assert match_tier(0, self.tiers).label == "Emerging"
        assert match_tier(100, self.tiers).label == "Leading"

    def test_every_percentage_matches_exactly_one(self):
        for pct in range(0, 101):
            hits = [t for t in self.tiers if t.min_pct <= pct <= t.max_pct]
            assert len(hits) == 1
            assert match_tier(pct, self.tiers) is hits[0]

    def test_empty_tiers(self):
        assert match_tier(50, []) is None

    def test_overlap_first_in_sort_order_wins(self):
        tiers = [_tier("B", 40, 80, 1), _tier("A", 0, 50, 0)]
        assert match_tier(45, tiers).label == "A"

    def test_malformed_band_skipped(self):
        tiers = [_tier("Broken", 60, 20, 0), _tier("All", 0, 100, 1)]
        assert match_tier(30, tiers).label == "All"

    def test_unsorted_input(self):
        tiers = list(reversed(self.tiers))
        assert match_tier(41, tiers).label == "Developing"


class TestValidateTierBands:
    def test_partition_is_valid(self):
        assert validate_tier_bands(_bands()) == []

    def test_gap_reported(self):
        tiers = [_tier("Low", 0, 40, 0), _tier("High", 45, 100, 1)]
        assert any("gap" in p for p in validate_tier_bands(tiers))

    def test_overlap_reported(self):
        tiers = [_tier("Low", 0, 50, 0), _tier("High", 45, 100, 1)]
        assert any("overlap" in p for p in validate_tier_bands(tiers))

    def test_incomplete_range_reported(self):
        problems = validate_tier_bands([_tier("Mid", 10, 90, 0)])
        assert len(problems) == 2

    def test_no_tiers(self):
        assert validate_tier_bands([]) == ["no tiers defined"]


def _question(type, settings=None):
    return SimpleNamespace(id=uuid.uuid4(), category_id=uuid.uuid4(), type=type, settings_json=settings)


def _option(question, points):
    return SimpleNamespace(id=uuid.uuid4(), question_id=question.id, points=points)


def _response(question, selected, points_awarded=0):
    return SimpleNamespace(question_id=question.id, selected_option_ids=selected, points_awarded=points_awarded)


class TestScoreQuestion:
    def test_open_text_excluded(self):
        q = _question("open_text")
        assert score_question(q, [], _response(q, ["anything"])) == (0, 0)

    def test_single_select(self):
        q = _question("single_select")
        opts = [_option(q, 0), _option(q, 5), _option(q, 10)]
        assert score_question(q, opts, _response(q, [str(opts[1].id)])) == (5, 10)

    def test_single_select_unanswered(self):
        q = _question("single_select")
        opts = [_option(q, 0), _option(q, 10)]
        assert score_question(q, opts, None) == (0, 10)

    def test_checkbox_sums_selected_and_positive_options(self):
        q = _question("checkbox_select")
        opts = [_option(q, 3), _option(q, 4), _option(q, -2)]
        selected = [str(opts[0].id), str(opts[2].id)]
        assert score_question(q, opts, _response(q, selected)) == (1, 7)

    def test_sliding_scale_uses_value(self):
        q = _question("sliding_scale", {"max": 5})
        assert score_question(q, [], _response(q, ["4"])) == (4, 5)

    def test_sliding_scale_default_max(self):
        q = _question("sliding_scale")
        assert score_question(q, [], _response(q, [], points_awarded=6)) == (6, 10)


class TestComputeScore:
    def setup_method(self):
        self.strategy = SimpleNamespace(id=uuid.uuid4(), name="Strategy", weight=75, include_in_total=True, sort_order=0)
        self.people = SimpleNamespace(id=uuid.uuid4(), name="People", weight=25, include_in_total=True, sort_order=1)
        self.bonus = SimpleNamespace(id=uuid.uuid4(), name="Bonus", weight=0, include_in_total=False, sort_order=2)
        self.tiers = _bands()

        self.q1 = SimpleNamespace(id=uuid.uuid4(), category_id=self.strategy.id, type="single_select", settings_json=None)
        self.q2 = SimpleNamespace(id=uuid.uuid4(), category_id=self.people.id, type="single_select", settings_json=None)
        self.q3 = SimpleNamespace(id=uuid.uuid4(), category_id=self.bonus.id, type="sliding_scale", settings_json=None)
        self.options = [
            _option(self.q1, 0), _option(self.q1, 10),
            _option(self.q2, 0), _option(self.q2, 10),
        ]

    def _compute(self, method="points"):
        responses = [
            _response(self.q1, [str(self.options[1].id)]),  # 10/10
            _response(self.q2, [str(self.options[2].id)]),  # 0/10
            _response(self.q3, ["10"]),                     # excluded from total
        ]
        return compute_score(
            [self.q1, self.q2, self.q3], self.options, responses,
            [self.strategy, self.people, self.bonus], self.tiers, scoring_method=method,
        )

    def test_points_method(self):
        result = self._compute()
        assert result.total_points == 10
        assert result.total_possible == 20
        assert result.percentage == 50
        assert result.tier.label == "Developing"

    def test_weighted_method_changes_tier_basis(self):
        result = self._compute("weighted")
        assert result.percentage == 50
        assert result.weighted_percentage == 75
        assert result.tier.label == "Leading"

    def test_category_scores(self):
        result = self._compute()
        strategy = result.category_scores[str(self.strategy.id)]
        assert strategy.percentage == 100
        assert strategy.tier_label == "Leading"
        people = result.category_scores[str(self.people.id)]
        assert people.percentage == 0
        assert people.tier_label == "Emerging"
        assert result.category_scores[str(self.bonus.id)].points == 10

    def test_question_points_recorded(self):
        result = self._compute()
        assert result.question_points[str(self.q1.id)] == 10
        assert result.question_points[str(self.q3.id)] == 10

    def test_no_possible_points_has_no_tier(self):
        q = SimpleNamespace(id=uuid.uuid4(), category_id=self.strategy.id, type="open_text", settings_json=None)
        result = compute_score([q], [], [], [self.strategy], self.tiers)
        assert result.percentage == 0
        assert result.tier is None
        assert result.weighted_percentage is None
        assert result.category_scores[str(self.strategy.id)].percentage is None
