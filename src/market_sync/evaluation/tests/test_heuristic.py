"""
Tests for the heuristic scorer.

The heuristic must be fully deterministic: identical text in, identical
scores and explanation out.
"""
from market_sync.evaluation.heuristic import (
    heuristic_evaluation,
    heuristic_explanation,
    heuristic_scores,
)
from market_sync.evaluation.models import MarketForEvaluation


def _market(title="", criteria="", outcomes=(), outcome_count=0):
    return MarketForEvaluation(
        market_id=1,
        title=title,
        resolution_criteria=criteria,
        outcomes=outcomes,
        outcome_count=outcome_count,
    )


class TestHeuristicScores:

    def test_empty_market_is_neutral(self):
        assert heuristic_scores(_market()) == (5, 5, 5)

    def test_official_binary_market(self, binary_market):
        """
        criteria: official/announced (+2), long (+1), "by" + 2026 (+1 clarity),
        official/government (+2 manipulability); binary (+1); "will" (+1).
        """
        assert heuristic_scores(binary_market) == (8, 8, 7)

    def test_verified_adds_resolvability(self):
        assert heuristic_scores(_market(criteria="confirmed by the league"))[0] == 6

    def test_social_title_lowers_manipulability(self):
        scores = heuristic_scores(_market(title="Will a celebrity tweet on Twitter?"))
        assert scores[2] == 4

    def test_deadline_needs_a_year(self):
        assert heuristic_scores(_market(criteria="resolved by the committee"))[1] == 5
        assert heuristic_scores(_market(criteria="resolved by 2031"))[1] == 6

    def test_outcome_count_used_when_no_labels(self):
        assert heuristic_scores(_market(outcome_count=2))[1] == 6
        assert heuristic_scores(_market(outcomes=("A", "B", "C"), outcome_count=2))[1] == 5

    def test_case_insensitive(self):
        assert heuristic_scores(_market(criteria="OFFICIAL")) == heuristic_scores(_market(criteria="official"))

    def test_scores_stay_in_range(self):
        market = _market(
            title="Will celebrity social twitter x.com?",
            criteria="public official announced verified confirm government by 2030 " * 5,
            outcomes=("Yes", "No"),
        )
        for score in heuristic_scores(market):
            assert 0 <= score <= 10


class TestHeuristicEvaluation:

    def test_deterministic(self, binary_market):
        first = heuristic_evaluation(binary_market)
        second = heuristic_evaluation(binary_market)

        assert (first.resolvability, first.clarity, first.manipulability_risk, first.explanation) == (
            second.resolvability, second.clarity, second.manipulability_risk, second.explanation
        )
        assert first.source == "heuristic"

    def test_explanation_bands(self):
        assert heuristic_explanation(8, 8, 8) == (
            "Heuristic evaluation: Market appears highly resolvable with clear criteria. "
            "Low manipulation risk detected."
        )
        assert heuristic_explanation(5, 6, 4) == (
            "Heuristic evaluation: Market appears moderately resolvable with somewhat ambiguous "
            "criteria. Moderate manipulation risk detected."
        )
        assert heuristic_explanation(3, 0, 2) == (
            "Heuristic evaluation: Market appears poorly resolvable with somewhat ambiguous "
            "criteria. High manipulation risk detected."
        )
