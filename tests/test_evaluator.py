"""Tests for strategy enumeration and scoring."""
import itertools

import pytest

from coinwalk.occupancy.grid import OccupancyGrid
from coinwalk.strategies.enumeration import (
    enumerate_strategies, count_strategies, iter_chunks, min_gap, no_adjacent, all_of
)
from coinwalk.strategies.evaluator import StrategyEvaluator
from coinwalk.exact.recurrence import exact_any_hit_probability, exact_all_hit_probability
from coinwalk.types import InvalidConfiguration, ScoredStrategy


@pytest.fixture(scope="module")
def evaluator_20(grid_20):
    return StrategyEvaluator(grid_20)


class TestEnumeration:
    """Test cases for strategy enumeration."""

    def test_all_combinations_in_order(self):
        strategies = list(enumerate_strategies(2, 4))
        assert strategies == [(1, 2), (1, 3), (1, 4), (2, 3), (2, 4), (3, 4)]

    def test_count_matches_binomial(self):
        assert count_strategies(3, 20) == 1140
        assert len(list(enumerate_strategies(3, 20))) == 1140

    def test_enumeration_is_lazy_and_restartable(self):
        first = enumerate_strategies(3, 20)
        assert next(first) == (1, 2, 3)
        again = enumerate_strategies(3, 20)
        assert next(again) == (1, 2, 3)

    def test_no_adjacent_constraint(self):
        strategies = list(enumerate_strategies(2, 4, no_adjacent()))
        assert strategies == [(1, 3), (1, 4), (2, 4)]

    def test_min_gap_constraint(self):
        check = min_gap(3)
        assert check((1, 4, 7))
        assert not check((1, 3, 7))

    def test_combined_constraints(self):
        check = all_of(no_adjacent(), lambda s: 6 in s)
        assert check((2, 6))
        assert not check((5, 6))
        assert not check((2, 7))

    @pytest.mark.parametrize("k,ceiling", [(0, 5), (6, 5), (2, 0)])
    def test_invalid_space_fails_before_iteration(self, k, ceiling):
        with pytest.raises(InvalidConfiguration):
            enumerate_strategies(k, ceiling)

    def test_chunks(self):
        chunks = list(iter_chunks(enumerate_strategies(1, 7), 3))
        assert [len(c) for c in chunks] == [3, 3, 1]


class TestSingleStrategyScoring:
    """Test cases for score_any_hit / score_all_hit."""

    def test_tiny_grid_scores(self, tiny_walks):
        evaluator = StrategyEvaluator(OccupancyGrid.from_walks(tiny_walks, 6))

        assert evaluator.score_any_hit((1, 2)) == 1.0
        assert evaluator.score_any_hit((1, 3)) == 0.5
        assert evaluator.score_all_hit((4, 5)) == 0.5
        assert evaluator.score_all_hit((3, 4)) == 0.0

    def test_probabilities_bounded(self, evaluator_20):
        for strategy in [(1,), (4, 5, 6), (6, 12, 18), (1, 2, 3, 4, 5, 6)]:
            for score in (evaluator_20.score_any_hit(strategy),
                          evaluator_20.score_all_hit(strategy)):
                assert 0.0 <= score <= 1.0

    def test_any_hit_dominates_marginals(self, evaluator_20, grid_20):
        marginals = grid_20.marginals()
        for strategy in [(2, 9), (4, 5, 6), (3, 10, 17), (1, 7, 13, 19)]:
            best = max(marginals[p] for p in strategy)
            worst = min(marginals[p] for p in strategy)
            assert evaluator_20.score_any_hit(strategy) >= best
            assert evaluator_20.score_all_hit(strategy) <= worst

    def test_six_consecutive_squares_always_hit(self, evaluator_20):
        assert evaluator_20.score_any_hit(range(7, 13)) == 1.0

    def test_agrees_with_exact_oracles(self, evaluator_20):
        for strategy in [(4, 5, 6), (6, 12, 18), (2, 11), (9,)]:
            assert evaluator_20.score_any_hit(strategy) == pytest.approx(
                exact_any_hit_probability(strategy), abs=0.01
            )
            assert evaluator_20.score_all_hit(strategy) == pytest.approx(
                exact_all_hit_probability(strategy), abs=0.01
            )

    def test_score_returns_annotated_result(self, evaluator_20):
        scored = evaluator_20.score((6, 5, 4), mode="any")

        assert scored.positions == (4, 5, 6)
        assert scored.n_trials == evaluator_20.n_trials
        assert scored.probability == scored.hits / scored.n_trials
        assert not scored.degenerate

    @pytest.mark.parametrize("strategy", [(), (0, 4), (4, 4), (3, 21)])
    def test_rejects_invalid_strategy(self, evaluator_20, strategy):
        with pytest.raises(InvalidConfiguration):
            evaluator_20.score_any_hit(strategy)

    def test_rejects_unknown_mode(self, evaluator_20):
        with pytest.raises(InvalidConfiguration):
            evaluator_20.count((1, 2), mode="most")


class TestPairwiseFastPath:
    """Test cases for the co-occurrence union identity."""

    def test_union_identity_holds_exactly(self, evaluator_20, grid_20):
        counts = grid_20.hit_counts()
        co = grid_20.co_occurrence()
        for a, b in itertools.combinations(range(1, 21), 2):
            direct = evaluator_20.count((a, b), "any")
            assert direct == counts[a] + counts[b] - co[a, b]
            assert evaluator_20.pair_union_count(a, b) == direct

    def test_union_identity_as_probabilities(self, evaluator_20, grid_20):
        n = grid_20.n_trials
        counts = grid_20.hit_counts()
        for a, b in [(1, 2), (4, 6), (5, 6), (10, 20)]:
            ab = evaluator_20.pair_intersection_count(a, b)
            assert evaluator_20.score_any_hit((a, b)) == pytest.approx(
                counts[a] / n + counts[b] / n - ab / n, abs=1e-12
            )

    @pytest.mark.parametrize("mode", ["any", "all"])
    def test_fast_path_matches_scan(self, evaluator_20, mode):
        fast = evaluator_20.rank_strategies(2, 20, mode=mode, use_pair_fast_path=True)
        scan = evaluator_20.rank_strategies(2, 20, mode=mode, use_pair_fast_path=False)

        assert [(s.positions, s.hits) for s in fast] == [(s.positions, s.hits) for s in scan]

    def test_best_pair_is_five_six(self, evaluator_20):
        ranked = evaluator_20.rank_strategies(2, 20, mode="any")
        assert ranked[0].positions == (5, 6)


class TestRanking:
    """Test cases for rank_strategies."""

    def test_returns_every_strategy_in_order(self, evaluator_20):
        ranked = evaluator_20.rank_strategies(3, 20, mode="any")

        assert len(ranked) == 1140
        keys = [(-s.hits, s.positions) for s in ranked]
        assert keys == sorted(keys)

    def test_ties_broken_by_position_tuple(self, tiny_walks):
        evaluator = StrategyEvaluator(OccupancyGrid.from_walks(tiny_walks, 6))
        ranked = evaluator.rank_strategies(1, 6, mode="any")

        # every square is hit by exactly one of the two walks
        assert [s.positions for s in ranked] == [(1,), (2,), (3,), (4,), (5,), (6,)]

    def test_constraint_filters_results(self, evaluator_20):
        ranked = evaluator_20.rank_strategies(3, 20, constraint=no_adjacent())

        assert len(ranked) == len(list(enumerate_strategies(3, 20, no_adjacent())))
        assert all(no_adjacent()(s.positions) for s in ranked)

    def test_threaded_matches_inline(self, evaluator_20):
        inline = evaluator_20.rank_strategies(3, 15, mode="all", chunk_size=50)
        pooled = evaluator_20.rank_strategies(3, 15, mode="all", chunk_size=50, max_workers=4)

        assert [(s.positions, s.hits) for s in inline] == [(s.positions, s.hits) for s in pooled]

    def test_top_n(self, evaluator_20):
        full = evaluator_20.rank_strategies(3, 20)
        top = evaluator_20.rank_strategies(3, 20, top_n=5)
        assert [s.positions for s in top] == [s.positions for s in full[:5]]

    def test_rejects_k_above_ceiling(self, evaluator_20):
        with pytest.raises(InvalidConfiguration):
            evaluator_20.rank_strategies(5, 4)

    def test_rejects_ceiling_above_track(self, evaluator_20):
        with pytest.raises(InvalidConfiguration):
            evaluator_20.rank_strategies(2, 21)


class TestScoredStrategy:
    """Test cases for the NumericDegenerate annotation."""

    def test_standard_error(self):
        scored = ScoredStrategy(positions=(6,), hits=2500, n_trials=10000)
        assert scored.probability == 0.25
        assert scored.std_error == pytest.approx((0.25 * 0.75 / 10000) ** 0.5)

    @pytest.mark.parametrize("hits,degenerate", [(5, True), (500, False), (995, True)])
    def test_degenerate_flag(self, hits, degenerate):
        assert ScoredStrategy(positions=(1,), hits=hits, n_trials=1000).degenerate is degenerate
