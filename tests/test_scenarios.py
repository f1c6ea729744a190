"""End-to-end puzzle scenarios and pipeline behaviour."""
import numpy as np
import pytest

from coinwalk.occupancy.grid import OccupancyGrid
from coinwalk.pipeline import run_strategy_search, validate_run_config
from coinwalk.simulation.bounds import compute_step_budget
from coinwalk.simulation.engine import simulate_walks
from coinwalk.strategies.enumeration import no_adjacent
from coinwalk.strategies.evaluator import StrategyEvaluator
from coinwalk.exact.recurrence import exact_landing_probabilities
from coinwalk.types import InvalidConfiguration, RunConfig


@pytest.fixture(scope="module")
def fine_grid_50():
    """One million trials, built shard by shard to bound peak memory."""
    budget = compute_step_budget(50, 6, 1e-9)
    children = np.random.SeedSequence(31337).spawn(4)
    grids = [
        OccupancyGrid.from_walks(simulate_walks(budget, 6, 250000, child), 50)
        for child in children
    ]
    return OccupancyGrid.from_shards(grids)


class TestPuzzleScenarios:
    """The standard coin puzzles."""

    def test_single_coin_best_square(self, fine_grid_50):
        ranked = StrategyEvaluator(fine_grid_50).rank_strategies(1, 50, mode="any")
        exact = exact_landing_probabilities(50, 6)

        assert ranked[0].positions == (6,)
        assert ranked[0].probability == pytest.approx(exact[6], abs=0.01)
        assert ranked[1].positions == (5,)
        assert {s.positions[0] for s in ranked[1:5]} == {5, 12, 11, 10}

    def test_three_coins_any_hit(self, grid_20):
        ranked = StrategyEvaluator(grid_20).rank_strategies(3, 20, mode="any")

        assert ranked[0].positions == (4, 5, 6)
        assert ranked[0].probability - ranked[1].probability > 0.02

    def test_three_coins_all_hit(self, grid_20):
        ranked = StrategyEvaluator(grid_20).rank_strategies(3, 20, mode="all")
        assert ranked[0].positions == (6, 12, 18)

    def test_three_coins_no_adjacent(self, grid_20):
        ranked = StrategyEvaluator(grid_20).rank_strategies(
            3, 20, mode="any", constraint=no_adjacent()
        )
        positions = {s.positions for s in ranked}

        assert (4, 5, 6) not in positions
        assert all(b - a > 1 for s in positions for a, b in zip(s, s[1:]))


class TestPipeline:
    """Test cases for run_strategy_search."""

    def test_results_structure(self):
        config = RunConfig(max_position=20, num_markers=2, trial_count=20000, random_seed=3)
        results = run_strategy_search(config)

        assert set(results) >= {'ranked', 'diagnostics', 'metadata', 'marginals', 'exact'}
        assert len(results['ranked']) == 190
        assert results['metadata']['step_budget'] == compute_step_budget(20, 6, 1e-9)
        assert results['metadata']['n_candidates_unconstrained'] == 190
        assert results['diagnostics']['short_walks'] == 0
        assert results['diagnostics']['marginal_check']['max_abs_deviation'] < 0.02
        assert results['diagnostics']['ranking']['best']['positions'] == [5, 6]

    def test_same_seed_same_ranking(self):
        config = RunConfig(max_position=15, num_markers=2, trial_count=5000, random_seed=42)
        first = run_strategy_search(config)
        second = run_strategy_search(config)

        assert [(s.positions, s.hits) for s in first['ranked']] == \
            [(s.positions, s.hits) for s in second['ranked']]

    def test_sharded_run_is_deterministic_across_worker_counts(self):
        inline = run_strategy_search(RunConfig(
            max_position=15, num_markers=3, trial_count=6000, random_seed=8, n_shards=3
        ))
        pooled = run_strategy_search(RunConfig(
            max_position=15, num_markers=3, trial_count=6000, random_seed=8, n_shards=3,
            max_workers=3
        ))

        assert [(s.positions, s.hits) for s in inline['ranked']] == \
            [(s.positions, s.hits) for s in pooled['ranked']]

    def test_named_constraint(self):
        config = RunConfig(
            max_position=12, num_markers=2, trial_count=5000, random_seed=1,
            adjacency_constraint="no_adjacent"
        )
        results = run_strategy_search(config)
        assert all(s.positions[1] - s.positions[0] > 1 for s in results['ranked'])
        assert results['metadata']['config']['adjacency_constraint'] == "no_adjacent"

    def test_search_ceiling_limits_candidates(self):
        config = RunConfig(
            max_position=30, num_markers=1, trial_count=5000, random_seed=1,
            search_ceiling=10
        )
        results = run_strategy_search(config)
        assert len(results['ranked']) == 10
        assert max(s.positions[0] for s in results['ranked']) == 10

    def test_small_run_flags_degenerate_scores(self):
        config = RunConfig(
            max_position=20, num_markers=3, trial_count=200, random_seed=5,
            success_mode="all"
        )
        results = run_strategy_search(config)
        assert results['diagnostics']['ranking']['n_degenerate'] > 0


class TestConfigurationErrors:
    """Setup errors are raised before any sampling."""

    @pytest.mark.parametrize("kwargs", [
        dict(max_position=0, num_markers=1, trial_count=10),
        dict(max_position=10, num_markers=0, trial_count=10),
        dict(max_position=10, num_markers=1, trial_count=0),
        dict(max_position=10, num_markers=1, trial_count=10, face_count=0),
        dict(max_position=10, num_markers=4, trial_count=10, search_ceiling=3),
        dict(max_position=10, num_markers=1, trial_count=10, search_ceiling=11),
        dict(max_position=10, num_markers=1, trial_count=10, success_mode="most"),
        dict(max_position=10, num_markers=1, trial_count=10, step_budget=0),
        dict(max_position=10, num_markers=1, trial_count=10, step_budget=2.5),
        dict(max_position=10, num_markers=1, trial_count=10, step_budget=True),
        dict(max_position=10, num_markers=1, trial_count=10, search_ceiling=4.0),
        dict(max_position=10, num_markers=1, trial_count=10, max_workers=0),
        dict(max_position=10, num_markers=1, trial_count=10, tail_probability=0.0),
    ])
    def test_invalid_config(self, kwargs):
        with pytest.raises(InvalidConfiguration):
            RunConfig(**kwargs)

    def test_unknown_constraint_fails_validation(self):
        config = RunConfig(
            max_position=10, num_markers=2, trial_count=10, adjacency_constraint="diagonal"
        )
        with pytest.raises(InvalidConfiguration):
            validate_run_config(config)

    def test_mutated_config_fails_validation(self):
        config = RunConfig(max_position=10, num_markers=2, trial_count=10)
        config.search_ceiling = 12
        with pytest.raises(InvalidConfiguration):
            run_strategy_search(config)
