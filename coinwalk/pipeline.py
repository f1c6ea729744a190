"""
Full pipeline orchestration for coin placement search.

Wires all modules together for end-to-end execution.
"""

import numpy as np
from typing import Dict
import logging
import time

from .types import DieSpec, InvalidConfiguration, RunConfig
from .config import build_adjacency_constraint
from .simulation.engine import simulate_walks_sharded
from .simulation.bounds import (
    compute_step_budget, overflow_shortfall_probability, count_short_walks
)
from .occupancy.grid import OccupancyGrid
from .strategies.enumeration import count_strategies
from .strategies.evaluator import StrategyEvaluator
from .exact.recurrence import exact_landing_probabilities
from .diagnostics import compare_marginals, ranking_diagnostics

logger = logging.getLogger(__name__)


def validate_run_config(config: RunConfig) -> None:
    """
    Fail fast on configurations that cannot produce a ranking.

    RunConfig validates its own fields; this re-checks the cross-field rules
    in case the object was mutated after construction, and resolves the
    constraint name so a typo fails before sampling.
    """
    if config.search_ceiling is None or config.search_ceiling > config.max_position:
        raise InvalidConfiguration(
            f"search_ceiling ({config.search_ceiling}) must be set and at most "
            f"max_position ({config.max_position})"
        )
    if config.num_markers > config.search_ceiling:
        raise InvalidConfiguration(
            f"num_markers ({config.num_markers}) cannot exceed "
            f"search_ceiling ({config.search_ceiling})"
        )
    build_adjacency_constraint(config.adjacency_constraint)


def run_strategy_search(config: RunConfig, use_pair_fast_path: bool = True) -> Dict:
    """
    Full strategy search pipeline.

    Steps:
    1. Validate configuration
    2. Size step budget
    3. Sample walks (sharded)
    4. Build occupancy grid
    5. Rank strategies
    6. Check marginals against the exact recurrence
    7. Return results

    Args:
        config: Run configuration
        use_pair_fast_path: For k=2, score through the co-occurrence matrix

    Returns:
        Dict with ranked strategies, diagnostics, and metadata
    """
    t_start = time.time()

    # === VALIDATE ===
    validate_run_config(config)
    constraint = build_adjacency_constraint(config.adjacency_constraint)

    # === STEP BUDGET ===
    if config.step_budget is None:
        step_budget = compute_step_budget(
            config.max_position, config.face_count, config.tail_probability
        )
    else:
        step_budget = config.step_budget
    die = DieSpec(face_count=config.face_count, step_budget=step_budget)
    shortfall = overflow_shortfall_probability(
        die.step_budget, config.max_position, die.face_count
    )
    if shortfall >= config.tail_probability:
        logger.warning(
            "Step budget %d leaves P(walk stops short of last square)=%.2e, above target %.1e",
            die.step_budget, shortfall, config.tail_probability
        )

    # === SAMPLE WALKS ===
    logger.info(
        "Simulating %d trials (d%d, %d steps, seed=%s)...",
        config.trial_count, die.face_count, die.step_budget, config.random_seed
    )
    t0 = time.time()
    shards = simulate_walks_sharded(
        step_budget=die.step_budget,
        face_count=die.face_count,
        trial_count=config.trial_count,
        n_shards=config.n_shards,
        seed=config.random_seed,
        max_workers=config.max_workers
    )
    short_walks = sum(count_short_walks(w, config.max_position) for w in shards)
    if short_walks:
        logger.warning(
            "%d trials stopped short of the last square; increase step_budget", short_walks
        )
    t_sample = time.time() - t0

    # === BUILD GRID ===
    t0 = time.time()
    grid = OccupancyGrid.from_walk_shards(shards, config.max_position)
    del shards
    t_grid = time.time() - t0

    # === RANK STRATEGIES ===
    t0 = time.time()
    evaluator = StrategyEvaluator(grid)
    ranked = evaluator.rank_strategies(
        k=config.num_markers,
        ceiling=config.search_ceiling,
        mode=config.success_mode,
        constraint=constraint,
        chunk_size=config.chunk_size,
        max_workers=config.max_workers,
        use_pair_fast_path=use_pair_fast_path
    )
    t_rank = time.time() - t0

    if not ranked:
        logger.warning("No strategy satisfies the adjacency constraint")
    else:
        best = ranked[0]
        logger.info(
            "Best strategy %s: p=%.4f (+/- %.4f)",
            best.positions, best.probability, best.std_error
        )

    # === DIAGNOSTICS ===
    exact = exact_landing_probabilities(config.max_position, die.face_count)
    diagnostics = {
        'marginal_check': compare_marginals(grid, exact),
        'ranking': ranking_diagnostics(ranked),
        'short_walks': short_walks,
        'step_budget_shortfall': shortfall,
    }

    metadata = {
        'config': config.to_dict(),
        'step_budget': die.step_budget,
        'n_candidates_unconstrained': count_strategies(
            config.num_markers, config.search_ceiling
        ),
        'n_candidates': len(ranked),
        'timings': {
            'sample_s': t_sample,
            'grid_s': t_grid,
            'rank_s': t_rank,
            'total_s': time.time() - t_start,
        },
    }

    return {
        'ranked': ranked,
        'marginals': grid.marginals(),
        'exact': np.asarray(exact),
        'diagnostics': diagnostics,
        'metadata': metadata,
    }
