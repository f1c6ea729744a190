"""
Sampler/grid validation diagnostic.

Checks the Monte Carlo stages against the exact recurrence before a search
depends on them: per-position landing frequencies, step budget tail, and a
handful of exact any-hit / all-hit strategy probabilities.

Usage:
    python -m scripts.validate_marginals --max-position 50 --faces 6 \
        --trials 200000 --seed 42
"""

import argparse
import sys
import numpy as np
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from coinwalk.simulation.engine import simulate_walks
from coinwalk.simulation.bounds import (
    compute_step_budget, overflow_shortfall_probability, count_short_walks
)
from coinwalk.occupancy.grid import OccupancyGrid
from coinwalk.strategies.evaluator import StrategyEvaluator
from coinwalk.exact.recurrence import (
    exact_landing_probabilities, exact_any_hit_probability,
    exact_all_hit_probability, limiting_probability
)
from coinwalk.diagnostics import compare_marginals


def marginal_table(grid: OccupancyGrid, exact: np.ndarray, limit: int = 20) -> None:
    """Print empirical vs exact landing probability for the first positions."""
    empirical = grid.marginals()
    se = np.sqrt(exact * (1 - exact) / grid.n_trials)
    print(f"  {'pos':>4} {'exact':>8} {'empirical':>10} {'z':>7}")
    for pos in range(1, min(limit, grid.max_position) + 1):
        z = (empirical[pos] - exact[pos]) / se[pos] if se[pos] > 0 else 0.0
        flag = "  <--" if abs(z) > 4 else ""
        print(f"  {pos:>4} {exact[pos]:>8.4f} {empirical[pos]:>10.4f} {z:>7.2f}{flag}")


def strategy_check(evaluator: StrategyEvaluator, face_count: int, strategies) -> None:
    """Compare evaluator scores with the exact strategy oracles."""
    n = evaluator.n_trials
    for strategy in strategies:
        any_exact = exact_any_hit_probability(strategy, face_count)
        all_exact = exact_all_hit_probability(strategy, face_count)
        any_emp = evaluator.score_any_hit(strategy)
        all_emp = evaluator.score_all_hit(strategy)
        any_z = (any_emp - any_exact) / max(np.sqrt(any_exact * (1 - any_exact) / n), 1e-12)
        all_z = (all_emp - all_exact) / max(np.sqrt(all_exact * (1 - all_exact) / n), 1e-12)
        print(
            f"  {str(strategy):<14} any {any_emp:.4f} vs {any_exact:.4f} (z={any_z:+.2f}) | "
            f"all {all_emp:.4f} vs {all_exact:.4f} (z={all_z:+.2f})"
        )


def main():
    parser = argparse.ArgumentParser(description="Validate sampler and grid against exact recurrence")
    parser.add_argument("--max-position", type=int, default=50)
    parser.add_argument("--faces", type=int, default=6)
    parser.add_argument("--trials", type=int, default=200000)
    parser.add_argument("--tail-probability", type=float, default=1e-9)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    step_budget = compute_step_budget(args.max_position, args.faces, args.tail_probability)
    shortfall = overflow_shortfall_probability(step_budget, args.max_position, args.faces)

    print("=" * 70)
    print("STEP BUDGET")
    print("=" * 70)
    print(f"  Step budget: {step_budget}")
    print(f"  P(walk stops short of last square): {shortfall:.3e} (target {args.tail_probability:.1e})")

    walks = simulate_walks(step_budget, args.faces, args.trials, seed=args.seed)
    short = count_short_walks(walks, args.max_position)
    print(f"  Short walks observed: {short}")

    grid = OccupancyGrid.from_walks(walks, args.max_position)
    exact = exact_landing_probabilities(args.max_position, args.faces)

    print("\n" + "=" * 70)
    print("MARGINAL CHECK")
    print("=" * 70)
    marginal_table(grid, exact)
    check = compare_marginals(grid, exact)
    print(f"\n  Max deviation: {check['max_abs_deviation']:.4f} at position {check['worst_position']}")
    print(f"  Max |z|: {check['max_abs_z']:.2f}, adjusted p={check['p_value']:.3g}")
    print(f"  Limit 2/(F+1): {limiting_probability(args.faces):.4f}, "
          f"exact at {args.max_position}: {exact[args.max_position]:.4f}")
    if not check['passed']:
        print("  WARNING: Marginals disagree with the exact recurrence.")

    print("\n" + "=" * 70)
    print("STRATEGY ORACLE CHECK")
    print("=" * 70)
    evaluator = StrategyEvaluator(grid)
    ceiling = min(args.max_position, 20)
    candidates = [
        (args.faces,),
        (args.faces - 1, args.faces),
        tuple(p for p in (4, 5, 6) if p <= ceiling),
        tuple(p for p in (6, 12, 18) if p <= ceiling),
    ]
    strategy_check(evaluator, args.faces, [c for c in candidates if c and min(c) >= 1 and max(c) <= args.max_position])

    print("\nValidation complete.")


if __name__ == "__main__":
    main()
