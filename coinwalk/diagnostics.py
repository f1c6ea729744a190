"""
Run diagnostics.

Statistical checks layered on a finished run: agreement between the grid's
marginals and the exact recurrence, confidence intervals for strategy
scores, NumericDegenerate annotations, and whether the top of the ranking is
resolved beyond sampling error.
"""

import numpy as np
from scipy import stats
from typing import Dict, List, Sequence, Tuple
import logging

from .types import ScoredStrategy
from .occupancy.grid import OccupancyGrid

logger = logging.getLogger(__name__)

# Top-two gap must exceed this many standard errors to count as resolved
GAP_RESOLUTION_SIGMAS = 2.0


# =============================================================================
# Marginal Check
# =============================================================================

def compare_marginals(
    grid: OccupancyGrid,
    exact: np.ndarray,
    alpha: float = 1e-3
) -> Dict:
    """
    Compare empirical landing frequencies with exact probabilities.

    Uses a per-position z-test with a Bonferroni correction across the
    max_position positions; the check passes when no position rejects at
    level alpha.

    Args:
        grid: Occupancy grid
        exact: [>= grid.max_position + 1] exact landing probabilities
        alpha: Family-wise significance level

    Returns:
        Dict with max_abs_deviation, worst_position, max_abs_z, p_value, passed
    """
    n_pos = grid.max_position
    if len(exact) < n_pos + 1:
        raise ValueError(
            f"Exact vector has {len(exact)} entries, need {n_pos + 1}"
        )

    empirical = grid.marginals()[1:n_pos + 1]
    expected = np.asarray(exact[1:n_pos + 1], dtype=np.float64)
    deviation = empirical - expected

    std_error = np.sqrt(expected * (1.0 - expected) / max(grid.n_trials, 1))
    with np.errstate(divide='ignore', invalid='ignore'):
        z = np.where(std_error > 0, deviation / std_error, 0.0)

    worst = int(np.argmax(np.abs(deviation)))
    max_abs_z = float(np.max(np.abs(z))) if n_pos > 0 else 0.0
    # Two-sided, Bonferroni-adjusted
    p_value = float(min(1.0, 2.0 * stats.norm.sf(max_abs_z) * n_pos))

    result = {
        'max_abs_deviation': float(np.abs(deviation[worst])),
        'worst_position': worst + 1,
        'max_abs_z': max_abs_z,
        'p_value': p_value,
        'passed': p_value >= alpha,
        'n_trials': grid.n_trials,
    }

    if not result['passed']:
        logger.warning(
            "Grid marginals disagree with exact recurrence: position %d off by %.4f "
            "(|z|=%.1f, adjusted p=%.2e)",
            result['worst_position'], result['max_abs_deviation'], max_abs_z, p_value
        )
    return result


# =============================================================================
# Score Uncertainty
# =============================================================================

def wilson_interval(hits: int, n_trials: int, confidence: float = 0.95) -> Tuple[float, float]:
    """Wilson score interval for a binomial proportion."""
    if n_trials <= 0:
        return (0.0, 1.0)
    z = stats.norm.ppf(0.5 + confidence / 2.0)
    p = hits / n_trials
    denom = 1.0 + z * z / n_trials
    center = (p + z * z / (2 * n_trials)) / denom
    half = z * np.sqrt(p * (1 - p) / n_trials + z * z / (4 * n_trials * n_trials)) / denom
    return (float(max(0.0, center - half)), float(min(1.0, center + half)))


def ranking_diagnostics(ranked: Sequence[ScoredStrategy]) -> Dict:
    """
    Summarize sampling reliability of a ranked strategy list.

    The top-gap standard error treats the two scores as independent, which
    overstates it for overlapping strategies, so top_gap_resolved is
    conservative.
    """
    n_degenerate = sum(1 for s in ranked if s.degenerate)

    diag = {
        'n_strategies': len(ranked),
        'n_degenerate': n_degenerate,
        'top_gap': None,
        'top_gap_std_error': None,
        'top_gap_resolved': None,
    }
    if ranked:
        best = ranked[0]
        lo, hi = wilson_interval(best.hits, best.n_trials)
        diag['best'] = {**best.to_dict(), 'ci_95': [lo, hi]}

    if len(ranked) >= 2:
        first, second = ranked[0], ranked[1]
        gap = first.probability - second.probability
        gap_se = float(np.hypot(first.std_error, second.std_error))
        diag['top_gap'] = gap
        diag['top_gap_std_error'] = gap_se
        diag['top_gap_resolved'] = gap > GAP_RESOLUTION_SIGMAS * gap_se

        if not diag['top_gap_resolved']:
            logger.warning(
                "Top strategy %s not resolved from runner-up %s: gap %.4f vs %.1f x SE %.4f",
                first.positions, second.positions, gap, GAP_RESOLUTION_SIGMAS, gap_se
            )

    if n_degenerate:
        logger.warning(
            "%d of %d strategy scores are statistically degenerate "
            "(too few hits or misses for the trial count)",
            n_degenerate, len(ranked)
        )
    return diag


def format_diagnostics(diag: Dict) -> str:
    """Format diagnostics dict into readable console output."""
    lines = []
    lines.append("RUN DIAGNOSTICS")
    lines.append("=" * 60)

    if 'marginal_check' in diag:
        mc = diag['marginal_check']
        status = "OK" if mc['passed'] else "MISMATCH"
        lines.append(f"\n  Marginals vs exact recurrence: {status}")
        lines.append(
            f"    Max deviation: {mc['max_abs_deviation']:.4f} at position "
            f"{mc['worst_position']} | max |z|={mc['max_abs_z']:.2f} | "
            f"adjusted p={mc['p_value']:.3g}"
        )

    if 'short_walks' in diag:
        lines.append(f"\n  Walks not passing the track end: {diag['short_walks']}")

    ranking = diag.get('ranking', {})
    if ranking.get('best'):
        best = ranking['best']
        lo, hi = best['ci_95']
        lines.append(
            f"\n  Best strategy: {tuple(best['positions'])} "
            f"p={best['probability']:.4f} (95% CI {lo:.4f}-{hi:.4f})"
        )
    if ranking.get('top_gap') is not None:
        resolved = "resolved" if ranking['top_gap_resolved'] else "NOT resolved"
        lines.append(
            f"  Top gap: {ranking['top_gap']:.4f} "
            f"(SE {ranking['top_gap_std_error']:.4f}, {resolved})"
        )
    if ranking:
        lines.append(
            f"  Degenerate scores: {ranking['n_degenerate']} of {ranking['n_strategies']}"
        )

    return "\n".join(lines)


def strategies_to_rows(ranked: List[ScoredStrategy]) -> List[Dict]:
    """Flatten ranked strategies for CSV/JSON export."""
    return [
        {'rank': i + 1, **s.to_dict()}
        for i, s in enumerate(ranked)
    ]
