"""
Strategy enumeration.

Generates every k-subset of marker positions 1..C that passes an optional
constraint. Candidates are produced lazily so the evaluator can score and
discard them in chunks instead of materializing the whole space.
"""

import itertools
from scipy.special import comb
from typing import Iterator, List, Optional
import logging

from ..types import InvalidConfiguration, Strategy, StrategyConstraint

logger = logging.getLogger(__name__)


def enumerate_strategies(
    k: int,
    ceiling: int,
    constraint: Optional[StrategyConstraint] = None
) -> Iterator[Strategy]:
    """
    Lazily enumerate all valid strategies.

    Constraints:
    - Exactly k distinct positions
    - Every position in 1..ceiling
    - constraint(strategy) is True (if provided)

    Strategies are yielded as sorted tuples in lexicographic order. Calling
    again restarts the sequence.

    Args:
        k: Markers per strategy
        ceiling: Highest candidate position (C)
        constraint: Optional predicate over sorted position tuples

    Returns:
        Iterator of sorted position tuples
    """
    # Validate before handing back the lazy iterator
    _validate_space(k, ceiling)
    combos = itertools.combinations(range(1, ceiling + 1), k)
    if constraint is None:
        return combos
    return (combo for combo in combos if constraint(combo))


def iter_chunks(strategies: Iterator[Strategy], chunk_size: int) -> Iterator[List[Strategy]]:
    """Group a strategy stream into lists of at most chunk_size."""
    if chunk_size <= 0:
        raise InvalidConfiguration(f"chunk_size must be positive, got {chunk_size}")
    while True:
        chunk = list(itertools.islice(strategies, chunk_size))
        if not chunk:
            return
        yield chunk


def count_strategies(k: int, ceiling: int) -> int:
    """Size of the unconstrained space, C choose k."""
    _validate_space(k, ceiling)
    return int(comb(ceiling, k, exact=True))


# =============================================================================
# Constraints
# =============================================================================

def min_gap(gap: int) -> StrategyConstraint:
    """Every pair of chosen positions differs by at least gap."""
    if gap < 1:
        raise InvalidConfiguration(f"min_gap must be at least 1, got {gap}")

    def _min_gap(strategy: Strategy) -> bool:
        return all(b - a >= gap for a, b in zip(strategy, strategy[1:]))

    _min_gap.__name__ = f"min_gap:{gap}"
    return _min_gap


def no_adjacent() -> StrategyConstraint:
    """No two chosen positions are consecutive."""
    check = min_gap(2)
    check.__name__ = "no_adjacent"
    return check


def all_of(*constraints: StrategyConstraint) -> StrategyConstraint:
    """Combine predicates; a strategy must pass every one."""
    def _all_of(strategy: Strategy) -> bool:
        return all(c(strategy) for c in constraints)

    _all_of.__name__ = "+".join(getattr(c, '__name__', 'custom') for c in constraints)
    return _all_of


def _validate_space(k: int, ceiling: int) -> None:
    if k < 1:
        raise InvalidConfiguration(f"k must be at least 1, got {k}")
    if ceiling < 1:
        raise InvalidConfiguration(f"ceiling must be at least 1, got {ceiling}")
    if k > ceiling:
        raise InvalidConfiguration(
            f"k ({k}) cannot exceed ceiling ({ceiling}): empty combination space"
        )
