"""
Step budget bounds.

Sizes the per-trial roll budget so that a walk stops short of the last
square only with a stated tail probability, and checks sampled walks against
that guarantee.
"""

import numpy as np
import logging

from ..types import InvalidConfiguration

logger = logging.getLogger(__name__)


def overflow_shortfall_probability(
    step_budget: int,
    max_position: int,
    face_count: int = 6
) -> float:
    """
    Exact P(S_n < max_position) where S_n is the sum of n = step_budget rolls.

    This is the probability that a trial stops short of the last square, so
    squares between its final position and max_position go unobserved. Only
    the mass below max_position is tracked, so each convolution is
    O(max_position * face_count).

    Args:
        step_budget: Rolls per trial
        max_position: Last valid landing position
        face_count: Die faces

    Returns:
        Shortfall probability in [0, 1]
    """
    if step_budget <= 0 or max_position <= 0 or face_count <= 0:
        raise InvalidConfiguration(
            "step_budget, max_position and face_count must be positive"
        )

    # Every roll is at least 1
    if step_budget >= max_position:
        return 0.0

    die = np.full(face_count, 1.0 / face_count)
    # mass[s] = P(S_i = s) for s in 0..max_position-1
    mass = np.zeros(max_position)
    mass[0] = 1.0
    for _ in range(step_budget):
        stepped = np.zeros(max_position)
        for face in range(1, face_count + 1):
            if face >= max_position:
                break
            stepped[face:] += die[face - 1] * mass[:-face]
        mass = stepped

    return float(min(mass.sum(), 1.0))


def compute_step_budget(
    max_position: int,
    face_count: int = 6,
    tail_probability: float = 1e-9
) -> int:
    """
    Smallest step budget whose shortfall probability is below tail_probability.

    The search starts at the deterministic lower bound
    ceil(max_position / face_count) and never exceeds max_position, where
    shortfall is impossible.

    Args:
        max_position: Last valid landing position
        face_count: Die faces
        tail_probability: Target P(walk stops short of max_position)

    Returns:
        Step budget (rolls per trial)
    """
    if not 0.0 < tail_probability < 1.0:
        raise InvalidConfiguration(
            f"tail_probability must be in (0, 1), got {tail_probability}"
        )
    if max_position <= 0 or face_count <= 0:
        raise InvalidConfiguration("max_position and face_count must be positive")

    n = max(1, -(-max_position // face_count))
    while n < max_position:
        shortfall = overflow_shortfall_probability(n, max_position, face_count)
        if shortfall < tail_probability:
            break
        n += 1

    logger.info(
        "Step budget %d for max_position=%d, d%d (tail target %.1e)",
        n, max_position, face_count, tail_probability
    )
    return n


def count_short_walks(walks: np.ndarray, max_position: int) -> int:
    """
    Count trials whose last position is below max_position.

    Squares past such a trial's last roll were never observed, so the grid
    may miss landings there; a nonzero count means the step budget was too
    small. A trial ending exactly on max_position is complete.
    """
    if walks.size == 0:
        return 0
    return int(np.sum(walks[:, -1] < max_position))
