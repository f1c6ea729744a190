"""
Exact landing probabilities by linear recurrence.

Validation oracle for the Monte Carlo stages. For a d-F walk started at 0:

    p[0] = 1
    p[i] = (p[i-F] + ... + p[i-1]) / F      (indices < 0 count as 0)

Each value depends only on strictly earlier ones, so one pass in increasing
index order with a sliding window sum is enough. p[i] tends to 1 / E[step]
= 2 / (F + 1) as i grows.

Two strategy-level oracles build on the same recurrence:
- all-hit: by the renewal property, P(hit a < b < c) = p[a] * p[b-a] * p[c-b]
- any-hit: first-passage recurrence that absorbs landing mass at each marker
"""

import numpy as np
from typing import Iterable
import logging

from ..types import InvalidConfiguration, Strategy

logger = logging.getLogger(__name__)


def exact_landing_probabilities(max_position: int, face_count: int = 6) -> np.ndarray:
    """
    Probability that each position 0..max_position is ever landed on.

    Args:
        max_position: Last position to compute
        face_count: Die faces

    Returns:
        [max_position + 1] float64 ExactProbabilityVector with p[0] = 1.0
    """
    if max_position <= 0:
        raise InvalidConfiguration(f"max_position must be positive, got {max_position}")
    if face_count <= 0:
        raise InvalidConfiguration(f"face_count must be positive, got {face_count}")

    p = np.zeros(max_position + 1, dtype=np.float64)
    p[0] = 1.0
    window = 1.0  # sum of p[i-F..i-1]
    for i in range(1, max_position + 1):
        p[i] = window / face_count
        window += p[i]
        if i - face_count >= 0:
            window -= p[i - face_count]

    p.flags.writeable = False
    return p


def limiting_probability(face_count: int = 6) -> float:
    """Long-run landing rate 2 / (F + 1)."""
    if face_count <= 0:
        raise InvalidConfiguration(f"face_count must be positive, got {face_count}")
    return 2.0 / (face_count + 1)


def exact_all_hit_probability(strategy: Iterable[int], face_count: int = 6) -> float:
    """P(walk lands on every position in strategy)."""
    positions = _sorted_positions(strategy)
    p = exact_landing_probabilities(positions[-1], face_count)
    prob = 1.0
    prev = 0
    for pos in positions:
        prob *= p[pos - prev]
        prev = pos
    return float(prob)


def exact_any_hit_probability(strategy: Iterable[int], face_count: int = 6) -> float:
    """
    P(walk lands on at least one position in strategy).

    q[i] is the probability of landing on i without having landed on any
    earlier marker; marker mass is added to the total and then removed so
    it never propagates.
    """
    positions = _sorted_positions(strategy)
    if face_count <= 0:
        raise InvalidConfiguration(f"face_count must be positive, got {face_count}")

    markers = set(positions)
    last = positions[-1]
    q = np.zeros(last + 1, dtype=np.float64)
    q[0] = 1.0
    window = 1.0
    total = 0.0
    for i in range(1, last + 1):
        q[i] = window / face_count
        if i in markers:
            total += q[i]
            q[i] = 0.0
        window += q[i]
        if i - face_count >= 0:
            window -= q[i - face_count]
    return float(total)


def _sorted_positions(strategy: Iterable[int]) -> Strategy:
    positions = tuple(sorted(int(p) for p in strategy))
    if not positions:
        raise InvalidConfiguration("Strategy must contain at least one position")
    if positions[0] < 1:
        raise InvalidConfiguration(f"Strategy positions must be >= 1: {positions}")
    if len(set(positions)) != len(positions):
        raise InvalidConfiguration(f"Strategy positions must be distinct: {positions}")
    return positions
