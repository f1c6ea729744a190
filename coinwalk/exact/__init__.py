"""Exact recurrence oracles."""

from .recurrence import (
    exact_landing_probabilities,
    exact_any_hit_probability,
    exact_all_hit_probability,
    limiting_probability,
)

__all__ = [
    "exact_landing_probabilities",
    "exact_any_hit_probability",
    "exact_all_hit_probability",
    "limiting_probability",
]
