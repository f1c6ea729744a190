"""Monte Carlo walk sampling."""

from .engine import simulate_walks, simulate_walks_sharded
from .bounds import compute_step_budget, overflow_shortfall_probability, count_short_walks

__all__ = [
    "simulate_walks",
    "simulate_walks_sharded",
    "compute_step_budget",
    "overflow_shortfall_probability",
    "count_short_walks",
]
