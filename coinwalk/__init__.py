"""
coinwalk: optimal coin placement on a random-walk track.

Monte Carlo search for the marker positions a forward d-F walk is most
likely to land on, validated against an exact landing recurrence.
"""

from .types import (
    DieSpec, RunConfig, ScoredStrategy, InvalidConfiguration, SUCCESS_MODES
)
from .simulation.engine import simulate_walks, simulate_walks_sharded
from .simulation.bounds import compute_step_budget
from .occupancy.grid import OccupancyGrid
from .strategies.enumeration import enumerate_strategies, no_adjacent, min_gap
from .strategies.evaluator import StrategyEvaluator
from .exact.recurrence import exact_landing_probabilities
from .pipeline import run_strategy_search

__version__ = "0.1.0"

__all__ = [
    "DieSpec",
    "RunConfig",
    "ScoredStrategy",
    "InvalidConfiguration",
    "SUCCESS_MODES",
    "simulate_walks",
    "simulate_walks_sharded",
    "compute_step_budget",
    "OccupancyGrid",
    "enumerate_strategies",
    "no_adjacent",
    "min_gap",
    "StrategyEvaluator",
    "exact_landing_probabilities",
    "run_strategy_search",
]
