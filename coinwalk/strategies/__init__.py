"""Strategy enumeration and scoring."""

from .enumeration import (
    enumerate_strategies, count_strategies, min_gap, no_adjacent, all_of
)
from .evaluator import StrategyEvaluator

__all__ = [
    "enumerate_strategies",
    "count_strategies",
    "min_gap",
    "no_adjacent",
    "all_of",
    "StrategyEvaluator",
]
