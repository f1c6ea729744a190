"""
Core data structures for the coin placement engine.

Track/die configuration, scored strategies, and the small error taxonomy
shared by every stage of the pipeline.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Literal, Optional, Tuple, Union
import math


SuccessMode = Literal["any", "all"]
SUCCESS_MODES: Tuple[str, ...] = ("any", "all")

Strategy = Tuple[int, ...]
StrategyConstraint = Callable[[Strategy], bool]

# Normal approximation needs at least this many successes and failures
MIN_EXPECTED_HITS = 10

# Strategies scored per vectorized [chunk, k, n_trials] block when ranking
DEFAULT_CHUNK_SIZE = 2048


class InvalidConfiguration(ValueError):
    """Raised at setup, before any sampling, when a run cannot be performed."""


@dataclass(frozen=True)
class DieSpec:
    """
    Die used to drive the walk.

    Attributes:
        face_count: Number of faces; each roll is uniform over 1..face_count
        step_budget: Rolls per trial
    """
    face_count: int = 6
    step_budget: int = 1

    def __post_init__(self) -> None:
        if self.face_count <= 0:
            raise InvalidConfiguration(
                f"face_count must be positive, got {self.face_count}"
            )
        if self.step_budget <= 0:
            raise InvalidConfiguration(
                f"step_budget must be positive, got {self.step_budget}"
            )

    @property
    def mean_step(self) -> float:
        return (self.face_count + 1) / 2.0


@dataclass(frozen=True)
class ScoredStrategy:
    """
    A strategy paired with its empirical success frequency.

    Attributes:
        positions: Sorted marker positions
        hits: Number of trials satisfying the success predicate
        n_trials: Number of trials scored
        probability: hits / n_trials
        std_error: Binomial standard error of probability
        degenerate: True when hits or misses are too few for the normal
            approximation to hold (NumericDegenerate annotation)
    """
    positions: Strategy
    hits: int
    n_trials: int
    probability: float = field(init=False)
    std_error: float = field(init=False)
    degenerate: bool = field(init=False)

    def __post_init__(self) -> None:
        p = self.hits / self.n_trials if self.n_trials > 0 else 0.0
        object.__setattr__(self, 'probability', p)
        object.__setattr__(
            self, 'std_error',
            math.sqrt(p * (1.0 - p) / self.n_trials) if self.n_trials > 0 else 0.0
        )
        object.__setattr__(
            self, 'degenerate',
            self.hits < MIN_EXPECTED_HITS
            or self.n_trials - self.hits < MIN_EXPECTED_HITS
        )

    @property
    def sort_key(self) -> Tuple[int, Strategy]:
        """Descending by hits, then ascending by position tuple."""
        return (-self.hits, self.positions)

    def to_dict(self) -> Dict:
        """Convert to serializable dict."""
        return {
            'positions': list(self.positions),
            'hits': self.hits,
            'n_trials': self.n_trials,
            'probability': self.probability,
            'std_error': self.std_error,
            'degenerate': self.degenerate,
        }


@dataclass
class RunConfig:
    """
    Configuration surface for one strategy search.

    Attributes:
        max_position: Last valid landing position on the track
        num_markers: Markers (k) per strategy
        trial_count: Independent walks to simulate
        face_count: Die faces (default 6)
        step_budget: Rolls per trial; None sizes it from tail_probability
        search_ceiling: Highest candidate marker position (C); None means max_position
        success_mode: "any" (hit at least one marker) or "all" (hit every marker)
        adjacency_constraint: Named constraint ("none", "no_adjacent",
            "min_gap:<g>") or a predicate over sorted position tuples
        random_seed: Seed for reproducible runs
        tail_probability: Target P(walk stops short of max_position) when sizing step_budget
        n_shards: Independent sampling shards (one spawned sub-stream each)
        max_workers: Worker pool size for sharded sampling and ranking
        chunk_size: Strategies scored per vectorized block
    """
    max_position: int
    num_markers: int
    trial_count: int
    face_count: int = 6
    step_budget: Optional[int] = None
    search_ceiling: Optional[int] = None
    success_mode: str = "any"
    adjacency_constraint: Union[None, str, StrategyConstraint] = None
    random_seed: Optional[int] = None
    tail_probability: float = 1e-9
    n_shards: int = 1
    max_workers: Optional[int] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    # False when search_ceiling was defaulted from max_position
    ceiling_explicit: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in ('max_position', 'num_markers', 'trial_count', 'face_count',
                     'n_shards', 'chunk_size'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise InvalidConfiguration(
                    f"{name} must be a positive integer, got {value!r}"
                )
        for name in ('step_budget', 'search_ceiling', 'max_workers'):
            value = getattr(self, name)
            if value is None:
                continue
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise InvalidConfiguration(
                    f"{name} must be a positive integer, got {value!r}"
                )
        self.ceiling_explicit = self.search_ceiling is not None
        if self.search_ceiling is None:
            self.search_ceiling = self.max_position
        if self.search_ceiling > self.max_position:
            raise InvalidConfiguration(
                f"search_ceiling ({self.search_ceiling}) cannot exceed "
                f"max_position ({self.max_position})"
            )
        if self.num_markers > self.search_ceiling:
            raise InvalidConfiguration(
                f"num_markers ({self.num_markers}) cannot exceed "
                f"search_ceiling ({self.search_ceiling})"
            )
        if self.success_mode not in SUCCESS_MODES:
            raise InvalidConfiguration(
                f"success_mode must be one of {SUCCESS_MODES}, got {self.success_mode!r}"
            )
        if not 0.0 < self.tail_probability < 1.0:
            raise InvalidConfiguration(
                f"tail_probability must be in (0, 1), got {self.tail_probability}"
            )

    def to_dict(self) -> Dict:
        """Convert to serializable dict (callable constraints are reported by name)."""
        constraint = self.adjacency_constraint
        if callable(constraint):
            constraint = getattr(constraint, '__name__', 'custom')
        return {
            'max_position': self.max_position,
            'num_markers': self.num_markers,
            'trial_count': self.trial_count,
            'face_count': self.face_count,
            'step_budget': self.step_budget,
            'search_ceiling': self.search_ceiling,
            'success_mode': self.success_mode,
            'adjacency_constraint': constraint,
            'random_seed': self.random_seed,
            'tail_probability': self.tail_probability,
            'n_shards': self.n_shards,
            'max_workers': self.max_workers,
            'chunk_size': self.chunk_size,
        }
