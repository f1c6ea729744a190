"""
Strategy scoring against an occupancy grid.

Scores each candidate strategy by the fraction of trials satisfying the
success predicate:
- any: the walk landed on at least one marker (OR across rows)
- all: the walk landed on every marker (AND across rows)

Positions within a trial are correlated, so scores always come from the
grid itself. For k=2 a closed-form path uses per-position counts and the
co-occurrence matrix: |A or B| = |A| + |B| - |A and B|, O(1) per pair.
For k >= 3 every strategy is scanned directly.

Streaming: candidates are scored in chunks and discarded, so peak scratch
memory is O(chunk x n_trials) regardless of the size of the search space.
"""

import heapq
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Iterator, List, Optional
import logging
import time

from ..occupancy.grid import OccupancyGrid
from ..types import (
    InvalidConfiguration, ScoredStrategy, Strategy, StrategyConstraint,
    SUCCESS_MODES, DEFAULT_CHUNK_SIZE
)
from .enumeration import enumerate_strategies, iter_chunks, count_strategies

logger = logging.getLogger(__name__)

# Upper bound on the [chunk, n_trials] bool scratch block
MAX_BLOCK_BYTES = 64 * 1024 * 1024


class StrategyEvaluator:
    """
    Scores strategies as a pure function of a read-only OccupancyGrid.

    Args:
        grid: Occupancy grid built from the sampled walks
    """

    def __init__(self, grid: OccupancyGrid):
        self.grid = grid

    @property
    def n_trials(self) -> int:
        return self.grid.n_trials

    # -------------------------------------------------------------------------
    # Single-strategy scoring
    # -------------------------------------------------------------------------

    def score_any_hit(self, strategy: Iterable[int]) -> float:
        """Fraction of trials landing on at least one position in strategy."""
        return self.count(strategy, "any") / self.n_trials

    def score_all_hit(self, strategy: Iterable[int]) -> float:
        """Fraction of trials landing on every position in strategy."""
        return self.count(strategy, "all") / self.n_trials

    def score(self, strategy: Iterable[int], mode: str = "any") -> ScoredStrategy:
        """Score one strategy under mode, with its sampling annotation."""
        positions = self._check_strategy(strategy)
        return ScoredStrategy(
            positions=positions,
            hits=self.count(positions, mode),
            n_trials=self.n_trials
        )

    def count(self, strategy: Iterable[int], mode: str = "any") -> int:
        """Number of trials satisfying mode for strategy."""
        _check_mode(mode)
        positions = self._check_strategy(strategy)
        if mode == "any":
            return self.grid.any_hit_count(positions)
        return self.grid.all_hit_count(positions)

    # -------------------------------------------------------------------------
    # Pairwise closed form
    # -------------------------------------------------------------------------

    def pair_intersection_count(self, a: int, b: int) -> int:
        """Trials landing on both a and b."""
        self._check_strategy((a, b))
        return int(self.grid.co_occurrence()[a, b])

    def pair_union_count(self, a: int, b: int) -> int:
        """Trials landing on a or b, as count_a + count_b - count_ab."""
        self._check_strategy((a, b))
        co = self.grid.co_occurrence()
        return int(co[a, a] + co[b, b] - co[a, b])

    # -------------------------------------------------------------------------
    # Ranking
    # -------------------------------------------------------------------------

    def rank_strategies(
        self,
        k: int,
        ceiling: int,
        mode: str = "any",
        constraint: Optional[StrategyConstraint] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_workers: Optional[int] = None,
        use_pair_fast_path: bool = True,
        top_n: Optional[int] = None
    ) -> List[ScoredStrategy]:
        """
        Score every valid strategy and rank them.

        Order is descending by score, ties broken by ascending position tuple.
        Since every score shares the same denominator, ranking is done on the
        integer hit counts and is exact.

        Args:
            k: Markers per strategy
            ceiling: Highest candidate position (C), at most grid.max_position
            mode: "any" or "all"
            constraint: Optional predicate over sorted position tuples
            chunk_size: Strategies per vectorized block (further capped by
                        MAX_BLOCK_BYTES)
            max_workers: Thread pool size for chunk scoring; None scores inline
            use_pair_fast_path: For k=2, use the co-occurrence closed form
            top_n: Keep only the best top_n results (None keeps all)

        Returns:
            Ranked list of ScoredStrategy
        """
        _check_mode(mode)
        n_candidates = count_strategies(k, ceiling)
        if ceiling > self.grid.max_position:
            raise InvalidConfiguration(
                f"ceiling ({ceiling}) cannot exceed grid max_position "
                f"({self.grid.max_position})"
            )
        if top_n is not None and top_n <= 0:
            raise InvalidConfiguration(f"top_n must be positive, got {top_n}")

        strategies = enumerate_strategies(k, ceiling, constraint)
        pair_path = use_pair_fast_path and k == 2

        if pair_path:
            # Build the cached matrix before any worker reads it
            self.grid.co_occurrence()
            score_chunk = self._score_pair_chunk
            block_size = chunk_size
        else:
            score_chunk = self._score_scan_chunk
            block_size = max(1, min(chunk_size, MAX_BLOCK_BYTES // max(self.n_trials, 1)))

        logger.info(
            "Ranking up to %d strategies (k=%d, C=%d, mode=%s, %s path, chunk=%d)",
            n_candidates, k, ceiling, mode,
            "pairwise" if pair_path else "scan", block_size
        )
        t0 = time.time()

        scored = self._score_stream(strategies, mode, score_chunk, block_size, max_workers)

        if top_n is not None:
            ranked = heapq.nsmallest(top_n, scored, key=lambda s: s.sort_key)
        else:
            ranked = sorted(scored, key=lambda s: s.sort_key)

        logger.info(
            "Ranked %d strategies in %.2fs", len(ranked), time.time() - t0
        )
        return ranked

    def _score_stream(
        self,
        strategies: Iterator[Strategy],
        mode: str,
        score_chunk,
        block_size: int,
        max_workers: Optional[int]
    ) -> Iterator[ScoredStrategy]:
        chunks = iter_chunks(strategies, block_size)

        if max_workers is None or max_workers <= 1:
            for chunk in chunks:
                yield from self._wrap(chunk, score_chunk(chunk, mode))
            return

        # Bounded in-flight window keeps memory O(max_workers x block)
        max_in_flight = max_workers * 2
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            in_flight = []
            for chunk in chunks:
                in_flight.append((chunk, executor.submit(score_chunk, chunk, mode)))
                if len(in_flight) >= max_in_flight:
                    done_chunk, future = in_flight.pop(0)
                    yield from self._wrap(done_chunk, future.result())
            for done_chunk, future in in_flight:
                yield from self._wrap(done_chunk, future.result())

    def _wrap(self, chunk: List[Strategy], hits: np.ndarray) -> Iterator[ScoredStrategy]:
        n_trials = self.n_trials
        for positions, h in zip(chunk, hits.tolist()):
            yield ScoredStrategy(positions=positions, hits=h, n_trials=n_trials)

    def _score_scan_chunk(self, chunk: List[Strategy], mode: str) -> np.ndarray:
        """Direct scan: OR/AND rows column by column, then count per strategy."""
        idx = np.asarray(chunk, dtype=np.intp)  # [n, k]
        matrix = self.grid.matrix
        acc = matrix[idx[:, 0]].copy()  # [n, n_trials]
        for j in range(1, idx.shape[1]):
            if mode == "any":
                acc |= matrix[idx[:, j]]
            else:
                acc &= matrix[idx[:, j]]
        return acc.sum(axis=1, dtype=np.int64)

    def _score_pair_chunk(self, chunk: List[Strategy], mode: str) -> np.ndarray:
        """Closed form for pairs from the co-occurrence matrix."""
        idx = np.asarray(chunk, dtype=np.intp)
        co = self.grid.co_occurrence()
        a, b = idx[:, 0], idx[:, 1]
        both = co[a, b]
        if mode == "all":
            return both
        return co[a, a] + co[b, b] - both

    def _check_strategy(self, strategy: Iterable[int]) -> Strategy:
        positions = tuple(sorted(int(p) for p in strategy))
        if not positions:
            raise InvalidConfiguration("Strategy must contain at least one position")
        if len(set(positions)) != len(positions):
            raise InvalidConfiguration(f"Strategy positions must be distinct: {positions}")
        if positions[0] < 1 or positions[-1] > self.grid.max_position:
            raise InvalidConfiguration(
                f"Strategy {positions} outside marker range [1, {self.grid.max_position}]"
            )
        return positions


def _check_mode(mode: str) -> None:
    if mode not in SUCCESS_MODES:
        raise InvalidConfiguration(f"mode must be one of {SUCCESS_MODES}, got {mode!r}")
