"""
Position-indexed occupancy grid.

Converts a batch of walks into a dense boolean matrix indexed by
(position, trial): cell [p, t] is True iff trial t landed exactly on p.
Rows are positions so per-position queries are contiguous views.

The grid is fully populated before it is exposed and is read-only after
construction; concurrent readers need no locking.
"""

import numpy as np
from typing import Iterable, List, Optional, Sequence
import logging

from ..types import InvalidConfiguration

logger = logging.getLogger(__name__)

# Trials per block when accumulating co-occurrence counts
CO_OCCURRENCE_BLOCK = 65536


class OccupancyGrid:
    """
    Immutable occupancy matrix over positions 0..max_position.

    Row 0 is the start position and is True for every trial. Candidate
    markers live in rows 1..max_position.

    Attributes:
        matrix: [max_position + 1, n_trials] read-only bool array
    """

    def __init__(self, matrix: np.ndarray):
        if matrix.ndim != 2 or matrix.dtype != np.bool_:
            raise ValueError("Occupancy matrix must be a 2-D bool array")
        if matrix.shape[1] == 0:
            raise InvalidConfiguration("Occupancy grid needs at least one trial")
        matrix.flags.writeable = False
        self._matrix = matrix
        self._co_occurrence: Optional[np.ndarray] = None

    @classmethod
    def from_walks(cls, walks: np.ndarray, max_position: int) -> 'OccupancyGrid':
        """
        Build a grid from [n_trials, step_budget] cumulative positions.

        Positions beyond max_position are discarded. Marking is a boolean
        assignment, so a position recorded twice for the same trial is still
        one hit.

        Args:
            walks: [n_trials, step_budget] int cumulative positions
            max_position: Last valid landing position

        Returns:
            OccupancyGrid
        """
        if max_position <= 0:
            raise InvalidConfiguration(
                f"max_position must be positive, got {max_position}"
            )
        if walks.ndim != 2:
            raise ValueError(f"walks must be 2-D [n_trials, steps], got shape {walks.shape}")

        n_trials = walks.shape[0]
        matrix = np.zeros((max_position + 1, n_trials), dtype=np.bool_)
        matrix[0, :] = True

        on_track = (walks >= 1) & (walks <= max_position)
        trial_idx, _ = np.nonzero(on_track)
        matrix[walks[on_track], trial_idx] = True

        logger.info(
            "Built occupancy grid: %d positions x %d trials", max_position, n_trials
        )
        return cls(matrix)

    @classmethod
    def from_shards(cls, grids: Sequence['OccupancyGrid']) -> 'OccupancyGrid':
        """
        Merge grids built from disjoint trial ranges.

        Columns are concatenated in the given order.
        """
        if not grids:
            raise ValueError("Need at least one grid to merge")
        max_positions = {g.max_position for g in grids}
        if len(max_positions) != 1:
            raise ValueError(
                f"Cannot merge grids with different max_position: {sorted(max_positions)}"
            )
        merged = np.concatenate([g.matrix for g in grids], axis=1)
        return cls(merged)

    @classmethod
    def from_walk_shards(
        cls,
        shards: Iterable[np.ndarray],
        max_position: int
    ) -> 'OccupancyGrid':
        """Build one grid per walk shard, then merge."""
        return cls.from_shards([cls.from_walks(w, max_position) for w in shards])

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    @property
    def max_position(self) -> int:
        return self._matrix.shape[0] - 1

    @property
    def n_trials(self) -> int:
        return self._matrix.shape[1]

    def hits(self, position: int) -> np.ndarray:
        """[n_trials] bool view: which trials landed on position."""
        self._check_positions([position])
        return self._matrix[position]

    def hit_counts(self) -> np.ndarray:
        """[max_position + 1] int64 trials landing on each position."""
        return self._matrix.sum(axis=1, dtype=np.int64)

    def marginals(self) -> np.ndarray:
        """[max_position + 1] empirical landing frequency per position."""
        return self.hit_counts() / self.n_trials

    def any_hit_count(self, positions: Sequence[int]) -> int:
        """Trials landing on at least one of positions."""
        rows = self._rows(positions)
        return int(np.any(rows, axis=0).sum())

    def all_hit_count(self, positions: Sequence[int]) -> int:
        """Trials landing on every one of positions."""
        rows = self._rows(positions)
        return int(np.all(rows, axis=0).sum())

    def co_occurrence(self) -> np.ndarray:
        """
        [max_position + 1, max_position + 1] intersection counts.

        Entry [a, b] is the number of trials landing on both a and b; the
        diagonal equals hit_counts(). Computed once and cached read-only.
        """
        if self._co_occurrence is None:
            n_rows = self.max_position + 1
            acc = np.zeros((n_rows, n_rows), dtype=np.float64)
            # float64 BLAS products are exact for counts below 2**53
            for start in range(0, self.n_trials, CO_OCCURRENCE_BLOCK):
                block = self._matrix[:, start:start + CO_OCCURRENCE_BLOCK].astype(np.float64)
                acc += block @ block.T
            co = np.rint(acc).astype(np.int64)
            co.flags.writeable = False
            self._co_occurrence = co
            logger.debug("Computed %dx%d co-occurrence matrix", *co.shape)
        return self._co_occurrence

    def _rows(self, positions: Sequence[int]) -> np.ndarray:
        positions = list(positions)
        if not positions:
            raise ValueError("positions must be non-empty")
        self._check_positions(positions)
        return self._matrix[positions]

    def _check_positions(self, positions: List[int]) -> None:
        for p in positions:
            if p < 0 or p > self.max_position:
                raise IndexError(
                    f"Position {p} outside grid range [0, {self.max_position}]"
                )

    def __repr__(self) -> str:
        return f"OccupancyGrid(max_position={self.max_position}, n_trials={self.n_trials})"
