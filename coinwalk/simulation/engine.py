"""
Monte Carlo walk sampler.

Generates independent forward walks as cumulative sums of uniform die rolls.
The random stream is injectable (int seed, SeedSequence, or Generator), and
sharded sampling spawns one independent sub-stream per shard so parallel runs
stay reproducible.
"""

import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Union
import logging

from ..types import InvalidConfiguration

logger = logging.getLogger(__name__)


SeedLike = Union[None, int, np.random.SeedSequence, np.random.Generator]


def simulate_walks(
    step_budget: int,
    face_count: int,
    trial_count: int,
    seed: SeedLike = None
) -> np.ndarray:
    """
    Generate independent random walks.

    Each step is drawn uniformly from 1..face_count independent of all prior
    draws; a trial's value at index i is the sum of draws 0..i.

    Args:
        step_budget: Rolls per trial
        face_count: Die faces
        trial_count: Number of independent trials
        seed: Random seed for reproducibility (accepts int, SeedSequence or Generator)

    Returns:
        walks: [trial_count, step_budget] int32 cumulative positions, strictly
               increasing along each row
    """
    _validate_positive(step_budget=step_budget, face_count=face_count,
                       trial_count=trial_count)

    rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)

    rolls = rng.integers(1, face_count + 1, size=(trial_count, step_budget),
                         dtype=np.int32)
    walks = np.cumsum(rolls, axis=1, dtype=np.int32)

    logger.debug(
        "Sampled %d walks of %d steps (d%d)", trial_count, step_budget, face_count
    )
    return walks


def simulate_walks_sharded(
    step_budget: int,
    face_count: int,
    trial_count: int,
    n_shards: int,
    seed: Optional[Union[int, np.random.SeedSequence]] = None,
    max_workers: Optional[int] = None
) -> List[np.ndarray]:
    """
    Sample walks in independent shards.

    Trials are split into n_shards contiguous ranges whose sizes differ by at
    most one. Each shard draws from its own child of SeedSequence(seed), so
    the result depends only on (seed, n_shards), never on scheduling.

    Args:
        step_budget: Rolls per trial
        face_count: Die faces
        trial_count: Total trials across all shards
        n_shards: Number of shards (clipped to trial_count)
        seed: Root seed (int or SeedSequence)
        max_workers: Thread pool size; None or 1 samples inline

    Returns:
        List of [shard_trials, step_budget] arrays, in shard order
    """
    _validate_positive(step_budget=step_budget, face_count=face_count,
                       trial_count=trial_count, n_shards=n_shards)

    n_shards = min(n_shards, trial_count)
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    children = root.spawn(n_shards)

    base, extra = divmod(trial_count, n_shards)
    shard_sizes = [base + (1 if i < extra else 0) for i in range(n_shards)]

    if max_workers is None or max_workers <= 1 or n_shards == 1:
        shards = [
            simulate_walks(step_budget, face_count, size, child)
            for size, child in zip(shard_sizes, children)
        ]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(simulate_walks, step_budget, face_count, size, child)
                for size, child in zip(shard_sizes, children)
            ]
            # Collect in submission order, not completion order
            shards = [f.result() for f in futures]

    logger.info(
        "Sampled %d walks in %d shards (%d steps, d%d)",
        trial_count, n_shards, step_budget, face_count
    )
    return shards


def _validate_positive(**values: int) -> None:
    for name, value in values.items():
        if value <= 0:
            raise InvalidConfiguration(f"{name} must be positive, got {value}")
