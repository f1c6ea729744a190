"""Shared fixtures: large simulated grids are built once per session."""
import numpy as np
import pytest

from coinwalk.simulation.engine import simulate_walks
from coinwalk.simulation.bounds import compute_step_budget
from coinwalk.occupancy.grid import OccupancyGrid

LARGE_TRIALS = 200000
FACES = 6


@pytest.fixture(scope="session")
def walks_50():
    """200k d6 walks long enough to pass square 50."""
    budget = compute_step_budget(50, FACES, 1e-9)
    return simulate_walks(budget, FACES, LARGE_TRIALS, seed=20240517)


@pytest.fixture(scope="session")
def grid_50(walks_50):
    return OccupancyGrid.from_walks(walks_50, 50)


@pytest.fixture(scope="session")
def grid_20(walks_50):
    """Same trials as grid_50, on a 20-square track."""
    return OccupancyGrid.from_walks(walks_50, 20)


@pytest.fixture
def tiny_walks():
    """Two hand-written walks on a 6-square track."""
    return np.array([
        [1, 3, 6, 7],
        [2, 4, 5, 9],
    ], dtype=np.int32)
