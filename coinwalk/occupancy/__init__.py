"""Occupancy grid construction and queries."""

from .grid import OccupancyGrid

__all__ = ["OccupancyGrid"]
