"""
Statistics components for allocsim.

This module provides aggregation of completed allocation traces into
per-route and per-tier metrics.
"""

from .statistics import AllocationStatistics, RouteStatistics

__all__ = [
    "AllocationStatistics",
    "RouteStatistics",
]
