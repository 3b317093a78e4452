"""
Core components of allocsim.

This module contains the classifier that routes allocation requests, the
allocator world that owns all simulated state, the trace recorder and the
allocation engine that ties them together.
"""

from .classifier import Classifier
from .world import AllocatorWorld
from .trace import TraceRecorder
from .engine import AllocationEngine

__all__ = [
    "Classifier",
    "AllocatorWorld",
    "TraceRecorder",
    "AllocationEngine",
]
