"""
Memory tiers of the simulated allocator.

This module provides the size-class table, spans, the per-class central
pools, the backing arena and the single-consumer local cache.
"""

from .size_classes import SizeClassTable
from .span import Span
from .central import CentralPool
from .arena import Arena
from .cache import LocalCache, TinyBlock

__all__ = [
    "SizeClassTable",
    "Span",
    "CentralPool",
    "Arena",
    "LocalCache",
    "TinyBlock",
]
