"""
allocsim - Tiered Allocation Decision Simulator

A simulator of how an automatically-managed runtime places values: in a
static region, in an execution frame, or in a tiered dynamic allocator
made of a per-consumer local cache, per-class central pools and a backing
arena that commits whole pages.

Key Features:
- Size-class routing with packed, class-based and oversized strategies
- Span cascade from local cache to central pool to arena, traced phase by phase
- Reserved vs. active byte accounting with an optional hard capacity bound
- Read-only snapshots of the whole allocator world between requests
- JSON request decoding and trace/snapshot encoding
- Per-route allocation statistics
"""

from __future__ import annotations

__version__ = "1.0.0"
__license__ = "MIT"

# Core components
from .core.engine import AllocationEngine
from .core.world import AllocatorWorld
from .core.classifier import Classifier
from .core.trace import TraceRecorder
from .factory import (
    create_engine,
    create_runtime_like_engine,
    create_strict_engine,
    get_default_config,
)

# Memory tiers
from .memory import (
    Arena,
    CentralPool,
    LocalCache,
    SizeClassTable,
    Span,
)

# Codecs
from .codecs.codec import RequestCodec

# Statistics
from .profiling.statistics import AllocationStatistics

# Types and descriptors
from .types.descriptors import (
    AllocationRequest,
    AllocatorConfig,
    Placement,
    Route,
)
from .types.enums import (
    EngineState,
    Location,
    RouteKind,
    TracePhase,
)
from .types.records import (
    Failure,
    Rejection,
    RunReport,
    TraceEntry,
    TraceSegment,
    WorldSnapshot,
)
from .types.protocols import ITraceObserver

# Exceptions
from .exceptions import (
    AllocSimError,
    AllocationFailure,
    CapacityExceeded,
    ConfigError,
    ExhaustedSpan,
    InvalidRequest,
    OversizedArenaFailure,
)

# Public API
__all__ = [
    # Core components
    "AllocationEngine",
    "AllocatorWorld",
    "Classifier",
    "TraceRecorder",
    "create_engine",
    "create_runtime_like_engine",
    "create_strict_engine",
    "get_default_config",

    # Memory tiers
    "Arena",
    "CentralPool",
    "LocalCache",
    "SizeClassTable",
    "Span",

    # Codecs
    "RequestCodec",

    # Statistics
    "AllocationStatistics",

    # Types
    "AllocationRequest",
    "AllocatorConfig",
    "Placement",
    "Route",
    "EngineState",
    "Location",
    "RouteKind",
    "TracePhase",
    "Failure",
    "Rejection",
    "RunReport",
    "TraceEntry",
    "TraceSegment",
    "WorldSnapshot",
    "ITraceObserver",

    # Exceptions
    "AllocSimError",
    "AllocationFailure",
    "CapacityExceeded",
    "ConfigError",
    "ExhaustedSpan",
    "InvalidRequest",
    "OversizedArenaFailure",
]

# Version info
VERSION_INFO = tuple(map(int, __version__.split('.')))

def get_version() -> str:
    """Get the current version string."""
    return __version__

def get_version_info() -> tuple[int, ...]:
    """Get version as tuple of integers."""
    return VERSION_INFO
