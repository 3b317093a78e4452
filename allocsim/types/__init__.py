"""
Type definitions and protocols for allocsim.

This module provides type definitions, protocols, and data structures
used throughout allocsim for type safety and clarity.
"""

from .descriptors import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SIZE_CLASSES,
    AllocationRequest,
    AllocatorConfig,
    Placement,
    Route,
)
from .enums import (
    EngineState,
    RefillStep,
    Location,
    RouteKind,
    TracePhase,
)
from .records import (
    ArenaView,
    CentralView,
    Failure,
    RegionEntry,
    Rejection,
    RunReport,
    SpanView,
    TraceEntry,
    TraceSegment,
    WorldSnapshot,
)
from .protocols import (
    ISpanProvider,
    ITraceObserver,
)
from .aliases import (
    BlockID,
    ByteSize,
    ClassIndex,
    EntryID,
    SpanID,
)

__all__ = [
    # Descriptors
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_SIZE_CLASSES",
    "AllocationRequest",
    "AllocatorConfig",
    "Placement",
    "Route",

    # Enums
    "EngineState",
    "RefillStep",
    "Location",
    "RouteKind",
    "TracePhase",

    # Records
    "ArenaView",
    "CentralView",
    "Failure",
    "RegionEntry",
    "Rejection",
    "RunReport",
    "SpanView",
    "TraceEntry",
    "TraceSegment",
    "WorldSnapshot",

    # Protocols
    "ISpanProvider",
    "ITraceObserver",

    # Type aliases
    "BlockID",
    "ByteSize",
    "ClassIndex",
    "EntryID",
    "SpanID",
]
