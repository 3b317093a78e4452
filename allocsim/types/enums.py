"""
Enumeration types for allocsim.

This module defines the closed sets of tags used throughout the library:
where a request asks to live, which route the classifier picked, the
phases a trace can report and the states of the allocation engine.
"""

from enum import IntEnum


class Location(IntEnum):
    """Placement requested by the upstream analysis."""
    STATIC = 0
    FRAME = 1
    DYNAMIC = 2


class RouteKind(IntEnum):
    """Placement strategies chosen by the classifier."""
    STATIC = 0
    FRAME = 1
    DYNAMIC_PACKED = 2
    DYNAMIC_CLASSED = 3
    DYNAMIC_OVERSIZED = 4

    @property
    def is_dynamic(self) -> bool:
        return self >= RouteKind.DYNAMIC_PACKED


class TracePhase(IntEnum):
    """Phases reported in a trace segment."""
    CLASSIFY = 0
    STATIC = 1
    FRAME = 2
    ESCAPE = 3
    CACHE_CHECK = 4
    CENTRAL_CHECK = 5
    ARENA_GRANT = 6
    REFILL = 7
    COMMIT = 8


class RefillStep(IntEnum):
    """Observable steps of a local cache refill."""
    CENTRAL_REQUEST = 0
    ARENA_GRANT = 1
    INSTALLED = 2


class EngineState(IntEnum):
    """States of the allocation engine while it works on one request."""
    IDLE = 0
    CLASSIFYING = 1
    PLACING_STATIC = 2
    PLACING_FRAME = 3
    ESCAPING = 4
    ROUTING_CACHE = 5
    ROUTING_CENTRAL = 6
    ROUTING_ARENA = 7
    PLACING_OVERSIZED = 8
    COMMITTING = 9
