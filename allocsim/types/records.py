"""
Trace and snapshot records for allocsim.

Everything the engine hands to a presentation layer is immutable: trace
entries describe one phase of one request, and snapshots capture the whole
world between requests.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .aliases import ClassIndex, EntryID, SpanID
from .descriptors import AllocationRequest, Placement, Route
from .enums import TracePhase


@dataclass(frozen=True, slots=True)
class TraceEntry:
    phase: TracePhase
    message: str

    def __str__(self) -> str:
        return f"[{self.phase.name}] {self.message}"


@dataclass(frozen=True)
class TraceSegment:
    """All trace entries produced while processing a single request."""
    request: AllocationRequest
    route: Route
    entries: Tuple[TraceEntry, ...]
    placement: Placement

    @property
    def phases(self) -> Tuple[TracePhase, ...]:
        return tuple(entry.phase for entry in self.entries)

    def __iter__(self) -> Iterator[TraceEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True, slots=True)
class RegionEntry:
    entry_id: EntryID
    name: str
    size: int


@dataclass(frozen=True, slots=True)
class SpanView:
    class_index: ClassIndex
    class_size: int
    span_id: SpanID
    total_slots: int
    free_slots: int
    occupancy: Tuple[bool, ...]

    @property
    def used_slots(self) -> int:
        return self.total_slots - self.free_slots

    @property
    def utilization(self) -> float:
        return self.used_slots / self.total_slots


@dataclass(frozen=True, slots=True)
class CentralView:
    class_index: ClassIndex
    class_size: int
    non_empty: int
    empty: int


@dataclass(frozen=True, slots=True)
class ArenaView:
    reserved_bytes: int
    active_bytes: int
    total_capacity_bytes: int
    committed_spans: int
    oversized_blocks: int

    @property
    def usage_ratio(self) -> float:
        return self.reserved_bytes / self.total_capacity_bytes

    @property
    def padding_bytes(self) -> int:
        return self.reserved_bytes - self.active_bytes

    @property
    def over_capacity(self) -> bool:
        return self.reserved_bytes > self.total_capacity_bytes


@dataclass(frozen=True)
class WorldSnapshot:
    static_region: Tuple[RegionEntry, ...]
    frame_stack: Tuple[RegionEntry, ...]
    cache: Tuple[SpanView, ...]
    central: Tuple[CentralView, ...]
    arena: ArenaView

    def cached_span(self, class_index: int) -> Optional[SpanView]:
        for view in self.cache:
            if view.class_index == class_index:
                return view
        return None

    def central_for(self, class_index: int) -> CentralView:
        return self.central[class_index]


@dataclass(frozen=True, slots=True)
class Rejection:
    request: AllocationRequest
    reason: str


@dataclass(frozen=True, slots=True)
class Failure:
    """A request that passed classification but was aborted while placing."""
    request: AllocationRequest
    reason: str
    error: str


@dataclass(frozen=True)
class RunReport:
    segments: Tuple[TraceSegment, ...]
    rejections: Tuple[Rejection, ...]
    failures: Tuple[Failure, ...] = ()

    @property
    def processed(self) -> int:
        return len(self.segments)

    @property
    def entries(self) -> Tuple[TraceEntry, ...]:
        return tuple(entry for segment in self.segments for entry in segment)
