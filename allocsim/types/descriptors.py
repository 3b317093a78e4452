from __future__ import annotations
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Tuple

from .aliases import BlockID, ByteSize, ClassIndex, EntryID, SpanID
from .enums import Location, RouteKind
from ..exceptions import ConfigError


DEFAULT_SIZE_CLASSES: Tuple[int, ...] = (
    8, 16, 32, 48, 64, 80, 96, 112, 128, 144, 160, 176, 192, 208, 224, 240, 256,
    320, 384, 448, 512, 640, 768, 896, 1024, 1280, 1536, 1792, 2048,
    4096, 8192, 16384, 32768,
)

DEFAULT_PAGE_SIZE = 8192
DEFAULT_PACKED_THRESHOLD = 16
DEFAULT_TOTAL_CAPACITY = 1024 ** 3


@dataclass(frozen=True)
class AllocatorConfig:
    """Tunable constants of a simulated allocator world."""
    size_classes: Tuple[int, ...] = DEFAULT_SIZE_CLASSES
    page_size: int = DEFAULT_PAGE_SIZE
    packed_threshold: int = DEFAULT_PACKED_THRESHOLD
    packed_class_index: int = 1
    total_capacity_bytes: int = DEFAULT_TOTAL_CAPACITY
    strict_capacity: bool = False
    recycle_exhausted_spans: bool = False
    prewarm_classes: int = 0
    prewarm_spans_per_class: int = 2
    journal_size: int = 100

    def __post_init__(self):
        classes = tuple(self.size_classes)
        object.__setattr__(self, 'size_classes', classes)

        if not classes:
            raise ConfigError("Size class table must not be empty")
        if any(not isinstance(size, int) or size <= 0 for size in classes):
            raise ConfigError(f"Size classes must be positive integers: {classes}")
        if any(a >= b for a, b in zip(classes, classes[1:])):
            raise ConfigError(f"Size classes must be strictly increasing: {classes}")

        if self.page_size <= 0:
            raise ConfigError(f"Page size must be positive: {self.page_size}")
        if self.packed_threshold < 1:
            raise ConfigError(f"Packed threshold must be at least 1: {self.packed_threshold}")
        if not 0 <= self.packed_class_index < len(classes):
            raise ConfigError(f"Packed class index out of range: {self.packed_class_index}")
        if classes[self.packed_class_index] < self.packed_threshold - 1:
            raise ConfigError(
                f"Packed class {classes[self.packed_class_index]}B cannot hold values "
                f"below the {self.packed_threshold}B packed threshold"
            )
        if self.total_capacity_bytes <= 0:
            raise ConfigError(f"Total capacity must be positive: {self.total_capacity_bytes}")
        if not 0 <= self.prewarm_classes <= len(classes):
            raise ConfigError(f"Prewarm class count out of range: {self.prewarm_classes}")
        if self.prewarm_spans_per_class < 0:
            raise ConfigError(f"Prewarm span count must not be negative: {self.prewarm_spans_per_class}")
        if self.journal_size < 1:
            raise ConfigError(f"Journal size must be at least 1: {self.journal_size}")

    @property
    def max_class_size(self) -> ByteSize:
        return ByteSize(self.size_classes[-1])

    @property
    def oversized_threshold(self) -> ByteSize:
        return self.max_class_size

    @property
    def packed_class_size(self) -> ByteSize:
        return ByteSize(self.size_classes[self.packed_class_index])

    def with_overrides(self, **overrides: Any) -> AllocatorConfig:
        return replace(self, **overrides)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AllocatorConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(data))


@dataclass(frozen=True)
class AllocationRequest:
    """One already-classified allocation produced by the upstream analysis."""
    name: str
    size: int
    has_pointer: bool = False
    location: Location = Location.DYNAMIC
    requires_dynamic: bool = False
    reason: str = ""

    @property
    def escapes(self) -> bool:
        if self.location == Location.FRAME:
            return self.requires_dynamic
        return self.location == Location.DYNAMIC

    @property
    def location_name(self) -> str:
        if isinstance(self.location, Location):
            return self.location.name.lower()
        return str(self.location)

    def __str__(self) -> str:
        return f"{self.name}({self.size}B, {self.location_name})"


@dataclass(frozen=True, slots=True)
class Route:
    kind: RouteKind
    class_index: Optional[ClassIndex] = None

    @classmethod
    def static(cls) -> Route:
        return cls(RouteKind.STATIC)

    @classmethod
    def frame(cls) -> Route:
        return cls(RouteKind.FRAME)

    @classmethod
    def packed(cls, class_index: int) -> Route:
        return cls(RouteKind.DYNAMIC_PACKED, ClassIndex(class_index))

    @classmethod
    def classed(cls, class_index: int) -> Route:
        return cls(RouteKind.DYNAMIC_CLASSED, ClassIndex(class_index))

    @classmethod
    def oversized(cls) -> Route:
        return cls(RouteKind.DYNAMIC_OVERSIZED)

    def __str__(self) -> str:
        if self.class_index is None:
            return self.kind.name
        return f"{self.kind.name}({self.class_index})"


@dataclass(frozen=True, slots=True)
class Placement:
    """Where a request ended up and how much padding it cost."""
    route: Route
    size: int
    class_size: int = 0
    waste: int = 0
    span_id: Optional[SpanID] = None
    slot: Optional[int] = None
    offset: int = 0
    block_id: Optional[BlockID] = None
    entry_id: Optional[EntryID] = None
