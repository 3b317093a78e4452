"""
Allocator world for allocsim.

The world owns every piece of mutable allocator state: the static region,
the frame stack, the local cache, one central pool per size class and the
arena behind them. Engines receive a world explicitly; nothing here is a
process-wide singleton.
"""

from __future__ import annotations
import logging
from typing import List, Optional, Tuple

from ..types.aliases import ByteSize, ClassIndex, EntryID
from ..types.descriptors import AllocatorConfig
from ..types.records import RegionEntry, WorldSnapshot
from ..memory.arena import Arena
from ..memory.cache import LocalCache
from ..memory.central import CentralPool
from ..memory.size_classes import SizeClassTable

logger = logging.getLogger(__name__)


class AllocatorWorld:
    """All allocator state for one simulated run."""

    __slots__ = ('_config', '_table', '_arena', '_centrals', '_cache',
                 '_static_region', '_frame_stack', '_entry_count')

    def __init__(self, config: Optional[AllocatorConfig] = None):
        self._config = config or AllocatorConfig()
        self._table = SizeClassTable(self._config.size_classes)
        self._arena = Arena(
            self._table,
            self._config.page_size,
            self._config.total_capacity_bytes,
            strict_capacity=self._config.strict_capacity,
        )
        self._centrals: Tuple[CentralPool, ...] = tuple(
            CentralPool(ClassIndex(index), ByteSize(size))
            for index, size in enumerate(self._table)
        )
        self._cache = LocalCache(len(self._table), recycle_exhausted=self._config.recycle_exhausted_spans)
        self._static_region: List[RegionEntry] = []
        self._frame_stack: List[RegionEntry] = []
        self._entry_count = 0

        self._prewarm()

    def _prewarm(self) -> None:
        for index in range(self._config.prewarm_classes):
            for _ in range(self._config.prewarm_spans_per_class):
                self._centrals[index].add_span(self._arena.commit_span(ClassIndex(index)))

        if self._config.prewarm_classes:
            logger.info("Prewarmed %d classes with %d spans each (%d bytes reserved)",
                        self._config.prewarm_classes, self._config.prewarm_spans_per_class,
                        self._arena.reserved_bytes)

    def _next_entry(self, name: str, size: int) -> RegionEntry:
        self._entry_count += 1
        return RegionEntry(EntryID(f"E{self._entry_count:04d}"), name, size)

    def place_static(self, name: str, size: int) -> RegionEntry:
        entry = self._next_entry(name, size)
        self._static_region.append(entry)
        return entry

    def place_frame(self, name: str, size: int) -> RegionEntry:
        entry = self._next_entry(name, size)
        self._frame_stack.append(entry)
        return entry

    def central_for(self, class_index: int) -> CentralPool:
        return self._centrals[class_index]

    @property
    def config(self) -> AllocatorConfig:
        return self._config

    @property
    def table(self) -> SizeClassTable:
        return self._table

    @property
    def arena(self) -> Arena:
        return self._arena

    @property
    def cache(self) -> LocalCache:
        return self._cache

    @property
    def centrals(self) -> Tuple[CentralPool, ...]:
        return self._centrals

    @property
    def static_region(self) -> Tuple[RegionEntry, ...]:
        return tuple(self._static_region)

    @property
    def frame_stack(self) -> Tuple[RegionEntry, ...]:
        return tuple(self._frame_stack)

    def snapshot(self) -> WorldSnapshot:
        return WorldSnapshot(
            static_region=tuple(self._static_region),
            frame_stack=tuple(self._frame_stack),
            cache=self._cache.views(),
            central=tuple(central.view() for central in self._centrals),
            arena=self._arena.view(),
        )
