"""
Allocation statistics for allocsim.

This module aggregates completed trace segments into per-route counters
and cascade metrics: how often the local cache served a request, how often
the central pool and the arena had to step in, and how much class padding
the allocations wasted.
"""

from __future__ import annotations
import json
from collections import defaultdict
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Optional

from ..types.enums import RouteKind, TracePhase
from ..types.records import TraceSegment


@dataclass
class RouteStatistics:
    """Aggregated figures for one route kind."""
    route_name: str
    count: int = 0
    requested_bytes: int = 0
    placed_bytes: int = 0
    waste_bytes: int = 0
    min_size: Optional[int] = None
    max_size: int = 0

    def update(self, segment: TraceSegment) -> None:
        placement = segment.placement
        self.count += 1
        self.requested_bytes += placement.size
        self.placed_bytes += placement.class_size or placement.size
        self.waste_bytes += placement.waste
        self.min_size = placement.size if self.min_size is None else min(self.min_size, placement.size)
        self.max_size = max(self.max_size, placement.size)

    @property
    def avg_size(self) -> float:
        return self.requested_bytes / self.count if self.count else 0.0


class AllocationStatistics:
    """Running statistics over every request an engine has processed."""

    def __init__(self):
        self._routes: Dict[RouteKind, RouteStatistics] = {}
        self._counters: Dict[str, int] = defaultdict(int)
        self._lock = RLock()

    def record(self, segment: TraceSegment) -> None:
        kind = segment.route.kind
        phases = segment.phases

        with self._lock:
            if kind not in self._routes:
                self._routes[kind] = RouteStatistics(kind.name)
            self._routes[kind].update(segment)

            if kind in (RouteKind.DYNAMIC_PACKED, RouteKind.DYNAMIC_CLASSED):
                if TracePhase.CENTRAL_CHECK in phases:
                    self._counters['cache_misses'] += 1
                else:
                    self._counters['cache_hits'] += 1
                if TracePhase.ARENA_GRANT in phases:
                    self._counters['span_grants'] += 1
            elif kind == RouteKind.DYNAMIC_OVERSIZED:
                self._counters['oversized_grants'] += 1

            if kind.is_dynamic:
                self._counters['escapes'] += 1

    def record_rejection(self) -> None:
        with self._lock:
            self._counters['rejections'] += 1

    def record_failure(self) -> None:
        with self._lock:
            self._counters['failures'] += 1

    def route(self, kind: RouteKind) -> RouteStatistics:
        with self._lock:
            return self._routes.get(kind) or RouteStatistics(kind.name)

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    @property
    def total_requests(self) -> int:
        with self._lock:
            return sum(stats.count for stats in self._routes.values())

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'total_requests': self.total_requests,
                'routes': {
                    kind.name: {
                        'count': stats.count,
                        'requested_bytes': stats.requested_bytes,
                        'placed_bytes': stats.placed_bytes,
                        'waste_bytes': stats.waste_bytes,
                        'avg_size': stats.avg_size,
                        'min_size': stats.min_size,
                        'max_size': stats.max_size,
                    }
                    for kind, stats in sorted(self._routes.items())
                },
                'cascade': {
                    name: self._counters.get(name, 0)
                    for name in ('cache_hits', 'cache_misses', 'span_grants', 'oversized_grants',
                                 'escapes', 'rejections', 'failures')
                },
            }

    def export(self, format: str = 'dict') -> Any:
        summary = self.get_summary()
        if format == 'dict':
            return summary
        elif format == 'json':
            return json.dumps(summary, indent=2)
        else:
            raise ValueError(f"Unsupported export format: {format}")

    def clear(self) -> None:
        with self._lock:
            self._routes.clear()
            self._counters.clear()
