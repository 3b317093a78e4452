from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from ..types.aliases import ClassIndex, SpanID
from ..types.enums import RefillStep
from ..types.protocols import ISpanProvider
from ..types.records import SpanView
from ..exceptions import ExhaustedSpan
from .central import CentralPool
from .span import Span

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TinyBlock:
    """Slot of the packed class currently being filled with sub-slot values."""
    span_id: SpanID
    slot: int
    block_size: int
    offset: int = 0


def tiny_alignment(size: int) -> int:
    if size & 7 == 0:
        return 8
    if size & 3 == 0:
        return 4
    if size & 1 == 0:
        return 2
    return 1


class LocalCache:
    """Single-consumer front end holding at most one span per size class.

    A span held here is owned exclusively by the cache. When it runs out of
    slots it is dropped on the next refill, or handed back to its central
    pool's ``empty`` list when ``recycle_exhausted`` is set.
    """

    __slots__ = ('_spans', '_recycle_exhausted', '_tiny', '_hits', '_misses')

    def __init__(self, class_count: int, recycle_exhausted: bool = False):
        self._spans: List[Optional[Span]] = [None] * class_count
        self._recycle_exhausted = recycle_exhausted
        self._tiny: Optional[TinyBlock] = None
        self._hits = 0
        self._misses = 0

    def has_free_span(self, class_index: ClassIndex) -> bool:
        span = self._spans[class_index]
        return span is not None and not span.is_exhausted

    def refill_steps(
        self,
        class_index: ClassIndex,
        central: CentralPool,
        arena: ISpanProvider
    ) -> Iterator[Tuple[RefillStep, Optional[Span]]]:
        """Refill ``class_index`` one observable step at a time.

        Yields nothing when the cached span still has free slots. Otherwise
        yields ``CENTRAL_REQUEST`` before touching the central pool,
        ``ARENA_GRANT`` with the new span if the pool had to commit one, and
        ``INSTALLED`` with the span now cached.
        """
        if self.has_free_span(class_index):
            self._hits += 1
            return

        self._misses += 1
        yield RefillStep.CENTRAL_REQUEST, self._spans[class_index]

        granted = central.refill_from_arena(arena)
        if granted is not None:
            yield RefillStep.ARENA_GRANT, granted

        span = central.try_take_span()
        if span is None:
            raise ExhaustedSpan(
                f"Central pool {class_index} produced no span after refill",
                class_index=class_index,
            )

        previous = self._spans[class_index]
        if previous is not None and self._recycle_exhausted:
            central.add_span(previous)
        self._spans[class_index] = span

        logger.debug("Local cache class %d now holds span %s (%d free)",
                     class_index, span.span_id, span.free_slots)
        yield RefillStep.INSTALLED, span

    def ensure_span(self, class_index: ClassIndex, central: CentralPool, arena: ISpanProvider) -> Span:
        for _step in self.refill_steps(class_index, central, arena):
            pass
        return self._spans[class_index]

    def claim_slot(self, class_index: ClassIndex) -> int:
        span = self._spans[class_index]
        if span is None:
            raise ExhaustedSpan(
                f"No span cached for class {class_index}; ensure_span must run first",
                class_index=class_index,
            )
        return span.claim()

    def span_for(self, class_index: ClassIndex) -> Optional[Span]:
        return self._spans[class_index]

    def try_pack(self, size: int) -> Optional[TinyBlock]:
        """Fit ``size`` bytes into the current tiny block if it has room.

        Returns the block with ``offset`` set to where the value landed.
        """
        tiny = self._tiny
        if tiny is None:
            return None

        align = tiny_alignment(size)
        offset = -(-tiny.offset // align) * align
        if offset + size > tiny.block_size:
            return None

        tiny.offset = offset + size
        return TinyBlock(tiny.span_id, tiny.slot, tiny.block_size, offset)

    def start_tiny_block(self, span_id: SpanID, slot: int, block_size: int, size: int) -> TinyBlock:
        self._tiny = TinyBlock(span_id, slot, block_size, size)
        return TinyBlock(span_id, slot, block_size, 0)

    @property
    def tiny_block(self) -> Optional[TinyBlock]:
        return self._tiny

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    def views(self) -> Tuple[SpanView, ...]:
        return tuple(
            SpanView(
                class_index=span.class_index,
                class_size=span.object_size,
                span_id=span.span_id,
                total_slots=span.total_slots,
                free_slots=span.free_slots,
                occupancy=span.occupancy_tuple(),
            )
            for span in self._spans
            if span is not None
        )
