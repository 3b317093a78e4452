from __future__ import annotations
import logging
from threading import RLock

from ..types.aliases import BlockID, ByteSize, ClassIndex, SpanID
from ..types.records import ArenaView
from ..exceptions import AllocationFailure, CapacityExceeded
from .size_classes import SizeClassTable
from .span import Span

logger = logging.getLogger(__name__)


class Arena:
    """Backing store that commits whole spans and oversized blocks.

    ``reserved_bytes`` grows in page multiples only. ``active_bytes`` tracks
    what live objects actually occupy and never exceeds the reservation.
    The capacity bound is advisory unless ``strict_capacity`` is set.
    """

    __slots__ = (
        '_table', '_page_size', '_total_capacity', '_strict_capacity',
        '_reserved', '_active', '_span_count', '_block_count', '_lock'
    )

    def __init__(
        self,
        table: SizeClassTable,
        page_size: int,
        total_capacity_bytes: int,
        strict_capacity: bool = False
    ):
        self._table = table
        self._page_size = page_size
        self._total_capacity = total_capacity_bytes
        self._strict_capacity = strict_capacity

        self._reserved = 0
        self._active = 0
        self._span_count = 0
        self._block_count = 0
        self._lock = RLock()

    def pages_for(self, size: int) -> int:
        return -(-size // self._page_size)

    def commit_span(self, class_index: ClassIndex) -> Span:
        """Commit one page and carve it into a span for ``class_index``.

        Classes larger than a page take as many pages as one object needs.
        """
        object_size = self._table.class_size(class_index)
        span_bytes = self.pages_for(object_size) * self._page_size

        with self._lock:
            self._reserve(span_bytes)
            self._span_count += 1
            span = Span(
                SpanID(f"S{self._span_count:04d}"),
                class_index,
                object_size,
                span_bytes,
            )

        logger.debug("Committed span %s for class %d (%d slots)",
                     span.span_id, class_index, span.total_slots)
        return span

    def commit_oversized(self, size: ByteSize) -> BlockID:
        """Commit whole pages for a request larger than any size class."""
        if size <= 0:
            raise AllocationFailure(f"Oversized block size must be positive: {size}", requested_size=size)

        with self._lock:
            self._reserve(self.pages_for(size) * self._page_size)
            self._active += size
            self._block_count += 1
            block_id = BlockID(f"B{self._block_count:04d}")

        logger.debug("Committed oversized block %s (%d bytes, %d pages)",
                     block_id, size, self.pages_for(size))
        return block_id

    def account_active(self, delta: int) -> None:
        with self._lock:
            active = self._active + delta
            if not 0 <= active <= self._reserved:
                raise AllocationFailure(
                    f"Active bytes {active} outside reservation 0..{self._reserved}",
                    requested_size=delta,
                )
            self._active = active

    def _reserve(self, amount: int) -> None:
        reserved = self._reserved + amount
        if reserved > self._total_capacity:
            if self._strict_capacity:
                raise CapacityExceeded(
                    f"Reserving {amount} bytes would exceed arena capacity "
                    f"({reserved} > {self._total_capacity})",
                    requested_size=amount,
                    reserved_bytes=self._reserved,
                    total_capacity_bytes=self._total_capacity,
                )
            logger.warning("Arena reservation %d exceeds advisory capacity %d",
                           reserved, self._total_capacity)
        self._reserved = reserved

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def reserved_bytes(self) -> int:
        return self._reserved

    @property
    def active_bytes(self) -> int:
        return self._active

    @property
    def total_capacity_bytes(self) -> int:
        return self._total_capacity

    @property
    def committed_spans(self) -> int:
        return self._span_count

    @property
    def oversized_blocks(self) -> int:
        return self._block_count

    def view(self) -> ArenaView:
        with self._lock:
            return ArenaView(
                reserved_bytes=self._reserved,
                active_bytes=self._active,
                total_capacity_bytes=self._total_capacity,
                committed_spans=self._span_count,
                oversized_blocks=self._block_count,
            )
