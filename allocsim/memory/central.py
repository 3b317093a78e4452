from __future__ import annotations
import logging
from collections import deque
from threading import RLock
from typing import Deque, Optional

from ..types.aliases import ByteSize, ClassIndex
from ..types.protocols import ISpanProvider
from ..types.records import CentralView
from .span import Span

logger = logging.getLogger(__name__)


class CentralPool:
    """Shared reservoir of spans for one size class.

    Spans with free slots sit in ``non_empty``; spans with none sit in
    ``empty``. Local caches take from the head of ``non_empty`` and the pool
    refills itself from the arena only when ``non_empty`` has run dry.
    """

    __slots__ = ('_class_index', '_object_size', '_non_empty', '_empty', '_lock', '_arena_refills')

    def __init__(self, class_index: ClassIndex, object_size: ByteSize):
        self._class_index = class_index
        self._object_size = object_size
        self._non_empty: Deque[Span] = deque()
        self._empty: Deque[Span] = deque()
        self._lock = RLock()
        self._arena_refills = 0

    def try_take_span(self) -> Optional[Span]:
        with self._lock:
            if not self._non_empty:
                return None
            return self._non_empty.popleft()

    def refill_from_arena(self, arena: ISpanProvider) -> Optional[Span]:
        """Commit a fresh span from ``arena`` if no span has free slots.

        Returns the committed span, or None when the pool already had one.
        """
        with self._lock:
            if self._non_empty:
                return None

            span = arena.commit_span(self._class_index)
            self._non_empty.append(span)
            self._arena_refills += 1

        logger.debug("Central pool %d (%dB) refilled with span %s",
                     self._class_index, self._object_size, span.span_id)
        return span

    def add_span(self, span: Span) -> None:
        """File a span under the list its free slot count belongs to."""
        with self._lock:
            if span.is_exhausted:
                self._empty.append(span)
            else:
                self._non_empty.append(span)

    @property
    def class_index(self) -> ClassIndex:
        return self._class_index

    @property
    def object_size(self) -> ByteSize:
        return self._object_size

    @property
    def non_empty_count(self) -> int:
        return len(self._non_empty)

    @property
    def empty_count(self) -> int:
        return len(self._empty)

    @property
    def arena_refills(self) -> int:
        return self._arena_refills

    def view(self) -> CentralView:
        with self._lock:
            return CentralView(
                class_index=self._class_index,
                class_size=self._object_size,
                non_empty=len(self._non_empty),
                empty=len(self._empty),
            )
