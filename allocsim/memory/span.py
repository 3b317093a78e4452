from __future__ import annotations
from typing import Tuple

import numpy as np

from ..types.aliases import ClassIndex, SpanID
from ..exceptions import ExhaustedSpan


class Span:
    """Block of same-size slots filling one page.

    Classes larger than a page get a span of as many whole pages as one
    object needs, holding a single slot.

    Occupancy is kept as a boolean bitmap; ``free_slots`` always equals the
    number of ``False`` entries in it.
    """

    __slots__ = ('_span_id', '_class_index', '_object_size', '_span_bytes', '_total_slots',
                 '_free_slots', '_occupancy')

    def __init__(self, span_id: SpanID, class_index: ClassIndex, object_size: int, span_bytes: int):
        if object_size <= 0:
            raise ValueError(f"Object size must be positive: {object_size}")

        self._span_id = span_id
        self._class_index = class_index
        self._object_size = object_size
        self._span_bytes = span_bytes
        self._total_slots = max(1, span_bytes // object_size)
        self._free_slots = self._total_slots
        self._occupancy = np.zeros(self._total_slots, dtype=np.bool_)

    def claim(self) -> int:
        """Mark the lowest free slot as occupied and return its index."""
        if self._free_slots == 0:
            raise ExhaustedSpan(
                f"Span {self._span_id} ({self._object_size}B) has no free slots",
                class_index=self._class_index,
                span_id=self._span_id,
            )

        slot = int(np.argmin(self._occupancy))
        self._occupancy[slot] = True
        self._free_slots -= 1
        return slot

    @property
    def span_id(self) -> SpanID:
        return self._span_id

    @property
    def class_index(self) -> ClassIndex:
        return self._class_index

    @property
    def object_size(self) -> int:
        return self._object_size

    @property
    def span_bytes(self) -> int:
        return self._span_bytes

    @property
    def total_slots(self) -> int:
        return self._total_slots

    @property
    def free_slots(self) -> int:
        return self._free_slots

    @property
    def occupied_slots(self) -> int:
        return int(np.count_nonzero(self._occupancy))

    @property
    def is_exhausted(self) -> bool:
        return self._free_slots == 0

    @property
    def occupancy(self) -> np.ndarray:
        """Read-only view of the occupancy bitmap."""
        view = self._occupancy.view()
        view.flags.writeable = False
        return view

    def occupancy_tuple(self) -> Tuple[bool, ...]:
        return tuple(self._occupancy.tolist())

    def __repr__(self) -> str:
        return (
            f"Span(id={self._span_id}, class={self._class_index}, "
            f"object_size={self._object_size}, free={self._free_slots}/{self._total_slots})"
        )
