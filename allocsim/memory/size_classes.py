from __future__ import annotations
from bisect import bisect_left
from typing import Iterable, Iterator, Optional, Tuple

from ..types.aliases import ByteSize, ClassIndex
from ..exceptions import ConfigError


class SizeClassTable:
    """Ascending table of allocator class sizes.

    ``class_index_for`` maps a request size to the smallest class able to
    hold it. Sizes above the largest class have no class and are reported
    as ``None`` (oversized).
    """

    __slots__ = ('_classes',)

    def __init__(self, classes: Iterable[int]):
        self._classes: Tuple[int, ...] = tuple(classes)

        if not self._classes:
            raise ConfigError("Size class table must not be empty")
        if any(a >= b for a, b in zip(self._classes, self._classes[1:])):
            raise ConfigError(f"Size classes must be strictly increasing: {self._classes}")
        if self._classes[0] <= 0:
            raise ConfigError(f"Size classes must be positive: {self._classes}")

    def class_index_for(self, size: int) -> Optional[ClassIndex]:
        index = bisect_left(self._classes, size)
        if index == len(self._classes):
            return None
        return ClassIndex(index)

    def is_oversized(self, size: int) -> bool:
        return size > self._classes[-1]

    def class_size(self, class_index: int) -> ByteSize:
        return ByteSize(self._classes[class_index])

    @property
    def max_size(self) -> ByteSize:
        return ByteSize(self._classes[-1])

    def __len__(self) -> int:
        return len(self._classes)

    def __iter__(self) -> Iterator[int]:
        return iter(self._classes)

    def __getitem__(self, class_index: int) -> int:
        return self._classes[class_index]

    def __repr__(self) -> str:
        return f"SizeClassTable({len(self._classes)} classes, {self._classes[0]}..{self._classes[-1]}B)"
