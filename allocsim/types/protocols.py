from __future__ import annotations
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .aliases import BlockID, ByteSize, ClassIndex
from .enums import EngineState
from .records import TraceEntry

if TYPE_CHECKING:
    from ..memory.span import Span


@runtime_checkable
class ISpanProvider(Protocol):
    """Backing store a central pool refills from."""

    def commit_span(self, class_index: ClassIndex) -> Span:
        ...

    def commit_oversized(self, size: ByteSize) -> BlockID:
        ...

    def account_active(self, delta: int) -> None:
        ...


@runtime_checkable
class ITraceObserver(Protocol):
    """Receives every trace entry as soon as its phase is entered."""

    def on_phase(self, entry: TraceEntry, state: EngineState) -> None:
        ...
