from __future__ import annotations
from collections import deque
from threading import RLock
from typing import Deque, List, Tuple

from ..types.enums import EngineState, TracePhase
from ..types.protocols import ITraceObserver
from ..types.records import TraceEntry


class TraceRecorder:
    """Collects the trace entries of the request in flight.

    Each entry is handed to the registered observers as soon as it is
    recorded. A bounded journal keeps the most recent entries across
    requests.
    """

    __slots__ = ('_pending', '_journal', '_observers', '_lock')

    def __init__(self, journal_size: int = 100):
        self._pending: List[TraceEntry] = []
        self._journal: Deque[TraceEntry] = deque(maxlen=journal_size)
        self._observers: List[ITraceObserver] = []
        self._lock = RLock()

    def add_observer(self, observer: ITraceObserver) -> None:
        if not isinstance(observer, ITraceObserver):
            raise TypeError(f"Observer must implement on_phase(entry, state): {observer!r}")
        with self._lock:
            self._observers.append(observer)

    def remove_observer(self, observer: ITraceObserver) -> None:
        with self._lock:
            self._observers.remove(observer)

    def begin(self) -> None:
        self._pending = []

    def record(self, phase: TracePhase, message: str, state: EngineState) -> TraceEntry:
        entry = TraceEntry(phase, message)
        self._pending.append(entry)
        self._journal.append(entry)

        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            observer.on_phase(entry, state)
        return entry

    def finish(self) -> Tuple[TraceEntry, ...]:
        entries = tuple(self._pending)
        self._pending = []
        return entries

    def discard(self) -> None:
        self._pending = []

    @property
    def journal(self) -> Tuple[TraceEntry, ...]:
        return tuple(self._journal)

    def clear_journal(self) -> None:
        self._journal.clear()
