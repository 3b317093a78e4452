"""
Allocation engine for allocsim.

The engine drives one request at a time through classification and
placement. Static and frame requests are appended to their regions;
dynamic requests go to the arena directly when oversized, or through the
local cache, central pool and arena cascade otherwise. Every phase
produces a trace entry that observers see before the next phase begins.
"""

from __future__ import annotations
import logging
import sys
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional, Tuple

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

from ..types.aliases import ByteSize, ClassIndex
from ..types.descriptors import AllocationRequest, AllocatorConfig, Placement, Route
from ..types.enums import EngineState, Location, RefillStep, RouteKind, TracePhase
from ..types.protocols import ITraceObserver
from ..types.records import Failure, Rejection, RunReport, TraceEntry, TraceSegment, WorldSnapshot
from ..exceptions import AllocationFailure, AllocSimError, InvalidRequest
from ..memory.span import Span
from ..profiling.statistics import AllocationStatistics
from .classifier import Classifier
from .trace import TraceRecorder
from .world import AllocatorWorld

logger = logging.getLogger(__name__)

Placer = Callable[[AllocationRequest, Route], Placement]


class AllocationEngine:
    """Serial allocation state machine over one ``AllocatorWorld``."""

    __slots__ = ('_world', '_classifier', '_recorder', '_statistics', '_state', '_placers', '_busy')

    def __init__(
        self,
        config: Optional[AllocatorConfig] = None,
        world: Optional[AllocatorWorld] = None,
        observers: Iterable[ITraceObserver] = ()
    ):
        if world is None:
            world = AllocatorWorld(config)
        elif config is not None and config != world.config:
            raise AllocSimError("Engine config does not match the world it was given")

        self._world = world
        self._classifier = Classifier.from_config(world.config)
        self._recorder = TraceRecorder(world.config.journal_size)
        self._statistics = AllocationStatistics()
        self._state = EngineState.IDLE
        self._busy = Lock()
        self._placers: Dict[RouteKind, Placer] = {
            RouteKind.STATIC: self._place_static,
            RouteKind.FRAME: self._place_frame,
            RouteKind.DYNAMIC_OVERSIZED: self._place_oversized,
            RouteKind.DYNAMIC_PACKED: self._place_packed,
            RouteKind.DYNAMIC_CLASSED: self._place_classed,
        }
        missing = set(RouteKind) - set(self._placers)
        if missing:
            raise TypeError(f"No placement handler for {sorted(m.name for m in missing)}")

        for observer in observers:
            self._recorder.add_observer(observer)

    def process_request(self, request: AllocationRequest) -> TraceSegment:
        """Run ``request`` through every phase and return its trace.

        Raises ``InvalidRequest`` before any phase when the request is
        malformed. Failures after that point abort the request without
        undoing the phases that already completed.
        """
        if not self._busy.acquire(blocking=False):
            raise AllocSimError(
                f"Engine is busy ({self._state.name}); requests are processed one at a time"
            )

        self._recorder.begin()
        try:
            self._state = EngineState.CLASSIFYING
            try:
                request = self._classifier.validate(request)
                route = self._classifier.classify(request)
            except InvalidRequest as exc:
                self._statistics.record_rejection()
                logger.info("Rejected request %r: %s", getattr(request, 'name', request), exc.reason)
                raise

            self._emit(TracePhase.CLASSIFY, self._describe_classification(request, route))

            try:
                placement = self._placers[route.kind](request, route)
            except AllocationFailure:
                self._statistics.record_failure()
                logger.error("Request %s aborted during %s", request, self._state.name)
                raise

            segment = TraceSegment(request, route, self._recorder.finish(), placement)
            self._statistics.record(segment)
            return segment
        finally:
            self._recorder.discard()
            self._state = EngineState.IDLE
            self._busy.release()

    def run(self, requests: Iterable[AllocationRequest]) -> RunReport:
        """Process a whole sequence.

        Malformed requests become rejections and aborted requests become
        failures; neither stops the rest of the sequence. Phases an aborted
        request already completed stay committed.
        """
        segments: List[TraceSegment] = []
        rejections: List[Rejection] = []
        failures: List[Failure] = []

        for request in requests:
            try:
                segments.append(self.process_request(request))
            except InvalidRequest as exc:
                rejections.append(Rejection(request, exc.reason))
            except AllocationFailure as exc:
                failures.append(Failure(request, exc.message, type(exc).__name__))

        logger.info("Processed %d requests (%d rejected, %d failed)",
                    len(segments), len(rejections), len(failures))
        return RunReport(tuple(segments), tuple(rejections), tuple(failures))

    def reset(self) -> Self:
        """Start over with a fresh world built from the same config."""
        if not self._busy.acquire(blocking=False):
            raise AllocSimError("Cannot reset an engine while a request is in flight")

        try:
            self._world = AllocatorWorld(self._world.config)
            self._statistics.clear()
            self._recorder.clear_journal()
        finally:
            self._busy.release()
        return self

    def snapshot(self) -> WorldSnapshot:
        return self._world.snapshot()

    def add_observer(self, observer: ITraceObserver) -> None:
        self._recorder.add_observer(observer)

    def remove_observer(self, observer: ITraceObserver) -> None:
        self._recorder.remove_observer(observer)

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def world(self) -> AllocatorWorld:
        return self._world

    @property
    def config(self) -> AllocatorConfig:
        return self._world.config

    @property
    def classifier(self) -> Classifier:
        return self._classifier

    @property
    def statistics(self) -> AllocationStatistics:
        return self._statistics

    @property
    def journal(self) -> Tuple[TraceEntry, ...]:
        return self._recorder.journal

    def _emit(self, phase: TracePhase, message: str) -> None:
        self._recorder.record(phase, message, self._state)

    def _enter(self, state: EngineState) -> None:
        self._state = state

    def _describe_classification(self, request: AllocationRequest, route: Route) -> str:
        reason = f": {request.reason}" if request.reason else ""
        return f"{request.name} ({request.size}B) -> {route}{reason}"

    def _place_static(self, request: AllocationRequest, route: Route) -> Placement:
        self._enter(EngineState.PLACING_STATIC)
        entry = self._world.place_static(request.name, request.size)
        self._emit(TracePhase.STATIC, f"{request.name} placed in the static region ({request.size}B)")

        self._enter(EngineState.COMMITTING)
        self._emit(TracePhase.COMMIT, f"{request.name} committed as static entry {entry.entry_id}")
        return Placement(route, request.size, entry_id=entry.entry_id)

    def _place_frame(self, request: AllocationRequest, route: Route) -> Placement:
        self._enter(EngineState.PLACING_FRAME)
        entry = self._world.place_frame(request.name, request.size)
        self._emit(TracePhase.FRAME, f"{request.name} stays in the execution frame ({request.size}B)")

        self._enter(EngineState.COMMITTING)
        self._emit(TracePhase.COMMIT, f"{request.name} committed as frame entry {entry.entry_id}")
        return Placement(route, request.size, entry_id=entry.entry_id)

    def _escape(self, request: AllocationRequest) -> None:
        self._enter(EngineState.ESCAPING)
        if request.location == Location.FRAME:
            message = f"{request.name} escapes its frame and moves to the dynamic allocator"
        else:
            message = f"{request.name} is allocated by the dynamic allocator"
        self._emit(TracePhase.ESCAPE, message)

    def _place_oversized(self, request: AllocationRequest, route: Route) -> Placement:
        self._escape(request)
        arena = self._world.arena

        self._enter(EngineState.PLACING_OVERSIZED)
        pages = arena.pages_for(request.size)
        reserved = pages * arena.page_size
        block_id = arena.commit_oversized(ByteSize(request.size))
        self._emit(
            TracePhase.ARENA_GRANT,
            f"{request.size}B exceeds the largest class ({self._world.table.max_size}B); "
            f"arena committed block {block_id} of {pages} pages ({reserved}B)"
        )

        self._enter(EngineState.COMMITTING)
        self._emit(TracePhase.COMMIT, f"{request.name} committed in block {block_id}")
        return Placement(route, request.size, class_size=reserved,
                         waste=reserved - request.size, block_id=block_id)

    def _place_classed(self, request: AllocationRequest, route: Route) -> Placement:
        self._escape(request)
        class_index = route.class_index
        class_size = self._world.table.class_size(class_index)

        self._enter(EngineState.ROUTING_CACHE)
        self._emit(TracePhase.CACHE_CHECK,
                   f"Checking local cache for class {class_index} ({class_size}B)")
        span = self._refill(class_index)

        self._enter(EngineState.COMMITTING)
        slot = self._world.cache.claim_slot(class_index)
        self._world.arena.account_active(class_size)
        self._emit(TracePhase.COMMIT,
                   f"{request.name} claimed slot {slot} of span {span.span_id} ({span.free_slots} free)")
        return Placement(route, request.size, class_size=class_size,
                         waste=class_size - request.size, span_id=span.span_id, slot=slot)

    def _place_packed(self, request: AllocationRequest, route: Route) -> Placement:
        self._escape(request)
        class_index = route.class_index
        cache = self._world.cache
        block_size = self._world.table.class_size(class_index)

        self._enter(EngineState.ROUTING_CACHE)
        self._emit(TracePhase.CACHE_CHECK,
                   f"Checking tiny block in class {class_index} ({block_size}B) for {request.size}B")

        packed = cache.try_pack(request.size)
        if packed is not None:
            self._enter(EngineState.COMMITTING)
            self._world.arena.account_active(request.size)
            self._emit(TracePhase.COMMIT,
                       f"{request.name} packed at offset {packed.offset} of tiny block "
                       f"(span {packed.span_id}, slot {packed.slot})")
            return Placement(route, request.size, class_size=block_size, span_id=packed.span_id,
                             slot=packed.slot, offset=packed.offset)

        span = self._refill(class_index)

        self._enter(EngineState.COMMITTING)
        slot = cache.claim_slot(class_index)
        block = cache.start_tiny_block(span.span_id, slot, block_size, request.size)
        self._world.arena.account_active(request.size)
        self._emit(TracePhase.COMMIT,
                   f"{request.name} opened a tiny block in slot {slot} of span {span.span_id}")
        return Placement(route, request.size, class_size=block_size, span_id=span.span_id,
                         slot=slot, offset=block.offset)

    def _refill(self, class_index: ClassIndex) -> Span:
        """Walk the cache refill steps, tracing each one as it happens."""
        world = self._world
        central = world.central_for(class_index)

        for step, span in world.cache.refill_steps(class_index, central, world.arena):
            if step == RefillStep.CENTRAL_REQUEST:
                self._enter(EngineState.ROUTING_CENTRAL)
                state = "empty" if span is None else f"exhausted (span {span.span_id})"
                self._emit(TracePhase.CENTRAL_CHECK,
                           f"Local cache class {class_index} is {state}; asking central pool "
                           f"({central.non_empty_count} spans available)")
            elif step == RefillStep.ARENA_GRANT:
                self._enter(EngineState.ROUTING_ARENA)
                self._emit(TracePhase.ARENA_GRANT,
                           f"Central pool {class_index} was empty; arena committed span "
                           f"{span.span_id} ({span.total_slots} x {span.object_size}B)")
            elif step == RefillStep.INSTALLED:
                self._enter(EngineState.ROUTING_CENTRAL)
                self._emit(TracePhase.REFILL,
                           f"Moved span {span.span_id} from central pool to local cache "
                           f"({span.free_slots}/{span.total_slots} free)")

        return world.cache.span_for(class_index)
