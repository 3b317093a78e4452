import threading

import numpy as np
import pytest

from allocsim.types import (
    DEFAULT_SIZE_CLASSES, AllocationRequest, AllocatorConfig, EngineState, Location, Route,
    RouteKind, TracePhase,
)
from allocsim.core import AllocationEngine, AllocatorWorld, Classifier, TraceRecorder
from allocsim.memory import SizeClassTable
from allocsim.exceptions import AllocSimError, CapacityExceeded, ExhaustedSpan, InvalidRequest


PAGE = 8192

CASCADE = (
    TracePhase.CLASSIFY, TracePhase.ESCAPE, TracePhase.CACHE_CHECK, TracePhase.CENTRAL_CHECK,
    TracePhase.ARENA_GRANT, TracePhase.REFILL, TracePhase.COMMIT,
)
CACHE_HIT = (TracePhase.CLASSIFY, TracePhase.ESCAPE, TracePhase.CACHE_CHECK, TracePhase.COMMIT)


def dynamic(name, size, has_pointer=False):
    return AllocationRequest(name, size, has_pointer=has_pointer, location=Location.DYNAMIC)


class RecordingObserver:
    def __init__(self):
        self.calls = []

    def on_phase(self, entry, state):
        self.calls.append((entry, state))


class TestClassifier:
    def setup_method(self):
        self.classifier = Classifier(SizeClassTable(DEFAULT_SIZE_CLASSES), 16, 1)

    def test_static_and_frame(self):
        assert self.classifier.classify(AllocationRequest("g", 8, location=Location.STATIC)) == Route.static()
        assert self.classifier.classify(AllocationRequest("x", 8, location=Location.FRAME)) == Route.frame()

    def test_location_wins_over_size(self):
        request = AllocationRequest("table", 100000, location=Location.STATIC)
        assert self.classifier.classify(request) == Route.static()

    def test_escaping_frame_value_is_dynamic(self):
        request = AllocationRequest("p", 100, has_pointer=True, location=Location.FRAME,
                                    requires_dynamic=True)
        assert self.classifier.classify(request) == Route.classed(7)

    @pytest.mark.parametrize("size,has_pointer,expected", [
        (10, False, Route.packed(1)),
        (15, False, Route.packed(1)),
        (16, False, Route.classed(1)),
        (10, True, Route.classed(1)),
        (8, True, Route.classed(0)),
        (32768, False, Route.classed(32)),
        (32769, False, Route.oversized()),
        (40000, True, Route.oversized()),
        (np.int64(24), True, Route.classed(2)),
        (np.int64(10), np.bool_(False), Route.packed(1)),
    ])
    def test_dynamic_routes(self, size, has_pointer, expected):
        assert self.classifier.classify(dynamic("v", size, has_pointer)) == expected

    def test_classification_is_deterministic(self):
        request = dynamic("v", 300, True)
        assert self.classifier.classify(request) == self.classifier.classify(request)

    @pytest.mark.parametrize("size", [0, -5, True, 3.5, "8"])
    def test_invalid_sizes(self, size):
        with pytest.raises(InvalidRequest) as excinfo:
            self.classifier.classify(AllocationRequest("bad", size))
        assert excinfo.value.reason

    def test_unknown_location(self):
        with pytest.raises(InvalidRequest, match="unknown location"):
            self.classifier.classify(AllocationRequest("bad", 8, location="heap"))

    def test_from_config(self):
        config = AllocatorConfig(size_classes=(8, 24, 64), packed_threshold=8, packed_class_index=0)
        classifier = Classifier.from_config(config)

        assert classifier.classify(dynamic("v", 7)) == Route.packed(0)
        assert classifier.classify(dynamic("v", 20)) == Route.classed(1)
        assert classifier.classify(dynamic("v", 65)) == Route.oversized()


class TestTraceRecorder:
    def setup_method(self):
        self.recorder = TraceRecorder(journal_size=3)

    def test_entries_reach_observers_in_order(self):
        observer = RecordingObserver()
        self.recorder.add_observer(observer)

        self.recorder.begin()
        first = self.recorder.record(TracePhase.CLASSIFY, "a", EngineState.CLASSIFYING)
        second = self.recorder.record(TracePhase.COMMIT, "b", EngineState.COMMITTING)

        assert self.recorder.finish() == (first, second)
        assert observer.calls == [
            (first, EngineState.CLASSIFYING),
            (second, EngineState.COMMITTING),
        ]

    def test_rejects_non_observers(self):
        with pytest.raises(TypeError):
            self.recorder.add_observer(object())

    def test_journal_is_bounded(self):
        for i in range(5):
            self.recorder.record(TracePhase.STATIC, str(i), EngineState.PLACING_STATIC)

        assert [entry.message for entry in self.recorder.journal] == ["2", "3", "4"]
        self.recorder.clear_journal()
        assert self.recorder.journal == ()


class TestAllocatorWorld:
    def test_empty_world(self):
        snapshot = AllocatorWorld().snapshot()

        assert snapshot.arena.reserved_bytes == 0
        assert snapshot.cache == ()
        assert len(snapshot.central) == len(DEFAULT_SIZE_CLASSES)

    def test_prewarm_stocks_central_pools(self):
        world = AllocatorWorld(AllocatorConfig(prewarm_classes=8, prewarm_spans_per_class=2))

        assert world.arena.reserved_bytes == 16 * PAGE
        assert all(world.central_for(i).non_empty_count == 2 for i in range(8))
        assert world.central_for(8).non_empty_count == 0


class TestAllocationEngine:
    def setup_method(self):
        self.engine = AllocationEngine()

    def test_small_pointer_free_value_is_packed(self):
        segment = self.engine.process_request(dynamic("y", 10))

        assert segment.route == Route.packed(1)
        assert segment.phases == CASCADE
        snapshot = self.engine.snapshot()
        assert snapshot.arena.reserved_bytes == PAGE
        assert snapshot.arena.active_bytes == 10
        span = snapshot.cached_span(1)
        assert span.total_slots == 512
        assert span.free_slots == 511
        assert span.occupancy[0] is True

    def test_tiny_values_share_a_block(self):
        self.engine.process_request(dynamic("a", 10))

        packed = self.engine.process_request(dynamic("b", 4))
        assert packed.phases == CACHE_HIT
        assert packed.placement.slot == 0
        assert packed.placement.offset == 12
        assert self.engine.snapshot().arena.active_bytes == 14
        assert self.engine.snapshot().cached_span(1).free_slots == 511

        spilled = self.engine.process_request(dynamic("c", 8))
        assert spilled.phases == CACHE_HIT
        assert spilled.placement.slot == 1
        assert spilled.placement.offset == 0
        assert self.engine.snapshot().arena.active_bytes == 22
        assert self.engine.snapshot().cached_span(1).free_slots == 510

    def test_oversized_request_bypasses_tiers(self):
        segment = self.engine.process_request(dynamic("big", 40000))

        assert segment.route == Route.oversized()
        assert segment.phases == (TracePhase.CLASSIFY, TracePhase.ESCAPE,
                                  TracePhase.ARENA_GRANT, TracePhase.COMMIT)
        assert segment.placement.block_id == "B0001"
        assert segment.placement.waste == 960

        snapshot = self.engine.snapshot()
        assert snapshot.arena.reserved_bytes == 40960
        assert snapshot.arena.active_bytes == 40000
        assert snapshot.cache == ()
        assert all(c.non_empty == 0 and c.empty == 0 for c in snapshot.central)

    def test_second_request_hits_local_cache(self):
        first = self.engine.process_request(dynamic("p", 8, True))
        second = self.engine.process_request(dynamic("q", 8, True))

        assert first.route == Route.classed(0)
        assert first.phases == CASCADE
        assert second.phases == CACHE_HIT
        assert first.placement.span_id == second.placement.span_id == "S0001"
        assert (first.placement.slot, second.placement.slot) == (0, 1)

        arena = self.engine.snapshot().arena
        assert arena.reserved_bytes == PAGE
        assert arena.active_bytes == 16

    def test_single_slot_class_refills_every_time(self):
        self.engine.process_request(dynamic("a", 20000, True))
        segment = self.engine.process_request(dynamic("b", 20000, True))

        assert segment.phases == CASCADE
        assert "exhausted" in segment.entries[3].message
        assert segment.placement.waste == 32768 - 20000
        arena = self.engine.snapshot().arena
        assert arena.reserved_bytes == 2 * 32768
        assert arena.active_bytes == 2 * 32768

    def test_static_request_touches_no_tier(self):
        segment = self.engine.process_request(
            AllocationRequest("counter", 8, location=Location.STATIC, reason="global")
        )

        assert segment.phases == (TracePhase.CLASSIFY, TracePhase.STATIC, TracePhase.COMMIT)
        assert segment.entries[0].message.endswith(": global")
        snapshot = self.engine.snapshot()
        assert [e.name for e in snapshot.static_region] == ["counter"]
        assert snapshot.arena.reserved_bytes == 0
        assert snapshot.cache == ()

    def test_frame_request_stays_in_frame(self):
        segment = self.engine.process_request(AllocationRequest("x", 8, location=Location.FRAME))

        assert segment.phases == (TracePhase.CLASSIFY, TracePhase.FRAME, TracePhase.COMMIT)
        assert segment.placement.entry_id == "E0001"
        assert [e.name for e in self.engine.snapshot().frame_stack] == ["x"]

    def test_escaping_frame_value(self):
        request = AllocationRequest("p", 8, location=Location.FRAME, requires_dynamic=True)
        segment = self.engine.process_request(request)

        assert segment.phases[1] == TracePhase.ESCAPE
        assert "escapes its frame" in segment.entries[1].message
        assert self.engine.snapshot().frame_stack == ()

    def test_observer_sees_each_phase_with_state(self):
        observer = RecordingObserver()
        self.engine.add_observer(observer)

        segment = self.engine.process_request(dynamic("p", 8, True))

        calls = list(observer.calls)
        assert tuple(entry for entry, _ in calls) == segment.entries
        assert [state for _, state in calls] == [
            EngineState.CLASSIFYING, EngineState.ESCAPING, EngineState.ROUTING_CACHE,
            EngineState.ROUTING_CENTRAL, EngineState.ROUTING_ARENA, EngineState.ROUTING_CENTRAL,
            EngineState.COMMITTING,
        ]
        assert self.engine.state == EngineState.IDLE

        self.engine.remove_observer(observer)
        self.engine.process_request(dynamic("q", 8, True))
        assert len(observer.calls) == len(calls)

    def test_requests_are_not_reentrant(self):
        errors = []

        class Reentrant:
            def on_phase(inner, entry, state):
                try:
                    self.engine.process_request(dynamic("nested", 8))
                except AllocSimError as exc:
                    errors.append(exc)

        self.engine.add_observer(Reentrant())
        self.engine.process_request(AllocationRequest("x", 8, location=Location.FRAME))

        assert len(errors) == 3
        assert len(self.engine.snapshot().frame_stack) == 1

    def test_requests_from_another_thread_are_refused(self):
        errors = []

        def submit():
            try:
                self.engine.process_request(dynamic("other", 8))
            except AllocSimError as exc:
                errors.append(exc)

        class CrossThread:
            def on_phase(inner, entry, state):
                if entry.phase == TracePhase.CLASSIFY:
                    worker = threading.Thread(target=submit)
                    worker.start()
                    worker.join()

        self.engine.add_observer(CrossThread())
        segment = self.engine.process_request(dynamic("p", 8, True))

        assert len(errors) == 1
        assert "busy" in str(errors[0])
        assert segment.placement.slot == 0
        assert self.engine.statistics.total_requests == 1
        assert self.engine.state == EngineState.IDLE

    def test_numpy_sizes_are_normalized(self):
        segment = self.engine.process_request(dynamic("v", np.int64(24), np.bool_(True)))

        assert type(segment.request.size) is int
        assert type(segment.request.has_pointer) is bool
        assert segment.route == Route.classed(2)
        assert segment.placement.waste == 8
        assert type(self.engine.snapshot().arena.active_bytes) is int

    @pytest.mark.parametrize("flags", [
        {"has_pointer": "false"},
        {"requires_dynamic": "false"},
        {"has_pointer": 1},
    ])
    def test_non_boolean_flags_are_rejected(self, flags):
        with pytest.raises(InvalidRequest) as excinfo:
            self.engine.process_request(AllocationRequest("v", 8, **flags))

        assert "must be a boolean" in excinfo.value.reason
        assert self.engine.snapshot().arena.reserved_bytes == 0

    def test_invalid_request_changes_nothing(self):
        self.engine.process_request(dynamic("p", 8, True))
        before = self.engine.snapshot()
        journal = self.engine.journal

        with pytest.raises(InvalidRequest):
            self.engine.process_request(dynamic("bad", 0))

        assert self.engine.snapshot() == before
        assert self.engine.journal == journal
        assert self.engine.state == EngineState.IDLE
        assert self.engine.statistics.counter('rejections') == 1

    def test_exhausted_span_aborts_request(self):
        engine = self.engine

        class Thief:
            def on_phase(self, entry, state):
                if entry.phase == TracePhase.REFILL:
                    engine.world.cache.span_for(32).claim()

        engine.add_observer(Thief())

        with pytest.raises(ExhaustedSpan):
            engine.process_request(dynamic("big", 20000, True))

        assert engine.state == EngineState.IDLE
        assert engine.snapshot().arena.reserved_bytes == 32768
        assert engine.snapshot().arena.active_bytes == 0
        assert engine.statistics.counter('failures') == 1
        assert engine.statistics.total_requests == 0

    def test_strict_capacity_aborts_refill(self):
        engine = AllocationEngine(AllocatorConfig(total_capacity_bytes=PAGE, strict_capacity=True))
        engine.process_request(dynamic("a", 8, True))

        with pytest.raises(CapacityExceeded):
            engine.process_request(dynamic("b", 20, True))
        with pytest.raises(CapacityExceeded):
            engine.process_request(dynamic("c", 10000))

        snapshot = engine.snapshot()
        assert snapshot.arena.reserved_bytes == PAGE
        assert snapshot.cached_span(2) is None
        assert engine.state == EngineState.IDLE

        engine.process_request(AllocationRequest("g", 8, location=Location.STATIC))
        assert len(engine.snapshot().static_region) == 1

    def test_advisory_capacity_allows_overrun(self):
        engine = AllocationEngine(AllocatorConfig(total_capacity_bytes=PAGE))
        engine.process_request(dynamic("big", 10000))

        assert engine.snapshot().arena.over_capacity

    def test_recycled_spans_return_to_central(self):
        engine = AllocationEngine(AllocatorConfig(recycle_exhausted_spans=True))
        engine.process_request(dynamic("a", 20000, True))
        engine.process_request(dynamic("b", 20000, True))

        assert engine.snapshot().central_for(32).empty == 1

    def test_prewarmed_pool_skips_arena(self):
        engine = AllocationEngine(AllocatorConfig(prewarm_classes=8))
        reserved = engine.snapshot().arena.reserved_bytes

        segment = engine.process_request(dynamic("p", 8, True))

        assert TracePhase.ARENA_GRANT not in segment.phases
        assert TracePhase.REFILL in segment.phases
        assert engine.snapshot().arena.reserved_bytes == reserved
        assert engine.snapshot().central_for(0).non_empty == 1

    def test_run_collects_rejections(self):
        report = self.engine.run([
            dynamic("a", 8, True),
            dynamic("bad", -1),
            AllocationRequest("odd", 8, location="heap"),
            AllocationRequest("x", 8, location=Location.FRAME),
        ])

        assert report.processed == 2
        assert [r.request.name for r in report.rejections] == ["bad", "odd"]
        assert report.rejections[1].reason == "unrecognized location 'heap'"
        assert len(report.entries) == len(CASCADE) + 3

    def test_run_keeps_going_after_a_failure(self):
        engine = AllocationEngine(AllocatorConfig(total_capacity_bytes=PAGE, strict_capacity=True))

        report = engine.run([
            dynamic("a", 8, True),
            dynamic("b", 20, True),
            dynamic("zero", 0),
            AllocationRequest("g", 8, location=Location.STATIC),
        ])

        assert [s.request.name for s in report.segments] == ["a", "g"]
        assert [r.request.name for r in report.rejections] == ["zero"]
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.request.name == "b"
        assert failure.error == "CapacityExceeded"
        assert failure.reason
        assert engine.snapshot().arena.reserved_bytes == PAGE
        assert engine.statistics.counter('failures') == 1
        assert engine.state == EngineState.IDLE

    def test_journal_is_bounded(self):
        engine = AllocationEngine(AllocatorConfig(journal_size=5))
        for name in ("a", "b", "c"):
            engine.process_request(AllocationRequest(name, 8, location=Location.STATIC))

        assert len(engine.journal) == 5
        assert engine.journal[-1].phase == TracePhase.COMMIT
        assert "c" in engine.journal[-1].message

    def test_reset_restores_fresh_world(self):
        self.engine.process_request(dynamic("a", 8, True))
        self.engine.process_request(dynamic("big", 40000))

        assert self.engine.reset() is self.engine
        assert self.engine.snapshot() == AllocationEngine().snapshot()
        assert self.engine.statistics.total_requests == 0
        assert self.engine.journal == ()

    def test_config_must_match_world(self):
        world = AllocatorWorld(AllocatorConfig(page_size=4096))

        assert AllocationEngine(world=world).config.page_size == 4096
        with pytest.raises(AllocSimError):
            AllocationEngine(AllocatorConfig(), world=world)

    def test_statistics_follow_cascade(self):
        self.engine.process_request(dynamic("a", 5, True))
        self.engine.process_request(dynamic("b", 8, True))
        self.engine.process_request(dynamic("big", 40000))

        stats = self.engine.statistics
        classed = stats.route(RouteKind.DYNAMIC_CLASSED)
        assert classed.count == 2
        assert classed.waste_bytes == 3
        assert stats.counter('cache_misses') == 1
        assert stats.counter('cache_hits') == 1
        assert stats.counter('span_grants') == 1
        assert stats.counter('oversized_grants') == 1
        assert stats.counter('escapes') == 3


if __name__ == "__main__":
    pytest.main([__file__])
