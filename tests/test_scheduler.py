"""
Tests for the Detection Scheduler

Runs the real ticker/worker tasks at a 10ms cadence with fake classifiers.
"""

import asyncio

import numpy as np
import pytest

from proctorvision.detectors import ClassificationResult
from proctorvision.events import EventType
from proctorvision.scheduler import DetectionScheduler, MonitorHandle
from proctorvision.sources import FrameSource, LatestFrameBuffer
from proctorvision.tracker import StateTracker

from conftest import ScriptedClassifier, wait_until

INTERVAL = 0.01


class GatedClassifier:
    """Blocks inside classify until cancelled, then returns its result anyway"""

    def __init__(self, result):
        self.result = result
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def classify(self, frame):
        self.entered.set()
        try:
            await self.gate.wait()
        except asyncio.CancelledError:
            pass
        return self.result


class FakeClock:
    """Millisecond clock advancing one second per reading"""

    def __init__(self, start=0, step=1000):
        self.now = start
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


class SlowClassifier:
    """Sleeps before every result; delay_for maps a frame to its latency in seconds"""

    def __init__(self, result_for, delay_for):
        self.result_for = result_for
        self.delay_for = delay_for
        self.calls = 0

    async def classify(self, frame):
        self.calls += 1
        await asyncio.sleep(self.delay_for(frame))
        return self.result_for(frame)


class CountingSource(FrameSource):
    """Frames stamped with their read number in every pixel"""

    def __init__(self):
        self.count = 0

    def read(self):
        self.count += 1
        return np.full((2, 2, 3), self.count % 256, dtype=np.uint8)


def frame_number(frame):
    return int(frame[0, 0, 0])


class RecordingTracker(StateTracker):
    """StateTracker that records (now, face count) for every update it applies"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.updates = []

    def update(self, tick, now):
        self.updates.append((now, len(tick.faces)))
        return super().update(tick, now)


@pytest.fixture
def source(frame):
    buffer = LatestFrameBuffer()
    buffer.push(frame)
    return buffer


def make_scheduler(classifier, clock=None):
    return DetectionScheduler(
        classifier,
        interval=INTERVAL,
        now_ms=clock or FakeClock(),
        tracker_factory=StateTracker,
    )


class TestSchedulerLifecycle:
    """Tests for start/stop"""

    def test_stop_before_start(self):
        """Test stop() on an idle scheduler is a no-op"""
        scheduler = make_scheduler(ScriptedClassifier([ClassificationResult()]))

        scheduler.stop()
        scheduler.stop()

        assert scheduler.is_running == False
        assert scheduler.state is None

    @pytest.mark.asyncio
    async def test_double_stop(self, source):
        """Test stopping twice is safe"""
        scheduler = make_scheduler(ScriptedClassifier([ClassificationResult()]))
        handle = scheduler.start(source, lambda e: None)

        scheduler.stop(handle)
        scheduler.stop(handle)
        scheduler.stop()
        await scheduler.shutdown()

        assert scheduler.is_running == False

    @pytest.mark.asyncio
    async def test_start_returns_handle(self, source):
        """Test start() returns a handle with a fresh tracker"""
        scheduler = make_scheduler(ScriptedClassifier([ClassificationResult()]))

        handle = scheduler.start(source, lambda e: None)

        assert isinstance(handle, MonitorHandle)
        assert scheduler.handle is handle
        assert scheduler.is_running == True
        assert scheduler.state == handle.tracker.snapshot()
        await scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_restart_replaces_previous_run(self, source):
        """Test start() while running stops the previous run"""
        scheduler = make_scheduler(ScriptedClassifier([ClassificationResult()]))

        first = scheduler.start(source, lambda e: None)
        second = scheduler.start(source, lambda e: None)

        assert second.generation > first.generation
        assert second.tracker is not first.tracker

        # Stale handle does not stop the current run
        scheduler.stop(first)
        assert scheduler.is_running == True

        scheduler.stop(second)
        assert scheduler.is_running == False
        await scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_repeated_restarts_release_finished_tasks(self, source):
        """Test tasks from earlier runs are not kept once they have finished"""
        scheduler = make_scheduler(ScriptedClassifier([ClassificationResult()]))

        for _ in range(20):
            scheduler.start(source, lambda e: None)
            await asyncio.sleep(0.001)
        scheduler.stop()

        assert len(scheduler._cancelled) <= 4
        await scheduler.shutdown()
        assert scheduler._cancelled == []


class TestSchedulerPipeline:
    """Tests for the classify-and-update pipeline"""

    @pytest.mark.asyncio
    async def test_events_delivered(self, source, make_tick):
        """Test events reach the sink with increasing tick times"""
        events = []
        scheduler = make_scheduler(ScriptedClassifier([make_tick(faces=2)]))

        scheduler.start(source, events.append)
        await wait_until(lambda: len(events) >= 3)
        await scheduler.shutdown()

        assert all(e.type == EventType.MULTIPLE_FACES for e in events)
        timestamps = [e.timestamp for e in events]
        assert timestamps == sorted(timestamps)
        assert len(set(timestamps)) == len(timestamps)

    @pytest.mark.asyncio
    async def test_span_event_through_pipeline(self, source, make_tick):
        """Test an absence over the threshold is reported once the face returns"""
        events = []
        absent = [make_tick(faces=0)] * 12
        classifier = ScriptedClassifier([make_tick(faces=1)] + absent + [make_tick(faces=1)])
        scheduler = make_scheduler(classifier)

        scheduler.start(source, events.append)
        await wait_until(lambda: events)
        await scheduler.shutdown()

        assert [e.type for e in events] == [EventType.FACE_ABSENT]
        # clock ticks 1000ms per reading: absence spans ticks 2..14
        assert events[0].timestamp == 2000
        assert events[0].duration == 12000

    @pytest.mark.asyncio
    async def test_skips_ticks_without_frame(self):
        """Test no classification happens until a frame arrives"""
        classifier = ScriptedClassifier([ClassificationResult()])
        scheduler = make_scheduler(classifier)
        buffer = LatestFrameBuffer()

        scheduler.start(buffer, lambda e: None)
        await asyncio.sleep(INTERVAL * 5)
        assert classifier.calls == 0

        buffer.push(np.zeros((4, 4, 3), dtype=np.uint8))
        await wait_until(lambda: classifier.calls > 0)
        await scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_classifier_exception_skips_tick(self, source, make_tick):
        """Test an exception from classify does not stop the worker"""
        events = []
        classifier = ScriptedClassifier([RuntimeError("model crashed"), make_tick(faces=2)])
        scheduler = make_scheduler(classifier)

        scheduler.start(source, events.append)
        await wait_until(lambda: events)
        await scheduler.shutdown()

        assert events[0].type == EventType.MULTIPLE_FACES

    @pytest.mark.asyncio
    async def test_sink_exception_does_not_stop_worker(self, source, make_tick):
        """Test a failing sink is logged and the run continues"""
        delivered = []

        def flaky_sink(event):
            delivered.append(event)
            if len(delivered) == 1:
                raise RuntimeError("sink down")

        scheduler = make_scheduler(ScriptedClassifier([make_tick(faces=2)]))

        scheduler.start(source, flaky_sink)
        await wait_until(lambda: len(delivered) >= 2)
        await scheduler.shutdown()

    @pytest.mark.asyncio
    async def test_no_events_after_stop(self, source, make_tick):
        """Test nothing is delivered once stop() returns"""
        events = []
        scheduler = make_scheduler(ScriptedClassifier([make_tick(faces=2)]))

        scheduler.start(source, events.append)
        await wait_until(lambda: events)
        scheduler.stop()
        count = len(events)
        await asyncio.sleep(INTERVAL * 5)
        await scheduler.shutdown()

        assert len(events) == count


class TestStaleResults:
    """Tests for results completing after stop()"""

    @pytest.mark.asyncio
    async def test_late_result_is_discarded(self, source, make_tick):
        """Test a classification finishing after stop() changes nothing"""
        events = []
        classifier = GatedClassifier(make_tick(faces=3, objects=[("cell phone", 0.9)]))
        scheduler = make_scheduler(classifier)

        handle = scheduler.start(source, events.append)
        await asyncio.wait_for(classifier.entered.wait(), timeout=2.0)

        scheduler.stop(handle)
        classifier.gate.set()
        await scheduler.shutdown()
        await asyncio.sleep(INTERVAL * 3)

        assert events == []
        assert handle.tracker.snapshot().face_count == 0
        assert handle.tracker.snapshot().detected_objects == ()
        assert scheduler.state is None


class TestBackpressure:
    """Tests for ticks arriving faster than inference completes"""

    @pytest.mark.asyncio
    async def test_backlog_bounded_with_slow_classifier(self, source, make_tick):
        """Test pending ticks never pile up behind a slow classifier"""
        classifier = SlowClassifier(lambda frame: make_tick(faces=1), lambda frame: 0.05)
        tracker = RecordingTracker()
        scheduler = DetectionScheduler(
            classifier,
            interval=INTERVAL,
            now_ms=FakeClock(),
            tracker_factory=lambda: tracker,
        )

        scheduler.start(source, lambda e: None)
        backlog = []
        loop = asyncio.get_running_loop()
        deadline = loop.time() + 0.3
        while loop.time() < deadline:
            backlog.append(scheduler.backlog)
            await asyncio.sleep(0.002)
        await scheduler.shutdown()

        assert max(backlog) <= 1
        assert scheduler.dropped_ticks > 0
        assert scheduler.backlog == 0
        # Dropped ticks never reorder the ones that are applied
        nows = [now for now, _ in tracker.updates]
        assert nows == sorted(nows)
        assert len(set(nows)) == len(nows)


class TestTickOrdering:
    """Tests for tracker updates under uneven classifier latency"""

    @pytest.mark.asyncio
    async def test_updates_follow_tick_order(self, make_tick):
        """Test slow and fast classifications are applied in tick order with their own tick time"""
        def faces_for(number):
            # present for frames 1-2, absent for 3-12, back from 13
            return 1 if number <= 2 or number >= 13 else 0

        classifier = SlowClassifier(
            lambda frame: make_tick(faces=faces_for(frame_number(frame))),
            lambda frame: 0.03 if frame_number(frame) % 2 else 0.0,
        )
        tracker = RecordingTracker(absence_threshold_ms=2000)
        scheduler = DetectionScheduler(
            classifier,
            interval=0.02,
            now_ms=FakeClock(),
            tracker_factory=lambda: tracker,
        )
        events = []

        scheduler.start(CountingSource(), events.append)
        await wait_until(lambda: events, timeout=5.0)
        await scheduler.shutdown()

        nows = [now for now, _ in tracker.updates]
        assert all(a < b for a, b in zip(nows, nows[1:]))
        # the clock is read once per frame, so tick time n*1000 carries frame n
        for now, face_count in tracker.updates:
            assert face_count == faces_for(now // 1000)

        first_absent = next(now for now, count in tracker.updates if count == 0)
        returned = next(now for now, count in tracker.updates if count == 1 and now > first_absent)
        assert [e.type for e in events] == [EventType.FACE_ABSENT]
        assert events[0].timestamp == first_absent
        assert events[0].duration == returned - first_absent
