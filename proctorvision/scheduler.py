"""
Detection Scheduler - Drives the classify-and-update pipeline at a fixed cadence

Pipeline per run:
    ticker task  --(tick_time, frame)-->  queue  -->  worker task
                                                      classify (await)
                                                      tracker.update
                                                      on_event(...)

The ticker samples the frame source on schedule and never waits for
inference; the single worker applies tracker updates strictly in tick
order. The queue holds one pending tick: when inference falls behind,
the oldest pending tick is dropped in favour of the newest.

Each run has a generation number. stop() bumps it and cancels both
tasks, and the worker re-checks it after every classification, so a
result that completes after stop() is dropped.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import settings
from .detectors.adapter import ClassifierAdapter
from .events import DetectionEvent, EventEmitter, EventSink
from .sources import FrameSource
from .tracker import DetectionState, StateTracker

logger = logging.getLogger(__name__)

# Ticks allowed to wait for the worker
PENDING_TICKS = 1


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def tracker_from_settings() -> StateTracker:
    """StateTracker configured from application settings."""
    return StateTracker(
        absence_threshold_ms=settings.ABSENCE_THRESHOLD_MS,
        focus_threshold_ms=settings.FOCUS_THRESHOLD_MS,
        object_confidence_threshold=settings.OBJECT_CONFIDENCE_THRESHOLD,
        focus_deviation_limit=settings.FOCUS_DEVIATION_LIMIT,
    )


@dataclass(frozen=True)
class MonitorHandle:
    """Identifies one monitoring run."""
    generation: int
    tracker: StateTracker


class DetectionScheduler:
    """
    Owns the tick cadence and cancellation for a single monitoring stream.

    States: Idle -> Running -> Idle. start() and stop() must be called
    from inside a running event loop.
    """

    def __init__(
        self,
        classifier: ClassifierAdapter,
        interval: Optional[float] = None,
        now_ms: Callable[[], int] = wall_clock_ms,
        tracker_factory: Callable[[], StateTracker] = tracker_from_settings
    ):
        """
        Args:
            classifier: Async face/object classifier
            interval: Seconds between ticks (default TICK_INTERVAL_SECONDS)
            now_ms: Clock returning the current time in milliseconds
            tracker_factory: Builds a fresh StateTracker for each run
        """
        self.classifier = classifier
        self.interval = interval if interval is not None else settings.TICK_INTERVAL_SECONDS
        self.now_ms = now_ms
        self.tracker_factory = tracker_factory

        self._generation = 0
        self._handle: Optional[MonitorHandle] = None
        self._tasks: List[asyncio.Task] = []
        self._cancelled: List[asyncio.Task] = []
        self._queue: Optional[asyncio.Queue] = None
        self.dropped_ticks = 0

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def backlog(self) -> int:
        """Ticks waiting for the worker."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def handle(self) -> Optional[MonitorHandle]:
        return self._handle

    @property
    def state(self) -> Optional[DetectionState]:
        """Live detection state of the current run, None while idle."""
        if self._handle is None:
            return None
        return self._handle.tracker.snapshot()

    def start(self, frame_source: FrameSource, on_event: EventSink) -> MonitorHandle:
        """
        Begin monitoring a frame source.

        A run already in progress is stopped first.

        Args:
            frame_source: Read-only frame handle, sampled once per tick
            on_event: Sink receiving every emitted DetectionEvent

        Returns:
            Handle for this run
        """
        if self._handle is not None:
            logger.info("Scheduler already running, stopping previous run")
            self.stop()

        self._generation += 1
        generation = self._generation

        tracker = self.tracker_factory()
        emitter = EventEmitter(on_event)
        queue: asyncio.Queue = asyncio.Queue(maxsize=PENDING_TICKS)
        self._queue = queue

        self._tasks = [
            asyncio.create_task(
                self._tick_loop(generation, frame_source, queue),
                name=f"proctor-ticker-{generation}"
            ),
            asyncio.create_task(
                self._work_loop(generation, tracker, emitter, queue),
                name=f"proctor-worker-{generation}"
            ),
        ]
        self._handle = MonitorHandle(generation=generation, tracker=tracker)

        logger.info(f"Monitoring started (generation={generation}, interval={self.interval}s)")
        return self._handle

    def stop(self, handle: Optional[MonitorHandle] = None) -> None:
        """
        Stop monitoring. Safe to call repeatedly, before start(), or with
        the handle of a run that has already been replaced.
        """
        if self._handle is None:
            return
        if handle is not None and handle.generation != self._handle.generation:
            return

        generation = self._handle.generation
        self._generation += 1
        for task in self._tasks:
            task.cancel()
        self._cancelled = [t for t in self._cancelled if not t.done()]
        self._cancelled.extend(self._tasks)
        self._tasks = []
        self._queue = None
        self._handle = None

        logger.info(f"Monitoring stopped (generation={generation})")

    async def shutdown(self) -> None:
        """Stop and wait for cancelled tasks to finish unwinding."""
        self.stop()
        cancelled, self._cancelled = self._cancelled, []
        if cancelled:
            await asyncio.gather(*cancelled, return_exceptions=True)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _tick_loop(self, generation: int, frame_source: FrameSource, queue: asyncio.Queue):
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval

        while self._is_current(generation):
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += self.interval

            if not self._is_current(generation):
                return

            try:
                frame = frame_source.read()
            except Exception as e:
                logger.warning(f"Frame source error: {e}")
                continue

            if frame is None:
                logger.debug("No frame available, skipping tick")
                continue

            if queue.full():
                queue.get_nowait()
                self.dropped_ticks += 1
                logger.debug("Inference behind schedule, dropping oldest pending tick")

            queue.put_nowait((self.now_ms(), frame))

    async def _work_loop(
        self,
        generation: int,
        tracker: StateTracker,
        emitter: EventEmitter,
        queue: asyncio.Queue
    ):
        while True:
            now, frame = await queue.get()

            try:
                result = await self.classifier.classify(frame)
            except Exception:
                logger.exception("Classification failed, skipping tick")
                continue

            if not self._is_current(generation):
                logger.debug(f"Discarding stale classification (generation={generation})")
                return

            events = tracker.update(result, now)
            for event in events:
                self._deliver(emitter, event)

    def _deliver(self, emitter: EventEmitter, event: DetectionEvent):
        try:
            emitter.emit(event)
        except Exception:
            logger.exception(f"Event sink failed for {event.type.value} event {event.id}")
