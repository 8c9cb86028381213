from __future__ import annotations
import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

from .types import Emission, EmissionKind, EyeSample, RawDetection
from .errors import CaptureUnavailableError, EyeDetectionError
from .coordinates import build_eye_sample
from .logger import EventLogger
from .monitor import PerformanceMonitor


@dataclass
class TaskOutcome:
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LatestResultTask:
    """One outstanding asyncio task plus a single slot holding its completed outcome.

    submit() refuses to queue a second task while one is in flight, so a slow
    detector can never build up a backlog of requests.
    """

    def __init__(self):
        self._task: Optional[asyncio.Future] = None
        self.latest: Optional[TaskOutcome] = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, coro: Awaitable) -> asyncio.Future:
        if self.busy:
            if inspect.iscoroutine(coro):
                coro.close()
            raise RuntimeError("a task is already in flight")
        self._task = asyncio.ensure_future(coro)
        return self._task

    def poll(self) -> Optional[TaskOutcome]:
        """Harvest the finished task once; None while running or when idle."""
        task = self._task
        if task is None or not task.done():
            return None
        self._task = None
        if task.cancelled():
            return None
        exc = task.exception()
        self.latest = TaskOutcome(error=exc) if exc is not None else TaskOutcome(value=task.result())
        return self.latest

    def cancel(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.latest = None


@dataclass
class DetectionResult:
    detection: Optional[RawDetection]
    width: int
    height: int
    elapsed_ms: float


class DetectionScheduler:
    """Decides once per host frame whether to call the detector and what to emit.

    - At most one detection is in flight; ticks never wait on the detector.
    - Every `frame_skip`-th tick may issue a detection; other ticks re-emit the
      last known sample so the render side keeps a steady target.
    - Detector exceptions, empty results, missing frames and zero-size surfaces
      count as a miss, at most one per tick.
    - With no last known sample, `misses_before_no_target` consecutive misses
      turn into an explicit NO_TARGET emission.
    """

    def __init__(self, detector, capture, config, logger: Optional[EventLogger] = None,
                 monitor: Optional[PerformanceMonitor] = None):
        section = config.get('detection')
        frame_skip = section.get('frame_skip')
        self.frame_skip = 1 if frame_skip is None else int(frame_skip)
        if self.frame_skip < 1:
            raise ValueError(f"frame_skip must be >= 1, got {self.frame_skip}")
        self.misses_before_no_target = max(1, int(section.get('misses_before_no_target') or 2))
        self.detector = detector
        self.capture = capture
        self.log = logger or EventLogger("parallax_tracking.scheduler")
        self.monitor = monitor or PerformanceMonitor()

        self._slot = LatestResultTask()
        self._running = False
        self.last_sample: Optional[EyeSample] = None
        self.last_detection: Optional[RawDetection] = None
        self._misses = 0
        self._missed_this_tick = False
        self._skip_counter = 0
        self._surface_ready = True
        self.reset()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> bool:
        return self._slot.busy

    @property
    def consecutive_misses(self) -> int:
        return self._misses

    def reset(self):
        """Forget the last sample and miss history; the next tick detects immediately."""
        self.last_sample = None
        self.last_detection = None
        self._misses = 0
        self._skip_counter = self.frame_skip - 1

    def start(self):
        if self._running:
            return
        try:
            self.capture.start()
        except CaptureUnavailableError as e:
            self.log.error(f"capture unavailable: {e}")
            raise
        self.reset()
        self._surface_ready = True
        self._running = True
        self.log.info(f"detection started (frame_skip={self.frame_skip})")

    def stop(self) -> Optional[Emission]:
        """Cancel the in-flight detection and release the capture.

        Returns a NO_TARGET emission when the scheduler was running, None otherwise.
        """
        self._slot.cancel()
        was_running = self._running
        self._running = False
        self.reset()
        if not was_running:
            return None
        try:
            self.capture.release()
        except Exception as e:
            self.log.error(f"capture release failed: {e}")
        self.log.info("detection stopped")
        return Emission(EmissionKind.NO_TARGET)

    def tick(self) -> Optional[Emission]:
        """Advance one host frame. Returns what downstream should consume, or None."""
        if not self._running:
            return None

        self._missed_this_tick = False
        fresh = self._harvest()

        self._skip_counter += 1
        if self._skip_counter >= self.frame_skip and not self._slot.busy:
            self._skip_counter = 0
            self._request_detection()

        emission = self._emission(fresh)
        if emission is not None:
            self.monitor.record_emission(emission.kind)
        return emission

    # --- Processing helpers ---
    def _emission(self, fresh: Optional[EyeSample]) -> Optional[Emission]:
        if fresh is not None:
            return Emission(EmissionKind.FRESH, fresh)
        if self.last_sample is not None:
            return Emission(EmissionKind.HELD, self.last_sample)
        if self._misses >= self.misses_before_no_target:
            return Emission(EmissionKind.NO_TARGET)
        return None

    def _register_miss(self):
        # One cycle is one miss, whichever stages failed during it
        if self._missed_this_tick:
            return
        self._missed_this_tick = True
        self._misses += 1
        self.monitor.record_miss()

    def _harvest(self) -> Optional[EyeSample]:
        outcome = self._slot.poll()
        if outcome is None:
            return None
        if not outcome.ok:
            self.log.error(f"detection error: {outcome.error!r}")
            self._register_miss()
            return None

        result: DetectionResult = outcome.value
        self.monitor.record_detection(result.elapsed_ms)
        if result.detection is None:
            self.log.debug("no face detected")
            self._register_miss()
            return None
        try:
            sample = build_eye_sample(result.detection, result.width, timestamp=time.monotonic())
        except EyeDetectionError as e:
            self.log.error(f"detection error: {e}")
            self._register_miss()
            return None

        self._misses = 0
        self.last_sample = sample
        self.last_detection = result.detection
        return sample

    def _request_detection(self) -> bool:
        ok, frame = self.capture.get_frame()
        if not ok or frame is None:
            self.log.debug("no capture frame available; skipping detection")
            self._register_miss()
            return False
        width, height = self.capture.dimensions
        if width <= 0 or height <= 0:
            if self._surface_ready:
                self.log.warning(f"capture surface not ready ({width}x{height}); skipping detection")
            self._surface_ready = False
            self._register_miss()
            return False
        if not self._surface_ready:
            self.log.info(f"capture surface ready ({width}x{height})")
            self._surface_ready = True
        self._slot.submit(self._detect(frame, int(width), int(height)))
        return True

    async def _detect(self, frame, width: int, height: int) -> DetectionResult:
        t0 = time.perf_counter()
        detection = self.detector.detect(frame)
        if inspect.isawaitable(detection):
            detection = await detection
        return DetectionResult(detection=detection, width=width, height=height,
                               elapsed_ms=(time.perf_counter() - t0) * 1000.0)
