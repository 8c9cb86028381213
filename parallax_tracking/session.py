from __future__ import annotations
from typing import Callable, Optional

from .types import (
    ControlSignal,
    Emission,
    EmissionKind,
    NO_SIGNAL,
    NormalizedPosition,
    PipelineOutput,
)
from .errors import SurfaceNotReadyError
from .coordinates import CoordinateNormalizer
from .smoothing import ConditioningPipeline
from .scheduler import DetectionScheduler
from .frame_loop import FrameLoop
from .logger import EventLogger
from .monitor import PerformanceMonitor


PositionCallback = Callable[[Optional[NormalizedPosition]], None]
DistanceCallback = Callable[[Optional[float]], None]


class TrackingSession:
    """One tracking session: detection scheduling -> normalization -> conditioning.

    Owns the whole per-session state cluster (filters, last accepted values,
    last known sample, in-flight detection) so independent sessions never share
    state. `signal` always holds the latest conditioned output for the render loop.
    """

    def __init__(self, detector, capture, config, logger: Optional[EventLogger] = None,
                 on_control_signal_change: Optional[PositionCallback] = None,
                 on_distance_change: Optional[DistanceCallback] = None,
                 track_distance: Optional[bool] = None):
        self.config = config
        self.capture = capture
        self.log = logger or EventLogger("parallax_tracking.session")
        self.monitor = PerformanceMonitor()
        self.scheduler = DetectionScheduler(detector, capture, config, logger=self.log, monitor=self.monitor)
        self.normalizer = CoordinateNormalizer()
        self.conditioning = ConditioningPipeline(config, track_distance=track_distance)
        self.on_control_signal_change = on_control_signal_change
        self.on_distance_change = on_distance_change
        self.signal: ControlSignal = NO_SIGNAL
        self._frame_loop = FrameLoop(self.step, fps=float(config.get('detection', 'tick_fps') or 30.0),
                                     name="detection_loop", logger=self.log)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self, drive: bool = True):
        """Acquire the capture and begin detection.

        Raises CaptureUnavailableError when the device cannot be opened. With
        drive=True the session schedules its own per-frame ticks on the running
        asyncio loop; otherwise the host calls step() itself.
        """
        if self.running:
            return
        self.scheduler.start()
        self.conditioning.reset()
        self.monitor.reset()
        if drive:
            try:
                self._frame_loop.start()
            except RuntimeError:
                # No running event loop; give the capture back before failing
                self.scheduler.stop()
                raise

    def stop(self):
        """Idempotent: cancel ticks and detection, release capture, recenter."""
        self._frame_loop.stop()
        emission = self.scheduler.stop()
        if emission is not None:
            self._apply_no_target(force_notify=True)

    def step(self) -> PipelineOutput:
        """One detection-loop tick. The signal is updated in a single assignment."""
        emission = self.scheduler.tick()
        if emission is None:
            return PipelineOutput(emission=None, signal=self.signal)
        if emission.kind is EmissionKind.NO_TARGET:
            changed = self._apply_no_target()
            return PipelineOutput(emission=emission.kind, signal=self.signal,
                                  position_changed=changed, distance_changed=changed)
        return self._condition(emission)

    # --- Processing helpers ---
    def _condition(self, emission: Emission) -> PipelineOutput:
        width, height = self.capture.dimensions
        self.normalizer.set_surface(width, height)
        try:
            position, distance = self.normalizer.normalize(emission.sample)
        except SurfaceNotReadyError as e:
            self.log.debug(f"skipping normalization: {e}")
            return PipelineOutput(emission=emission.kind, signal=self.signal, surface_ready=False)

        out = self.conditioning.update(position, distance)
        self.signal = ControlSignal(position=out.position, distance=out.distance)
        if out.position_changed:
            self._notify_position(out.position)
        if out.distance_changed:
            self._notify_distance(out.distance)
        return PipelineOutput(
            emission=emission.kind,
            signal=self.signal,
            position_changed=out.position_changed,
            distance_changed=out.distance_changed,
        )

    def _apply_no_target(self, force_notify: bool = False) -> bool:
        had_target = self.signal.has_target or self.signal.distance is not None
        self.conditioning.reset()
        self.signal = NO_SIGNAL
        if had_target or force_notify:
            self.log.info("target lost; recentering")
            self._notify_position(None)
            if self.conditioning.track_distance:
                self._notify_distance(None)
        return had_target

    def _notify_position(self, position: Optional[NormalizedPosition]):
        if self.on_control_signal_change:
            self.on_control_signal_change(position)

    def _notify_distance(self, distance: Optional[float]):
        if self.on_distance_change:
            self.on_distance_change(distance)
