"""
parallax_tracking package
Eye-tracking control pipeline for a head-coupled "magic window" camera.
"""

from .types import (
    RawDetection,
    EyeSample,
    NormalizedPosition,
    ControlSignal,
    Emission,
    EmissionKind,
    ZoomState,
    Vec3,
    CameraPose,
    SensitivityCurve,
    PipelineOutput,
    NO_SIGNAL,
)
from .errors import EyeDetectionError, SurfaceNotReadyError, CaptureUnavailableError
from .logger import EventLogger
from .coordinates import CoordinateNormalizer, build_eye_sample
from .smoothing import ExponentialFilter, ConditioningPipeline
from .scheduler import DetectionScheduler, LatestResultTask
from .frame_loop import FrameLoop
from .camera import CameraFollower, OrbitControls, compute_sensitivity
from .monitor import PerformanceMonitor
from .session import TrackingSession

__all__ = [
    "RawDetection",
    "EyeSample",
    "NormalizedPosition",
    "ControlSignal",
    "Emission",
    "EmissionKind",
    "ZoomState",
    "Vec3",
    "CameraPose",
    "SensitivityCurve",
    "PipelineOutput",
    "NO_SIGNAL",
    "EyeDetectionError",
    "SurfaceNotReadyError",
    "CaptureUnavailableError",
    "EventLogger",
    "CoordinateNormalizer",
    "build_eye_sample",
    "ExponentialFilter",
    "ConditioningPipeline",
    "DetectionScheduler",
    "LatestResultTask",
    "FrameLoop",
    "CameraFollower",
    "OrbitControls",
    "compute_sensitivity",
    "PerformanceMonitor",
    "TrackingSession",
]
