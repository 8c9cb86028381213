from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


Point = Tuple[float, float]


@dataclass(frozen=True)
class RawDetection:
    """Eye point-sets of the single detected face, in capture pixel space."""
    left_eye: Tuple[Point, ...]
    right_eye: Tuple[Point, ...]


@dataclass(frozen=True)
class EyeSample:
    """Mirrored eye midpoint and inter-eye distance, both in pixels."""
    mid_x: float
    mid_y: float
    inter_eye_distance_px: float
    timestamp: float = 0.0


@dataclass(frozen=True)
class NormalizedPosition:
    """Control-space position, each axis clamped to [-1, 1], +y is up."""
    x: float
    y: float


@dataclass(frozen=True)
class ControlSignal:
    """Conditioned output of one session; None fields mean "no target"."""
    position: Optional[NormalizedPosition] = None
    distance: Optional[float] = None

    @property
    def has_target(self) -> bool:
        return self.position is not None


NO_SIGNAL = ControlSignal()


class EmissionKind(Enum):
    FRESH = "fresh"          # new sample from a detection resolved this tick
    HELD = "held"            # last known sample re-emitted
    NO_TARGET = "no_target"  # face lost, downstream recenters


@dataclass(frozen=True)
class Emission:
    kind: EmissionKind
    sample: Optional[EyeSample] = None


@dataclass
class ZoomState:
    """Camera distance bounded to [min_zoom, max_zoom]."""
    zoom: float
    min_zoom: float
    max_zoom: float

    def __post_init__(self):
        if self.min_zoom > self.max_zoom:
            raise ValueError(f"min_zoom {self.min_zoom} > max_zoom {self.max_zoom}")
        self.zoom = min(self.max_zoom, max(self.min_zoom, float(self.zoom)))

    @property
    def ratio(self) -> float:
        """0 = closest, 1 = farthest."""
        span = self.max_zoom - self.min_zoom
        if span <= 0.0:
            return 0.0
        return min(1.0, max(0.0, (self.zoom - self.min_zoom) / span))

    def scroll(self, delta_y: float, scale: float = 0.01) -> float:
        """Apply a scroll input and return the new zoom."""
        self.zoom = min(self.max_zoom, max(self.min_zoom, self.zoom + float(delta_y) * float(scale)))
        return self.zoom


@dataclass
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def set(self, x: float, y: float, z: float) -> "Vec3":
        self.x, self.y, self.z = float(x), float(y), float(z)
        return self


@dataclass
class CameraPose:
    """Virtual camera written by the follower once per render tick."""
    position: Vec3 = field(default_factory=lambda: Vec3(0.0, 0.0, 5.0))
    look_at: Vec3 = field(default_factory=Vec3)


@dataclass(frozen=True)
class SensitivityCurve:
    """Per-axis scale factors and offset clamp ranges for one zoom ratio."""
    scale_x: float
    scale_y: float
    offset_x: Tuple[float, float]
    offset_y: Tuple[float, float]


@dataclass
class PipelineOutput:
    """Aggregated output from one session step."""
    emission: Optional[EmissionKind]
    signal: ControlSignal
    position_changed: bool = False
    distance_changed: bool = False
    surface_ready: bool = True
