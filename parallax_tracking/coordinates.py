from __future__ import annotations
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .types import EyeSample, NormalizedPosition, Point, RawDetection
from .errors import EyeDetectionError, SurfaceNotReadyError


def eye_center(points: Sequence[Point]) -> Tuple[float, float]:
    """Arithmetic mean of an eye's landmark points."""
    arr = np.asarray(points, dtype=float)
    if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[1] < 2:
        raise EyeDetectionError(f"invalid eye point-set shape: {arr.shape}")
    center = arr[:, :2].mean(axis=0)
    return float(center[0]), float(center[1])


def build_eye_sample(detection: RawDetection, surface_width: float, timestamp: float = 0.0) -> EyeSample:
    """Derive the mirrored midpoint and inter-eye distance from raw eye point-sets.

    The preview is shown selfie-style, so eye centers are reflected around the
    vertical axis (x -> width - x) before the midpoint is taken.
    """
    lx, ly = eye_center(detection.left_eye)
    rx, ry = eye_center(detection.right_eye)
    w = float(surface_width)
    lx, rx = w - lx, w - rx
    return EyeSample(
        mid_x=(lx + rx) / 2.0,
        mid_y=(ly + ry) / 2.0,
        inter_eye_distance_px=math.hypot(rx - lx, ry - ly),
        timestamp=timestamp,
    )


class CoordinateNormalizer:
    """Maps pixel-space eye samples into device-independent control space.

    Responsibilities:
    - Scale the mirrored midpoint into [-1, 1] on both axes, +y up
    - Normalize inter-eye distance by the surface diagonal
    - Cache surface-dependent factors until the surface size changes
    """

    def __init__(self):
        self._size: Tuple[int, int] = (0, 0)
        self._inv_w = 0.0
        self._inv_h = 0.0
        self._inv_diag = 0.0
        self.recompute_count = 0

    @property
    def ready(self) -> bool:
        return self._inv_w > 0.0 and self._inv_h > 0.0

    def set_surface(self, width: int, height: int) -> bool:
        """Update surface size; returns True when the cached mapping was recomputed."""
        size = (int(width or 0), int(height or 0))
        if size == self._size and (self.ready or size == (0, 0)):
            return False
        self._size = size
        w, h = size
        if w <= 0 or h <= 0:
            self._inv_w = self._inv_h = self._inv_diag = 0.0
        else:
            self._inv_w = 1.0 / w
            self._inv_h = 1.0 / h
            self._inv_diag = 1.0 / math.sqrt(w * w + h * h)
        self.recompute_count += 1
        return True

    def _require_ready(self):
        if not self.ready:
            raise SurfaceNotReadyError(f"capture surface is {self._size[0]}x{self._size[1]}")

    def normalize_position(self, sample: EyeSample) -> NormalizedPosition:
        self._require_ready()
        x = (sample.mid_x * self._inv_w - 0.5) * 2.0
        y = (0.5 - sample.mid_y * self._inv_h) * 2.0
        return NormalizedPosition(x=float(np.clip(x, -1.0, 1.0)), y=float(np.clip(y, -1.0, 1.0)))

    def normalize_distance(self, sample: EyeSample) -> float:
        self._require_ready()
        return float(sample.inter_eye_distance_px * self._inv_diag)

    def normalize(self, sample: EyeSample) -> Tuple[NormalizedPosition, Optional[float]]:
        return self.normalize_position(sample), self.normalize_distance(sample)
