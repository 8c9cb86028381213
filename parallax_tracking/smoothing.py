from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from .types import NormalizedPosition

DEADZONE_MODES = ("any_axis", "all_axes")


class ExponentialFilter:
    """Single-pole low-pass filter over a scalar or a fixed-size vector.

    The first sample after construction or reset() is taken as-is.
    """

    def __init__(self, alpha: float = 0.1):
        alpha = float(alpha)
        if not (0.0 < alpha < 1.0):
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        self.alpha = alpha
        self.value: Optional[np.ndarray] = None

    @property
    def initialized(self) -> bool:
        return self.value is not None

    def update(self, raw: Union[float, Sequence[float]]) -> np.ndarray:
        x = np.asarray(raw, dtype=float)
        if self.value is None:
            self.value = x.copy()
        else:
            self.value = self.value * (1.0 - self.alpha) + x * self.alpha
        return self.value

    def reset(self):
        self.value = None


def apply_deadzone(current: float, previous: Optional[float], threshold: float) -> Optional[float]:
    """Return previous unless current moved at least threshold away from it."""
    if previous is None:
        return current
    if abs(current - previous) < threshold:
        return previous
    return current


def apply_position_deadzone(current: NormalizedPosition, previous: Optional[NormalizedPosition],
                            threshold: float, mode: str = "any_axis") -> NormalizedPosition:
    """Hysteresis on a 2D position.

    any_axis: hold previous while both axes moved less than threshold, so a
        move past it on either axis passes. This is the default.
    all_axes: hold previous unless both axes moved at least threshold, the
        stricter "both axes must differ" reading. Select it with
        conditioning.position_deadzone_mode.
    """
    if previous is None:
        return current
    small_x = abs(current.x - previous.x) < threshold
    small_y = abs(current.y - previous.y) < threshold
    hold = (small_x and small_y) if mode == "any_axis" else (small_x or small_y)
    return previous if hold else current


@dataclass
class ConditionedOutput:
    position: Optional[NormalizedPosition]
    distance: Optional[float]
    position_changed: bool
    distance_changed: bool


class ConditioningPipeline:
    """Smoothing + deadzone for position and, optionally, inter-eye distance.

    Owns both filter states and both last-accepted values; reset() clears all
    four together so neither axis can drift out of step after a reset.
    """

    def __init__(self, config, track_distance: Optional[bool] = None):
        section = config.get('conditioning')
        self.position_filter = ExponentialFilter(section.get('position_alpha', 0.1))
        self.distance_filter = ExponentialFilter(section.get('distance_alpha', 0.1))
        self.position_threshold = float(section.get('position_deadzone', 0.005))
        self.distance_threshold = float(section.get('distance_deadzone', 0.001))
        self.deadzone_mode = section.get('position_deadzone_mode') or "any_axis"
        if self.deadzone_mode not in DEADZONE_MODES:
            raise ValueError(f"unknown position_deadzone_mode: {self.deadzone_mode}")
        if track_distance is None:
            track_distance = bool(section.get('track_distance', True))
        self.track_distance = bool(track_distance)
        self.last_position: Optional[NormalizedPosition] = None
        self.last_distance: Optional[float] = None

    def update_position(self, raw: NormalizedPosition) -> NormalizedPosition:
        s = self.position_filter.update((raw.x, raw.y))
        smoothed = NormalizedPosition(x=float(s[0]), y=float(s[1]))
        self.last_position = apply_position_deadzone(smoothed, self.last_position, self.position_threshold,
                                                     self.deadzone_mode)
        return self.last_position

    def update_distance(self, raw: float) -> float:
        smoothed = float(self.distance_filter.update(raw))
        self.last_distance = apply_deadzone(smoothed, self.last_distance, self.distance_threshold)
        return self.last_distance

    def update(self, position: NormalizedPosition, distance: Optional[float] = None) -> ConditionedOutput:
        prev_pos, prev_dist = self.last_position, self.last_distance
        pos = self.update_position(position)
        dist = None
        if self.track_distance:
            dist = self.update_distance(distance) if distance is not None else prev_dist
        return ConditionedOutput(
            position=pos,
            distance=dist,
            position_changed=pos != prev_pos,
            distance_changed=self.track_distance and dist != prev_dist,
        )

    def reset(self):
        self.position_filter.reset()
        self.distance_filter.reset()
        self.last_position = None
        self.last_distance = None
