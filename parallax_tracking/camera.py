from __future__ import annotations
import math
from typing import Optional, Tuple

import numpy as np

from .types import CameraPose, NormalizedPosition, SensitivityCurve, Vec3, ZoomState

CAMERA_MODES = ("gaze", "orbit")


def lerp(a: float, b: float, t: float) -> float:
    return float(a) + (float(b) - float(a)) * float(t)


def lerp_range(near: Tuple[float, float], far: Tuple[float, float], t: float) -> Tuple[float, float]:
    return lerp(near[0], far[0], t), lerp(near[1], far[1], t)


def compute_sensitivity(zoom_ratio: float, config) -> SensitivityCurve:
    """Interpolate per-axis scale and offset range between the near and far setups.

    Zoomed out (ratio 1) the same head movement buys a larger camera excursion,
    since the visible parallax budget grows with distance.
    """
    cam = config.get('camera')
    t = float(np.clip(zoom_ratio, 0.0, 1.0))
    return SensitivityCurve(
        scale_x=lerp(cam.get('scale_x_near', 2.5), cam.get('scale_x_far', 6.0), t),
        scale_y=lerp(cam.get('scale_y_near', 8.0), cam.get('scale_y_far', 25.0), t),
        offset_x=lerp_range(cam.get('offset_x_near', (-1.8, 1.8)), cam.get('offset_x_far', (-4.5, 4.5)), t),
        offset_y=lerp_range(cam.get('offset_y_near', (-1.0, 7.0)), cam.get('offset_y_far', (-3.2, 3.4)), t),
    )


class OrbitControls:
    """Pointer-driven orbit around a target that the follower eases back to the origin."""

    rotate_speed = 0.005  # radians per pixel of drag

    def __init__(self, config, distance: float = 5.0):
        cam = config.get('camera')
        self.min_distance = float(cam.get('orbit_min_distance', 2.0))
        self.max_distance = float(cam.get('orbit_max_distance', 20.0))
        self.azimuth = 0.0
        self.polar = math.pi / 2.0
        self.distance = float(np.clip(distance, self.min_distance, self.max_distance))
        self.target = Vec3()

    def rotate(self, dx_px: float, dy_px: float):
        self.azimuth -= float(dx_px) * self.rotate_speed
        eps = 1e-3
        self.polar = float(np.clip(self.polar - float(dy_px) * self.rotate_speed, eps, math.pi - eps))

    def dolly(self, delta_y: float, scale: float = 0.01):
        self.distance = float(np.clip(self.distance + float(delta_y) * float(scale),
                                      self.min_distance, self.max_distance))

    def pan(self, dx_px: float, dy_px: float, focal_px: float):
        """Drag the target in the view plane; the grabbed point stays under the pointer."""
        k = self.distance / float(focal_px)
        right_x, right_z = math.cos(self.azimuth), -math.sin(self.azimuth)
        self.target.x -= float(dx_px) * k * right_x
        self.target.z -= float(dx_px) * k * right_z
        self.target.y += float(dy_px) * k

    def camera_offset(self) -> np.ndarray:
        s = math.sin(self.polar)
        return np.array([
            self.distance * s * math.sin(self.azimuth),
            self.distance * math.cos(self.polar),
            self.distance * s * math.cos(self.azimuth),
        ])


class CameraFollower:
    """Eases the camera toward the gaze-driven target once per render tick.

    Runs every tick whether or not a new control sample arrived. A None
    position means "no target" and eases the camera back to center.
    """

    def __init__(self, config, zoom: ZoomState, pose: Optional[CameraPose] = None,
                 orbit: Optional[OrbitControls] = None):
        cam = config.get('camera')
        self.config = config
        self.mode = cam.get('mode') or "gaze"
        if self.mode not in CAMERA_MODES:
            raise ValueError(f"unknown camera mode: {self.mode}")
        self.damping = float(cam.get('damping', 0.02))
        if not (0.0 < self.damping <= 1.0):
            raise ValueError(f"damping must be in (0, 1], got {self.damping}")
        self.zoom = zoom
        if pose is None:
            x, y, z = cam.get('initial_position') or (0.0, 0.0, zoom.zoom)
            pose = CameraPose(position=Vec3(x, y, z))
        self.pose = pose
        if self.mode == "orbit" and orbit is None:
            orbit = OrbitControls(config, distance=zoom.zoom)
        self.orbit = orbit
        self._curve: Optional[SensitivityCurve] = None
        self._curve_zoom: Optional[float] = None

    @property
    def curve(self) -> SensitivityCurve:
        if self._curve is None or self.zoom.zoom != self._curve_zoom:
            self._curve = compute_sensitivity(self.zoom.ratio, self.config)
            self._curve_zoom = self.zoom.zoom
        return self._curve

    def target_offset(self, position: Optional[NormalizedPosition]) -> Tuple[float, float]:
        if position is None:
            return 0.0, 0.0
        c = self.curve
        tx = float(np.clip(position.x * c.scale_x, c.offset_x[0], c.offset_x[1]))
        ty = float(np.clip(position.y * c.scale_y, c.offset_y[0], c.offset_y[1]))
        return tx, ty

    def update(self, position: Optional[NormalizedPosition] = None) -> CameraPose:
        if self.mode == "orbit":
            return self._update_orbit()

        tx, ty = self.target_offset(position)
        p = self.pose.position
        d = self.damping
        p.set(
            p.x + (tx - p.x) * d,
            p.y + (ty - p.y) * d,
            p.z + (self.zoom.zoom - p.z) * d,
        )
        self.pose.look_at.set(0.0, 0.0, 0.0)
        return self.pose

    def _update_orbit(self) -> CameraPose:
        t = self.orbit.target
        keep = 1.0 - self.damping
        t.set(t.x * keep, t.y * keep, t.z * keep)
        pos = t.as_array() + self.orbit.camera_offset()
        self.pose.position.set(*pos)
        self.pose.look_at.set(t.x, t.y, t.z)
        return self.pose
