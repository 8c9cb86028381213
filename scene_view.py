"""
Scene View Module
Minimal rendering surface: projects a wireframe scene through the camera pose
"""

import math
from typing import Iterable, List, Optional, Tuple

import cv2
import numpy as np

from parallax_tracking.types import CameraPose


def look_at_matrix(pose: CameraPose, up: Tuple[float, float, float] = (0.0, 1.0, 0.0)) -> np.ndarray:
    """World -> camera 4x4 view matrix (camera looks down its -z axis)."""
    eye = pose.position.as_array()
    target = pose.look_at.as_array()
    forward = target - eye
    norm = np.linalg.norm(forward)
    if norm < 1e-9:
        forward = np.array([0.0, 0.0, -1.0])
    else:
        forward = forward / norm
    right = np.cross(forward, np.asarray(up, dtype=float))
    if np.linalg.norm(right) < 1e-9:
        # Looking straight up or down; pick any perpendicular axis
        right = np.array([1.0, 0.0, 0.0])
    right = right / np.linalg.norm(right)
    true_up = np.cross(right, forward)

    view = np.eye(4)
    view[0, :3] = right
    view[1, :3] = true_up
    view[2, :3] = -forward
    view[:3, 3] = -view[:3, :3] @ eye
    return view


def box_edges(center: Tuple[float, float, float], size: Tuple[float, float, float]) -> List[Tuple[np.ndarray, np.ndarray]]:
    c = np.asarray(center, dtype=float)
    h = np.asarray(size, dtype=float) / 2.0
    corners = [c + h * np.array([sx, sy, sz]) for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)]
    edges = []
    for i in range(8):
        for j in range(i + 1, 8):
            # Corners sharing two of three signs form an edge
            if bin(i ^ j).count("1") == 1:
                edges.append((corners[i], corners[j]))
    return edges


class WireframeSurface:
    """Renders a stand-and-box wireframe scene from the current camera pose."""

    def __init__(self, width: int = 960, height: int = 540, fov_deg: float = 50.0,
                 near: float = 0.1, background: Tuple[int, int, int] = (26, 26, 26)):
        self.width = int(width)
        self.height = int(height)
        self.fov_deg = float(fov_deg)
        self.near = float(near)
        self.background = background
        self.edges = (
            box_edges((0.0, -3.5, 0.0), (1.2, 0.4, 1.2))     # stand base
            + box_edges((0.0, -2.0, 0.0), (0.3, 2.6, 0.3))   # stand column
            + box_edges((0.2, -0.2, -0.3), (2.4, 1.0, 1.6))  # object on the stand
        )
        self.grid = self._floor_grid(y=-3.7, half=6, step=1.0)

    @staticmethod
    def _floor_grid(y: float, half: int, step: float) -> List[Tuple[np.ndarray, np.ndarray]]:
        lines = []
        for i in range(-half, half + 1):
            lines.append((np.array([i * step, y, -half * step]), np.array([i * step, y, half * step])))
            lines.append((np.array([-half * step, y, i * step]), np.array([half * step, y, i * step])))
        return lines

    @property
    def focal_px(self) -> float:
        return (self.height / 2.0) / math.tan(math.radians(self.fov_deg) / 2.0)

    def project(self, pose: CameraPose, points: Iterable[np.ndarray]) -> List[Optional[Tuple[float, float]]]:
        """Pixel coordinates for each world point; None when behind the near plane."""
        view = look_at_matrix(pose)
        f = self.focal_px
        cx, cy = self.width / 2.0, self.height / 2.0
        out = []
        for p in points:
            cam = view @ np.append(np.asarray(p, dtype=float), 1.0)
            depth = -cam[2]
            if depth < self.near:
                out.append(None)
                continue
            out.append((cx + f * cam[0] / depth, cy - f * cam[1] / depth))
        return out

    def _draw_lines(self, canvas: np.ndarray, pose: CameraPose, lines, color, thickness: int):
        for a, b in lines:
            pa, pb = self.project(pose, (a, b))
            if pa is None or pb is None:
                continue
            cv2.line(canvas, (int(pa[0]), int(pa[1])), (int(pb[0]), int(pb[1])), color, thickness, cv2.LINE_AA)

    def render(self, pose: CameraPose) -> np.ndarray:
        canvas = np.full((self.height, self.width, 3), self.background, dtype=np.uint8)
        self._draw_lines(canvas, pose, self.grid, (60, 60, 60), 1)
        self._draw_lines(canvas, pose, self.edges, (230, 200, 120), 2)
        p = pose.position
        cv2.putText(canvas, f"cam ({p.x:+.2f}, {p.y:+.2f}, {p.z:.2f})", (10, self.height - 12),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (200, 200, 200), 1, cv2.LINE_AA)
        return canvas
