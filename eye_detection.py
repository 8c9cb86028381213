"""
Eye Detection Module
Uses MediaPipe FaceMesh to locate the two eyes of a single face
"""

import asyncio
import logging
import threading
import time
from typing import Dict, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from parallax_tracking.types import RawDetection
from parallax_tracking.coordinates import build_eye_sample, eye_center

logger = logging.getLogger(__name__)


class EyeLandmarkDetector:
    """MediaPipe FaceMesh detector returning per-eye contour points in pixels."""

    # FaceMesh landmark indices of the six-point eye contours
    EYE_LANDMARKS = {
        'left_eye': (33, 160, 158, 133, 153, 144),
        'right_eye': (362, 385, 387, 263, 373, 380),
    }

    def __init__(self, config: dict, face_mesh=None):
        self.config = config
        if face_mesh is None:
            face_mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=config.get('max_num_faces', 1),
                refine_landmarks=config.get('refine_landmarks', False),
                min_detection_confidence=config.get('min_detection_confidence', 0.5),
                min_tracking_confidence=config.get('min_tracking_confidence', 0.5),
            )
        self.face_mesh = face_mesh

        # Performance metrics
        self.processing_time = 0.0
        self.detection_fps = 0.0
        self.last_fps_time = time.time()
        self.frame_count = 0

        # FaceMesh graphs are not re-entrant
        self.lock = threading.Lock()
        logger.info("FaceMesh eye detector initialized")

    def process_frame(self, frame: np.ndarray) -> Optional[RawDetection]:
        """Detect eyes in a BGR frame; None when no face is found."""
        start_time = time.time()
        height, width = frame.shape[:2]
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        with self.lock:
            # Closed by cleanup() while this frame waited on a worker thread
            if self.face_mesh is None:
                return None
            results = self.face_mesh.process(rgb_frame)

        detection = None
        if results.multi_face_landmarks:
            landmarks = results.multi_face_landmarks[0].landmark
            detection = RawDetection(
                left_eye=self._eye_points(landmarks, 'left_eye', width, height),
                right_eye=self._eye_points(landmarks, 'right_eye', width, height),
            )

        self.processing_time = time.time() - start_time
        self._update_fps()
        return detection

    async def detect(self, frame: np.ndarray) -> Optional[RawDetection]:
        """Run detection off the event loop so render ticks keep flowing."""
        return await asyncio.to_thread(self.process_frame, frame)

    def _eye_points(self, landmarks, eye: str, width: int, height: int) -> Tuple[Tuple[float, float], ...]:
        return tuple(
            (float(landmarks[i].x * width), float(landmarks[i].y * height))
            for i in self.EYE_LANDMARKS[eye]
        )

    def _update_fps(self):
        self.frame_count += 1
        current_time = time.time()

        if current_time - self.last_fps_time >= 1.0:
            self.detection_fps = self.frame_count / (current_time - self.last_fps_time)
            self.frame_count = 0
            self.last_fps_time = current_time

    def get_stats(self) -> Dict:
        return {
            'processing_time': self.processing_time * 1000,  # ms
            'detection_fps': self.detection_fps,
        }

    def cleanup(self):
        """Close the graph once any in-progress process() call has returned."""
        with self.lock:
            if self.face_mesh:
                self.face_mesh.close()
                self.face_mesh = None


def draw_eye_overlay(frame: np.ndarray, detection: Optional[RawDetection],
                     normalized_distance: Optional[float] = None) -> np.ndarray:
    """Draw eye markers, the midpoint crosshair and the distance label on a mirrored frame."""
    if detection is None:
        return frame
    width = frame.shape[1]
    lx, ly = eye_center(detection.left_eye)
    rx, ry = eye_center(detection.right_eye)
    sample = build_eye_sample(detection, width)
    left = (int(round(width - lx)), int(round(ly)))
    right = (int(round(width - rx)), int(round(ry)))
    mx, my = int(round(sample.mid_x)), int(round(sample.mid_y))

    cv2.line(frame, left, right, (255, 255, 0), 2)
    cv2.circle(frame, left, 4, (0, 255, 0), -1)
    cv2.circle(frame, right, 4, (0, 0, 255), -1)
    cv2.circle(frame, (mx, my), 4, (255, 255, 0), -1)
    cv2.line(frame, (mx - 15, my), (mx + 15, my), (255, 255, 0), 2)
    cv2.line(frame, (mx, my - 15), (mx, my + 15), (255, 255, 0), 2)

    if normalized_distance is not None:
        text = f"{normalized_distance:.3f}"
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, 0.6, 2)
        cv2.rectangle(frame, (mx - tw // 2 - 6, my - 40), (mx + tw // 2 + 6, my - 40 + th + 12), (0, 0, 0), -1)
        cv2.putText(frame, text, (mx - tw // 2, my - 34 + th), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 0), 2)
    return frame
