import threading
import time
from types import SimpleNamespace

import numpy as np
import pytest

pytest.importorskip("mediapipe")

from eye_detection import EyeLandmarkDetector, draw_eye_overlay  # noqa: E402
from parallax_tracking.types import RawDetection  # noqa: E402


class DummyFaceMesh:
    """Stands in for the FaceMesh graph; process() can be held open."""

    def __init__(self, landmarks=None, hold=False):
        self.landmarks = landmarks
        self.entered = threading.Event()
        self.release = threading.Event()
        if not hold:
            self.release.set()
        self.closed = False
        self.calls = 0

    def process(self, rgb_frame):
        assert not self.closed, "process() ran on a closed graph"
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=2.0)
        faces = [SimpleNamespace(landmark=self.landmarks)] if self.landmarks else None
        return SimpleNamespace(multi_face_landmarks=faces)

    def close(self):
        self.closed = True


def face_landmarks():
    # 478 points at the frame center, eye contours spread around two centers
    pts = [SimpleNamespace(x=0.5, y=0.5) for _ in range(478)]
    for i in EyeLandmarkDetector.EYE_LANDMARKS['left_eye']:
        pts[i] = SimpleNamespace(x=0.25, y=0.5)
    for i in EyeLandmarkDetector.EYE_LANDMARKS['right_eye']:
        pts[i] = SimpleNamespace(x=0.75, y=0.5)
    return pts


def blank_frame(width=200, height=100):
    return np.zeros((height, width, 3), dtype=np.uint8)


def test_process_frame_maps_landmarks_to_pixels():
    det = EyeLandmarkDetector({}, face_mesh=DummyFaceMesh(landmarks=face_landmarks()))
    detection = det.process_frame(blank_frame())
    assert len(detection.left_eye) == 6
    assert detection.left_eye[0] == pytest.approx((50.0, 50.0))
    assert detection.right_eye[0] == pytest.approx((150.0, 50.0))


def test_process_frame_without_face_returns_none():
    det = EyeLandmarkDetector({}, face_mesh=DummyFaceMesh())
    assert det.process_frame(blank_frame()) is None


def test_cleanup_waits_for_in_progress_frame():
    mesh = DummyFaceMesh(hold=True)
    det = EyeLandmarkDetector({}, face_mesh=mesh)
    worker = threading.Thread(target=det.process_frame, args=(blank_frame(),))
    worker.start()
    assert mesh.entered.wait(timeout=2.0)

    closer = threading.Thread(target=det.cleanup)
    closer.start()
    time.sleep(0.05)
    assert not mesh.closed

    mesh.release.set()
    worker.join(timeout=2.0)
    closer.join(timeout=2.0)
    assert mesh.closed
    assert det.face_mesh is None


def test_frames_after_cleanup_are_skipped():
    mesh = DummyFaceMesh(landmarks=face_landmarks())
    det = EyeLandmarkDetector({}, face_mesh=mesh)
    det.cleanup()
    det.cleanup()
    assert det.process_frame(blank_frame()) is None
    assert mesh.calls == 0


def test_overlay_ignores_missing_detection():
    frame = blank_frame()
    assert draw_eye_overlay(frame, None) is frame
    assert not frame.any()


def test_overlay_draws_on_mirrored_frame():
    frame = blank_frame()

    def ring(cx, cy):
        return ((cx - 2, cy), (cx + 2, cy), (cx, cy - 2), (cx, cy + 2))

    detection = RawDetection(left_eye=ring(50.0, 50.0), right_eye=ring(80.0, 50.0))
    draw_eye_overlay(frame, detection, normalized_distance=0.134)
    # Mirrored eye centers land at x = 150 and x = 120
    assert frame[50, 150].any()
    assert frame[50, 120].any()


def test_stats_report_processing_time_in_ms():
    det = EyeLandmarkDetector({}, face_mesh=DummyFaceMesh())
    det.process_frame(blank_frame())
    stats = det.get_stats()
    assert set(stats) == {'processing_time', 'detection_fps'}
    assert stats['processing_time'] >= 0.0
