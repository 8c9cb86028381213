from typing import Optional, Tuple, Dict, Any
import logging
import cv2
import numpy as np
import queue
import threading
import time
import os

from parallax_tracking.errors import CaptureUnavailableError

logger = logging.getLogger(__name__)


class VideoCapture:
    """Threaded OpenCV capture with a small latest-frame queue and dropout smoothing.

    Expects cfg keys: capture_index, width, height, fps, buffersize.
    Public API: start(), get_frame(), dimensions, get_status(), release().
    """

    BACKENDS = {'ANY': 0, 'DSHOW': getattr(cv2, 'CAP_DSHOW', 0), 'MSMF': getattr(cv2, 'CAP_MSMF', 0),
                'V4L2': getattr(cv2, 'CAP_V4L2', 0), 'AVFOUNDATION': getattr(cv2, 'CAP_AVFOUNDATION', 0)}

    def __init__(self, cfg: Dict[str, Any]):
        self.index = int(cfg.get('capture_index', 0) or 0)
        self.width = int(cfg.get('width', 1280))
        self.height = int(cfg.get('height', 720))
        self.target_fps = float(cfg.get('fps', 30))
        self.backend = (cfg.get('backend') or 'ANY').upper()
        # Small queue keeps latency low; stale frames are dropped
        self.buffersize = int(cfg.get('buffersize', 2))
        # Hold last frame for short dropouts to avoid a detection miss per glitch
        self.dropout_hold_ms = int(cfg.get('dropout_hold_ms', 200))

        try:
            cv2.setUseOptimized(True)
            cv2.setNumThreads(max(2, os.cpu_count() or 2))
        except cv2.error:
            pass

        self.cap: Optional[cv2.VideoCapture] = None
        self._queue: queue.Queue = queue.Queue(maxsize=max(1, self.buffersize))
        self._running = False
        self._capture_thread: Optional[threading.Thread] = None
        self._last_frame: Optional[np.ndarray] = None
        self._last_frame_ts: float = 0.0
        self._frame_size: Tuple[int, int] = (0, 0)
        self._fps_count: int = 0
        self._fps_start: float = time.time()
        self._fail_count: int = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def dimensions(self) -> Tuple[int, int]:
        """(width, height) of the latest delivered frame; (0, 0) before the first frame."""
        return self._frame_size

    def start(self) -> None:
        """Open the device and start the reader thread. Raises CaptureUnavailableError."""
        if self._running:
            return
        backend_flag = self.BACKENDS.get(self.backend, 0)
        cap = cv2.VideoCapture(self.index, backend_flag) if backend_flag else cv2.VideoCapture(self.index)
        if not cap or not cap.isOpened():
            if cap:
                cap.release()
            raise CaptureUnavailableError(f"camera {self.index} could not be opened (backend={self.backend})")
        # Some backends ignore certain properties; proceed anyway
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.height))
        cap.set(cv2.CAP_PROP_FPS, float(self.target_fps))
        cap.set(cv2.CAP_PROP_BUFFERSIZE, int(self.buffersize))
        self.cap = cap
        self._frame_size = (0, 0)
        self._fail_count = 0
        self._running = True
        self._capture_thread = threading.Thread(target=self._capture_loop, name="video_capture", daemon=True)
        self._capture_thread.start()
        logger.info(f"camera {self.index} opened")

    def _put_latest(self, frame: np.ndarray):
        if self._queue.full():
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
        try:
            self._queue.put_nowait(frame)
        except queue.Full:
            pass

    def _capture_loop(self):
        while self._running:
            try:
                ok, frame = self.cap.read() if self.cap else (False, None)
            except cv2.error as e:
                logger.debug(f"capture read failed: {e}")
                ok, frame = False, None

            now = time.time()
            if ok and frame is not None:
                self._fps_count += 1
                self._fail_count = 0
                self._last_frame = frame
                self._last_frame_ts = now
                self._frame_size = (int(frame.shape[1]), int(frame.shape[0]))
                self._put_latest(frame)
            else:
                self._fail_count += 1
                hold_ok = (self._last_frame is not None) and ((now - self._last_frame_ts) * 1000.0 < self.dropout_hold_ms)
                if hold_ok:
                    self._put_latest(self._last_frame)
                else:
                    time.sleep(0.005)

    def _current_fps(self) -> float:
        now = time.time()
        elapsed = max(1e-3, now - self._fps_start)
        fps = float(self._fps_count) / elapsed
        if elapsed >= 1.0:
            self._fps_start = now
            self._fps_count = 0
        return fps

    def get_frame(self, timeout: float = 0.0) -> Tuple[bool, Optional[np.ndarray]]:
        """Latest frame without blocking the caller beyond `timeout` seconds."""
        if not self._running:
            return False, None
        try:
            frame = self._queue.get(timeout=timeout) if timeout > 0 else self._queue.get_nowait()
        except queue.Empty:
            frame = self._last_frame
        return frame is not None, frame

    def get_status(self) -> Dict[str, Any]:
        return {
            'connected': bool(self.cap and self.cap.isOpened()),
            'resolution': self._frame_size,
            'fps_target': self.target_fps,
            'fps_measured': self._current_fps(),
            'backend': self.backend,
            'fail_count': self._fail_count,
        }

    def release(self) -> None:
        self._running = False
        if self._capture_thread:
            self._capture_thread.join(timeout=0.5)
            self._capture_thread = None
        if self.cap:
            self.cap.release()
            self.cap = None
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        self._last_frame = None
        self._frame_size = (0, 0)
        logger.info(f"camera {self.index} released")
