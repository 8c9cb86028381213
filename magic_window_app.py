"""
Magic Window - head-coupled parallax viewer
Tracks the viewer's eyes and moves a virtual camera to match
"""

import argparse
import asyncio
import logging

import cv2

from config import Config
from video_capture import VideoCapture
from eye_detection import EyeLandmarkDetector, draw_eye_overlay
from scene_view import WireframeSurface
from parallax_tracking import (
    CameraFollower,
    CaptureUnavailableError,
    EventLogger,
    FrameLoop,
    TrackingSession,
    ZoomState,
)

SCENE_WINDOW = "Magic Window"
PREVIEW_WINDOW = "Eye Tracking"


class MagicWindowApp:
    """Wires capture, detector, tracking session, camera follower and surface.

    Detection and rendering run as two independent frame loops on one asyncio
    loop. The render loop only reads `session.signal`; it never waits on detection.
    """

    def __init__(self, cfg: Config, show_preview: bool = True, log_file_path: str = None):
        self.cfg = cfg
        self.show_preview = bool(show_preview)
        self.log = EventLogger("magic_window", log_file_path=log_file_path)

        self.video_capture = VideoCapture(cfg.get('video'))
        self.detector = EyeLandmarkDetector(cfg.get('detection'))
        self.session = TrackingSession(
            self.detector, self.video_capture, cfg, logger=EventLogger("parallax_tracking.session"),
            on_control_signal_change=self.on_control_signal_change,
        )

        zoom_cfg = cfg.get('zoom')
        self.zoom = ZoomState(zoom=zoom_cfg.get('initial', 5.0), min_zoom=zoom_cfg.get('min', 3.0),
                              max_zoom=zoom_cfg.get('max', 12.0))
        self.scroll_scale = float(zoom_cfg.get('scroll_scale', 0.01))
        self.follower = CameraFollower(cfg, self.zoom)
        self.surface = WireframeSurface(fov_deg=float(cfg.get('camera', 'fov_deg') or 50.0))
        self.render_loop = FrameLoop(self.render_tick, fps=float(cfg.get('camera', 'render_fps') or 60.0),
                                     name="render_loop", logger=self.log)

        self._drag_origin = None
        self._pan_origin = None
        self._quit = None

    def on_control_signal_change(self, position):
        if position is None:
            self.log.debug("control signal: no target")
        else:
            self.log.debug(f"control signal: ({position.x:+.3f}, {position.y:+.3f})")

    # --- Input ---
    def on_mouse(self, event, x, y, flags, param):
        if event == cv2.EVENT_MOUSEWHEEL:
            # OpenCV reports +delta for wheel-up; scrolling up zooms in
            delta_y = -cv2.getMouseWheelDelta(flags)
            if self.follower.mode == "orbit":
                self.follower.orbit.dolly(delta_y, self.scroll_scale)
            else:
                self.zoom.scroll(delta_y, self.scroll_scale)
        elif self.follower.mode != "orbit":
            return
        elif event == cv2.EVENT_LBUTTONDOWN:
            self._drag_origin = (x, y)
        elif event == cv2.EVENT_RBUTTONDOWN:
            self._pan_origin = (x, y)
        elif event == cv2.EVENT_MOUSEMOVE:
            if self._drag_origin is not None:
                ox, oy = self._drag_origin
                self.follower.orbit.rotate(x - ox, y - oy)
                self._drag_origin = (x, y)
            if self._pan_origin is not None:
                ox, oy = self._pan_origin
                self.follower.orbit.pan(x - ox, y - oy, self.surface.focal_px)
                self._pan_origin = (x, y)
        elif event == cv2.EVENT_LBUTTONUP:
            self._drag_origin = None
        elif event == cv2.EVENT_RBUTTONUP:
            self._pan_origin = None

    def toggle_tracking(self):
        if self.session.running:
            self.session.stop()
            self.log.info("Tracking stopped")
            return
        try:
            self.session.start()
            self.log.info("Tracking started")
        except CaptureUnavailableError as e:
            self.log.error(f"Cannot start tracking: {e}")

    # --- Render loop ---
    def render_tick(self):
        pose = self.follower.update(self.session.signal.position)
        cv2.imshow(SCENE_WINDOW, self.surface.render(pose))

        if self.show_preview:
            ok, frame = self.video_capture.get_frame()
            if ok and frame is not None:
                if self.cfg.get('video', 'mirror_preview'):
                    frame = cv2.flip(frame, 1)
                draw_eye_overlay(frame, self.session.scheduler.last_detection, self.session.signal.distance)
                cv2.imshow(PREVIEW_WINDOW, frame)

        key = cv2.waitKey(1) & 0xFF
        if key == ord('s') and self.follower.mode == "gaze":
            self.toggle_tracking()
        elif key in (ord('q'), 27):
            self._quit.set()

    async def run(self):
        self._quit = asyncio.Event()
        cv2.namedWindow(SCENE_WINDOW)
        cv2.setMouseCallback(SCENE_WINDOW, self.on_mouse)
        self.render_loop.start()
        if self.follower.mode == "gaze":
            self.toggle_tracking()
        try:
            await self._quit.wait()
        finally:
            self.close()

    def close(self):
        self.render_loop.stop()
        capture_status = self.video_capture.get_status()
        self.session.stop()
        self.detector.cleanup()
        self.log.info(f"Capture status: {capture_status}")
        self.log.info(f"Detector stats: {self.detector.get_stats()}")
        self.log.info(f"Session stats: {self.session.monitor.summary()}")
        self.log.close()
        cv2.destroyAllWindows()


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Head-coupled parallax viewer")
    parser.add_argument("--camera", type=int, default=None, help="Capture device index")
    parser.add_argument("--frame-skip", type=int, default=None, help="Detect every Nth tick")
    parser.add_argument("--orbit", action="store_true", help="Use pointer-driven orbit instead of gaze")
    parser.add_argument("--no-preview", action="store_true", help="Hide the camera preview window")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--log-file", type=str, default=None, help="Path to session log file")
    args = parser.parse_args()

    cfg = Config()
    if args.camera is not None:
        cfg.set('video', 'capture_index', args.camera)
    if args.frame_skip is not None:
        cfg.set('detection', 'frame_skip', args.frame_skip)
    if args.orbit:
        cfg.set('camera', 'mode', 'orbit')
    if args.log_file:
        cfg.set('logging', 'log_file', args.log_file)

    level = 'DEBUG' if args.verbose else (cfg.get('logging', 'level') or 'INFO')
    logging.basicConfig(level=level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    app = MagicWindowApp(cfg, show_preview=not args.no_preview, log_file_path=cfg.get('logging', 'log_file'))
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        # Gracefully close on Ctrl+C without a noisy traceback
        print("KeyboardInterrupt received; closing application...")


if __name__ == "__main__":
    main()
