from typing import Any, Dict


class Config:
    """Minimal config shim providing nested dict access via get/set.

    Defaults chosen to run out-of-the-box with a laptop webcam.
    """

    def __init__(self):
        self._cfg: Dict[str, Dict[str, Any]] = {
            'video': {
                'capture_index': 0,
                'width': 1280,
                'height': 720,
                'fps': 30,
                'buffersize': 2,
                # Preview is shown selfie-style; detection coordinates are mirrored to match
                'mirror_preview': True,
            },
            'detection': {
                # 1 = detect every tick, 2 = every other tick, etc.
                'frame_skip': 1,
                'tick_fps': 30.0,
                'misses_before_no_target': 2,
                'max_num_faces': 1,
                'refine_landmarks': False,
                'min_detection_confidence': 0.5,
                'min_tracking_confidence': 0.5,
            },
            'conditioning': {
                # 0.05 very smooth, 0.2 more responsive
                'position_alpha': 0.1,
                'distance_alpha': 0.1,
                # Thresholds in normalized units: position spans [-1,1], distance ~[0,0.3]
                'position_deadzone': 0.005,
                'distance_deadzone': 0.001,
                'track_distance': True,
                'position_deadzone_mode': 'any_axis',  # or 'all_axes'
            },
            'camera': {
                'mode': 'gaze',  # 'gaze' or 'orbit', fixed for the session
                'damping': 0.02,
                'render_fps': 60.0,
                'fov_deg': 50.0,
                'initial_position': (0.0, 0.0, 5.0),
                # Sensitivity curve endpoints: near = min zoom, far = max zoom
                'scale_x_near': 2.5,
                'scale_x_far': 6.0,
                'scale_y_near': 8.0,
                'scale_y_far': 25.0,
                'offset_x_near': (-1.8, 1.8),
                'offset_x_far': (-4.5, 4.5),
                'offset_y_near': (-1.0, 7.0),
                'offset_y_far': (-3.2, 3.4),
                'orbit_min_distance': 2.0,
                'orbit_max_distance': 20.0,
            },
            'zoom': {
                'initial': 5.0,
                'min': 3.0,
                'max': 12.0,
                'scroll_scale': 0.01,
            },
            'logging': {
                'level': 'INFO',
                'log_file': None,
            },
        }

    def get(self, section: str, key: str = None):
        sec = self._cfg.get(section, {})
        if key is None:
            return sec
        return sec.get(key)

    def set(self, section: str, key: str, value: Any) -> None:
        self._cfg.setdefault(section, {})[key] = value
