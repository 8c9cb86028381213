from video_capture import VideoCapture


def make_capture(**overrides):
    cfg = {'capture_index': 0, 'width': 640, 'height': 480, 'fps': 30, 'buffersize': 2}
    cfg.update(overrides)
    return VideoCapture(cfg)


def test_constructing_does_not_open_device():
    cap = make_capture()
    assert not cap.running
    assert cap.cap is None
    assert cap.dimensions == (0, 0)


def test_no_frames_before_start():
    assert make_capture().get_frame() == (False, None)


def test_status_of_idle_capture():
    status = make_capture(backend='v4l2').get_status()
    assert status['connected'] is False
    assert status['resolution'] == (0, 0)
    assert status['backend'] == 'V4L2'
    assert status['fail_count'] == 0


def test_release_without_start_is_harmless():
    cap = make_capture()
    cap.release()
    assert cap.dimensions == (0, 0)
