import asyncio
import math

import pytest

from config import Config
from parallax_tracking import (
    CaptureUnavailableError,
    EmissionKind,
    NO_SIGNAL,
    NormalizedPosition,
    RawDetection,
    TrackingSession,
)


def ring(cx, cy, r=2.0):
    return ((cx - r, cy), (cx, cy - r), (cx + r, cy), (cx, cy + r))


QUARTER = RawDetection(left_eye=ring(20.0, 25.0), right_eye=ring(30.0, 25.0))


class DummyCapture:
    def __init__(self, width=100, height=100, available=True):
        self.dimensions = (width, height)
        self.available = available
        self.released = 0

    def start(self):
        if not self.available:
            raise CaptureUnavailableError("device busy")

    def get_frame(self, timeout=0.0):
        return True, "frame"

    def release(self):
        self.released += 1


class DummyDetector:
    def __init__(self, result=QUARTER):
        self.result = result
        self.calls = 0

    async def detect(self, frame):
        self.calls += 1
        return self.result


class Recorder:
    def __init__(self):
        self.positions = []
        self.distances = []

    def on_position(self, pos):
        self.positions.append(pos)

    def on_distance(self, dist):
        self.distances.append(dist)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


def make_session(detector=None, capture=None, cfg=None, **kwargs):
    rec = Recorder()
    session = TrackingSession(
        detector or DummyDetector(), capture or DummyCapture(), cfg or Config(),
        on_control_signal_change=rec.on_position, on_distance_change=rec.on_distance, **kwargs,
    )
    return session, rec


def test_first_detection_reaches_callbacks_unsmoothed():
    async def scenario():
        session, rec = make_session()
        session.start(drive=False)
        session.step()
        await settle()
        out = session.step()
        assert out.emission is EmissionKind.FRESH
        assert rec.positions == [NormalizedPosition(0.5, 0.5)]
        assert rec.distances == [pytest.approx(10.0 / math.hypot(100, 100))]
        assert session.signal.position == NormalizedPosition(0.5, 0.5)
        session.stop()

    asyncio.run(scenario())


def test_callbacks_fire_only_when_value_changes():
    async def scenario():
        session, rec = make_session()
        session.start(drive=False)
        for _ in range(10):
            session.step()
            await settle()
        # Identical detections converge instantly, so nothing after the first changes
        assert len(rec.positions) == 1
        assert len(rec.distances) == 1
        session.stop()

    asyncio.run(scenario())


def test_stop_recenters_resets_and_is_idempotent():
    async def scenario():
        cap = DummyCapture()
        session, rec = make_session(capture=cap)
        session.start(drive=False)
        session.step()
        await settle()
        session.step()

        session.stop()
        assert rec.positions[-1] is None
        assert rec.distances[-1] is None
        assert session.signal is NO_SIGNAL
        assert not session.conditioning.position_filter.initialized
        assert cap.released == 1

        n = len(rec.positions)
        session.stop()
        assert len(rec.positions) == n
        assert cap.released == 1

    asyncio.run(scenario())


def test_restart_does_not_blend_with_previous_session():
    async def scenario():
        det = DummyDetector()
        session, rec = make_session(detector=det)
        session.start(drive=False)
        session.step()
        await settle()
        session.step()
        session.stop()

        det.result = RawDetection(left_eye=ring(70.0, 75.0), right_eye=ring(80.0, 75.0))
        session.start(drive=False)
        session.step()
        await settle()
        session.step()
        assert rec.positions[-1] == NormalizedPosition(-0.5, -0.5)
        session.stop()

    asyncio.run(scenario())


def test_lost_face_emits_no_target_once():
    async def scenario():
        det = DummyDetector()
        session, rec = make_session(detector=det)
        session.start(drive=False)
        session.step()
        await settle()
        session.step()
        det.result = None
        kinds = []
        for _ in range(6):
            await settle()
            kinds.append(session.step().emission)
        # A last-known sample keeps being held; the target is never dropped mid-session
        assert set(kinds) == {EmissionKind.HELD}
        assert rec.positions[-1] is not None
        session.stop()

    asyncio.run(scenario())


def test_no_face_from_start_signals_no_target():
    async def scenario():
        session, rec = make_session(detector=DummyDetector(result=None))
        session.start(drive=False)
        kinds = []
        for _ in range(4):
            kinds.append(session.step().emission)
            await settle()
        assert EmissionKind.NO_TARGET in kinds
        assert session.signal is NO_SIGNAL
        # Never had a target, so nothing to announce
        assert rec.positions == []
        session.stop()

    asyncio.run(scenario())


def test_surface_not_ready_skips_normalization():
    async def scenario():
        cap = DummyCapture()
        session, rec = make_session(capture=cap)
        session.start(drive=False)
        session.step()
        await settle()
        cap.dimensions = (0, 0)
        out = session.step()
        assert out.emission is EmissionKind.FRESH
        assert out.surface_ready is False
        assert session.signal is NO_SIGNAL
        assert rec.positions == []
        session.stop()

    asyncio.run(scenario())


def test_position_only_session_never_reports_distance():
    async def scenario():
        session, rec = make_session(track_distance=False)
        session.start(drive=False)
        session.step()
        await settle()
        session.step()
        session.stop()
        assert rec.positions[0] == NormalizedPosition(0.5, 0.5)
        assert rec.distances == []
        assert session.signal.distance is None

    asyncio.run(scenario())


def test_start_raises_when_capture_unavailable():
    session, rec = make_session(capture=DummyCapture(available=False))
    with pytest.raises(CaptureUnavailableError):
        session.start(drive=False)
    assert not session.running
    session.stop()
    assert rec.positions == []


def test_self_driven_session_ticks_on_its_own():
    cfg = Config()
    cfg.set('detection', 'tick_fps', 200.0)

    async def scenario():
        session, rec = make_session(cfg=cfg)
        session.start()
        await asyncio.sleep(0.2)
        session.stop()
        return session, rec

    session, rec = asyncio.run(scenario())
    assert rec.positions[0] == NormalizedPosition(0.5, 0.5)
    assert rec.positions[-1] is None
    assert session.monitor.summary()['fresh'] >= 1


def test_driven_start_without_event_loop_releases_capture():
    cap = DummyCapture()
    session, rec = make_session(capture=cap)
    with pytest.raises(RuntimeError):
        session.start()
    assert not session.running
    assert cap.released == 1
    assert rec.positions == []
