import logging

from parallax_tracking.logger import EventLogger


def test_forwards_enabled_levels_to_ui_logger():
    lines = []
    log = EventLogger("test.forward", ui_logger=lines.append)
    logging.getLogger("test.forward").setLevel(logging.INFO)
    log.debug("hidden")
    log.info("tracking started")
    log.error("boom")
    assert lines == ["test.forward INFO: tracking started", "test.forward ERROR: boom"]


def test_broken_ui_logger_does_not_raise():
    def broken(_line):
        raise RuntimeError("window closed")

    log = EventLogger("test.broken", ui_logger=broken)
    log.warning("still fine")


def test_writes_and_detaches_file_handler(tmp_path):
    path = tmp_path / "session.log"
    log = EventLogger("test.file", log_file_path=str(path))
    logging.getLogger("test.file").setLevel(logging.INFO)
    log.info("camera opened")
    log.close()
    assert "camera opened" in path.read_text(encoding="utf-8")
    assert not logging.getLogger("test.file").handlers
