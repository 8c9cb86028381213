from __future__ import annotations
import logging
from typing import Callable, Optional


class EventLogger:
    """Structured logger on top of `logging` that can also forward to a UI logger.

    This avoids coupling the tracking core to any window toolkit while still
    allowing a preview window or status bar to show the same lines.
    """

    def __init__(self, name: str = "parallax_tracking", ui_logger: Optional[Callable[[str], None]] = None,
                 log_file_path: Optional[str] = None):
        self.name = name
        self.ui_logger = ui_logger
        self.log_file_path = log_file_path
        self._logger = logging.getLogger(name)
        self._file_handler: Optional[logging.Handler] = None
        if log_file_path:
            try:
                handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
            except OSError as e:
                self._logger.error(f"cannot open log file {log_file_path}: {e}")
            else:
                handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s %(levelname)s: %(message)s'))
                self._logger.addHandler(handler)
                self._file_handler = handler

    def _emit(self, level: int, msg: str):
        self._logger.log(level, msg)
        if self.ui_logger and self._logger.isEnabledFor(level):
            try:
                self.ui_logger(f"{self.name} {logging.getLevelName(level)}: {msg}")
            except Exception as e:
                # A broken UI sink must not take the tracking loop down with it
                self._logger.debug(f"ui logger failed: {e}")

    def info(self, msg: str):
        self._emit(logging.INFO, msg)

    def debug(self, msg: str):
        self._emit(logging.DEBUG, msg)

    def warning(self, msg: str):
        self._emit(logging.WARNING, msg)

    def error(self, msg: str):
        self._emit(logging.ERROR, msg)

    def close(self):
        if self._file_handler:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None
