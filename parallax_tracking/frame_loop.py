from __future__ import annotations
import asyncio
import inspect
from typing import Callable, Optional

from .logger import EventLogger


class FrameLoop:
    """Calls `callback` once per frame at `fps` on the running asyncio loop.

    Stands in for a host's per-frame callback. An exception in one frame is
    logged and the next frame runs as usual; only stop() ends the loop.
    """

    def __init__(self, callback: Callable[[], object], fps: float = 30.0, name: str = "frame_loop",
                 logger: Optional[EventLogger] = None):
        if fps <= 0:
            raise ValueError(f"fps must be > 0, got {fps}")
        self.callback = callback
        self.interval_s = 1.0 / float(fps)
        self.name = name
        self.log = logger or EventLogger(f"parallax_tracking.{name}")
        self.frame_count = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self._task

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self):
        loop = asyncio.get_running_loop()
        while True:
            t0 = loop.time()
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.log.error(f"{self.name} frame {self.frame_count} failed: {e!r}")
            self.frame_count += 1
            await asyncio.sleep(max(0.0, self.interval_s - (loop.time() - t0)))
