"""Qt-backed frame scheduler."""

from __future__ import annotations

import itertools
import logging

from PySide6.QtCore import QObject, QTimer

from flamechart.scheduler import Callback, FrameScheduler, run_callback

logger = logging.getLogger(__name__)


class QtFrameScheduler(FrameScheduler):
    """Schedules callbacks on the Qt event loop with single-shot timers."""

    def __init__(self, parent: QObject | None = None, frame_interval_ms: float = 16.0) -> None:
        self.frame_interval_ms = frame_interval_ms
        self._parent = parent
        self._timers: dict[int, QTimer] = {}
        self._ids = itertools.count(1)

    @property
    def pending(self) -> int:
        return len(self._timers)

    def call_later(self, delay_ms: float, callback: Callback) -> int:
        handle = next(self._ids)
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.setInterval(max(0, int(round(delay_ms))))
        timer.timeout.connect(lambda: self._fire(handle, callback))
        self._timers[handle] = timer
        timer.start()
        return handle

    def cancel(self, handle: int) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def _fire(self, handle: int, callback: Callback) -> None:
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.deleteLater()
        run_callback(callback)
