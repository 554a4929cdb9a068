import itertools

from PyQt6.QtCore import QTimer

from scheduler import Scheduler


class QtFrameScheduler(Scheduler):
    """Schedules ticks as single-shot timers on the Qt event loop (~60 FPS)."""

    def __init__(self, parent=None, interval_ms=16):
        self.parent = parent
        self.interval_ms = interval_ms
        self._ids = itertools.count(1)
        self._timers = {}

    def request_tick(self, fn):
        handle = next(self._ids)
        timer = QTimer(self.parent)
        timer.setSingleShot(True)
        timer.setInterval(self.interval_ms)
        timer.timeout.connect(lambda: self._fire(handle, fn))
        self._timers[handle] = timer
        timer.start()
        return handle

    def cancel_tick(self, handle):
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def _fire(self, handle, fn):
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.deleteLater()
        fn()
