import itertools
import logging
from collections import OrderedDict

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Hands out "next frame" callbacks to the simulation loop.

    Each run schedules exactly one tick at a time, so implementations only
    need to call ``fn`` once per handle, on the thread that owns the state.
    """

    def request_tick(self, fn):
        raise NotImplementedError

    def cancel_tick(self, handle):
        raise NotImplementedError


class ManualScheduler(Scheduler):
    """Frames are produced by calling ``run_pending``; used headless and in tests."""

    def __init__(self):
        self._ids = itertools.count(1)
        self._queue = OrderedDict()
        self.frames = 0

    @property
    def pending(self):
        return len(self._queue)

    def request_tick(self, fn):
        handle = next(self._ids)
        self._queue[handle] = fn
        return handle

    def cancel_tick(self, handle):
        self._queue.pop(handle, None)

    def run_pending(self):
        """Run the callbacks queued before this frame started; returns how many ran."""
        batch = list(self._queue.items())
        self._queue.clear()
        for _, fn in batch:
            fn()
        if batch:
            self.frames += 1
        return len(batch)

    def run_until_idle(self, limit=10000):
        for _ in range(limit):
            if not self.run_pending():
                return
        logger.warning("Scheduler still busy after %d frames", limit)
