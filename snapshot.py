import logging
from types import MappingProxyType

logger = logging.getLogger(__name__)

EMPTY = MappingProxyType({})


def take_snapshot(nodes):
    """Read-only ``{node_id: (x, y)}`` copy of the current positions."""
    return MappingProxyType({n.id: (n.x, n.y) for n in nodes})


class SnapshotPublisher:
    """Pushes positions to listeners every ``every``-th tick and on the last one."""

    def __init__(self, every=3):
        self.every = max(1, int(every))
        self.latest = EMPTY
        self.published = 0
        self._listeners = []

    def subscribe(self, listener):
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def on_tick(self, state, final=False, immediate=False):
        if final or immediate or state.iteration % self.every == 0:
            self.publish(take_snapshot(state.nodes))
            return True
        return False

    def publish_empty(self):
        self.publish(EMPTY)

    def publish(self, snapshot):
        self.latest = snapshot
        self.published += 1
        for listener in list(self._listeners):
            listener(snapshot)
