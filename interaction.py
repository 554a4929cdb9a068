import logging
import math
from enum import Enum

logger = logging.getLogger(__name__)


class GestureState(Enum):
    IDLE = "idle"
    GRABBED = "grabbed"
    DRAGGING = "dragging"
    RELEASED = "released"
    PANNING = "panning"


class Camera:
    """Pan/zoom transform between screen and layout (world) coordinates."""

    def __init__(self, min_scale=0.1, max_scale=5.0):
        self.offset_x = 0.0
        self.offset_y = 0.0
        self.scale = 1.0
        self.min_scale = min_scale
        self.max_scale = max_scale

    def screen_to_world(self, sx, sy):
        # screen = world * scale + offset
        return (sx - self.offset_x) / self.scale, (sy - self.offset_y) / self.scale

    def world_to_screen(self, wx, wy):
        return wx * self.scale + self.offset_x, wy * self.scale + self.offset_y

    def pan(self, dx, dy):
        self.offset_x += dx
        self.offset_y += dy

    def zoom(self, factor, anchor=None):
        """Scale by ``factor`` keeping the screen point ``anchor`` fixed. Out-of-range zooms are ignored."""
        new_scale = self.scale * factor
        if not self.min_scale <= new_scale <= self.max_scale:
            return False
        if anchor is not None:
            wx, wy = self.screen_to_world(*anchor)
            self.scale = new_scale
            self.offset_x = anchor[0] - wx * new_scale
            self.offset_y = anchor[1] - wy * new_scale
        else:
            self.scale = new_scale
        return True

    def center_on(self, wx, wy, width, height):
        self.offset_x = width / 2 - wx * self.scale
        self.offset_y = height / 2 - wy * self.scale

    def reset(self):
        self.offset_x = self.offset_y = 0.0
        self.scale = 1.0


class InteractionController:
    """
    Turns pointer events into pins, drags, taps and camera pans.

    Pointer coordinates are in screen space; node positions are in layout
    space, ``camera`` converts between the two. ``on_select(node_id)`` fires
    on a tap, ``on_drag(node_id, x, y)`` on every drag update and
    ``on_select_edge(edge_id)`` on a tap that lands on an edge but no node.
    """

    def __init__(self, engine, camera=None, on_select=None, on_drag=None, on_select_edge=None):
        self.engine = engine
        self.camera = camera or Camera()
        self.on_select = on_select
        self.on_drag = on_drag
        self.on_select_edge = on_select_edge

        self.state = GestureState.IDLE
        self.node_id = None
        self.edge_id = None
        self._origin = None
        self._last = None

        engine.on_graph_changed(self.check_pin)

    @property
    def dragging(self):
        return self.state in (GestureState.GRABBED, GestureState.DRAGGING)

    def hit_test(self, wx, wy):
        """Nearest node whose radius plus tolerance contains the point, or None."""
        state = self.engine.state
        if state is None:
            return None
        tolerance = self.engine.config.hit_tolerance
        best, best_dist = None, math.inf
        for node in state.nodes:
            dist = math.hypot(node.x - wx, node.y - wy)
            radius = node.radius or self.engine.config.default_radius
            if dist <= radius + tolerance and dist < best_dist:
                best, best_dist = node, dist
        return best.id if best is not None else None

    def edge_hit_test(self, wx, wy):
        """Nearest edge whose segment passes within the hit tolerance of the point, or None."""
        if self.engine.state is None:
            return None
        best, best_dist = None, self.engine.config.hit_tolerance
        for edge in self.engine.edges:
            a = self.engine.node(edge.source)
            b = self.engine.node(edge.target)
            if a is None or b is None:
                continue
            dist = _segment_distance(wx, wy, a.x, a.y, b.x, b.y)
            if dist <= best_dist:
                best, best_dist = edge.id, dist
        return best

    def pointer_down(self, sx, sy):
        if self.dragging:
            self.cancel()
        wx, wy = self.camera.screen_to_world(sx, sy)
        self._origin = self._last = (sx, sy)
        self.edge_id = None

        node_id = self.hit_test(wx, wy)
        if node_id is None:
            self.edge_id = self.edge_hit_test(wx, wy)
            self.state = GestureState.PANNING
            return None

        node = self.engine.node(node_id)
        logger.debug("Started dragging node: %s", node_id)
        self.engine.pin(node_id, node.x, node.y)
        self.node_id = node_id
        self.state = GestureState.GRABBED
        if not self.engine.running:
            self.engine.reheat()
        return node_id

    def begin_pan(self, sx, sy):
        """Start panning regardless of what is under the pointer."""
        self.cancel()
        self._origin = self._last = (sx, sy)
        self.state = GestureState.PANNING

    def pointer_move(self, sx, sy):
        if self._last is not None:
            delta = (sx - self._last[0], sy - self._last[1])
        else:
            delta = (0.0, 0.0)
        self._last = (sx, sy)

        if self.state == GestureState.PANNING:
            self.camera.pan(*delta)
            return
        if not self.dragging or not self.check_pin():
            return

        viewport = self.engine.viewport
        wx, wy = self.camera.screen_to_world(sx, sy)
        wx = max(0.0, min(viewport.width, wx))
        wy = max(0.0, min(viewport.height, wy))

        self.engine.pin(self.node_id, wx, wy)
        self.state = GestureState.DRAGGING
        if not self.engine.running:
            self.engine.reheat()
        if self.on_drag:
            self.on_drag(self.node_id, wx, wy)

    def displacement(self, sx=None, sy=None):
        """Straight-line distance from the press point to ``(sx, sy)``, or to the last pointer position."""
        if self._origin is None:
            return 0.0
        if sx is None or sy is None:
            if self._last is None:
                return 0.0
            sx, sy = self._last
        return math.hypot(sx - self._origin[0], sy - self._origin[1])

    def pointer_up(self, sx=None, sy=None):
        """End the gesture; returns ``"tap"``, ``"drag"``, ``"edge"``, ``"pan"`` or None."""
        is_tap = self.displacement(sx, sy) < self.engine.config.tap_threshold

        if self.state == GestureState.PANNING:
            edge_id = self.edge_id
            self._reset(GestureState.IDLE)
            if edge_id is not None and is_tap:
                logger.debug("Edge pressed: %s", edge_id)
                if self.on_select_edge:
                    self.on_select_edge(edge_id)
                return "edge"
            return "pan"
        if not self.dragging or not self.check_pin():
            self._reset(GestureState.IDLE)
            return None

        node_id = self.node_id
        logger.debug("Finished dragging node: %s", node_id)
        self.engine.unpin(node_id)
        self._reset(GestureState.RELEASED)

        if is_tap:
            if self.on_select:
                self.on_select(node_id)
            return "tap"
        return "drag"

    def cancel(self):
        if self.dragging and self.check_pin():
            self.engine.unpin(self.node_id)
        self._reset(GestureState.IDLE)

    def check_pin(self):
        """Drop a grab whose node disappeared from the graph; True while the grab is valid."""
        if self.node_id is None:
            return False
        if self.engine.has_node(self.node_id):
            return True
        logger.warning("Dragged node %s was removed, releasing it", self.node_id)
        self._reset(GestureState.IDLE)
        return False

    def _reset(self, state):
        self.state = state
        self.node_id = None
        self.edge_id = None
        self._origin = None
        self._last = None


def _segment_distance(px, py, ax, ay, bx, by):
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / length_sq))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))
