import logging
import math
import random

from force_config import ForceConfig, Viewport
from graph_model import link_graph, normalize
from layout_init import initial_positions
from snapshot import SnapshotPublisher

logger = logging.getLogger(__name__)

MIN_DISTANCE = 1.0  # floor for force magnitudes between (almost) coincident nodes


class SimulationState:
    """Nodes of one simulation run plus its cooling progress."""

    def __init__(self, nodes, viewport, graph=None, alpha=1.0):
        self.nodes = list(nodes)
        self.index = {n.id: i for i, n in enumerate(self.nodes)}
        self.viewport = viewport
        self.graph = graph if graph is not None else link_graph(self.nodes, [])
        self.alpha = alpha
        self.iteration = 0

    @property
    def node_ids(self):
        return frozenset(self.index)

    @property
    def has_pinned(self):
        return any(n.pinned for n in self.nodes)

    def node(self, node_id):
        i = self.index.get(node_id)
        return None if i is None else self.nodes[i]


def cool(alpha, config):
    return max(config.alpha_min, alpha * (1 - config.alpha_decay) + config.alpha_target * config.alpha_decay)


def converged(state, config):
    return state.iteration >= config.max_iterations or state.alpha <= config.alpha_min


def _pair_direction(i, j):
    """Unit vector for separating coincident nodes i and j; opposite for (j, i)."""
    lo, hi = min(i, j), max(i, j)
    angle = math.radians((lo * 7919 + hi * 104729) % 360)
    sign = 1.0 if i < j else -1.0
    return sign * math.cos(angle), sign * math.sin(angle)


def _repair(node, config, viewport):
    radius = getattr(node, "radius", None)
    if not isinstance(radius, (int, float)) or not radius > 0:
        node.radius = config.radius_for(getattr(node, "type", None))
    for value in (node.x, node.y):
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            node.x, node.y = viewport.center
            break


def _clamp(value, lo, hi):
    if lo > hi:
        return (lo + hi) / 2
    return max(lo, min(hi, value))


def tick(state, graph, config):
    """
    Advance ``state`` by one step and return it.

    Every displacement is computed from the positions at the start of the
    tick, then applied at once. ``config`` must be resolved for the state's
    viewport. Pinned nodes end the tick exactly on their pinned coordinates.
    """
    graph = graph if graph is not None else state.graph
    viewport = state.viewport
    nodes = state.nodes

    state.iteration += 1
    state.alpha = cool(state.alpha, config)
    alpha = state.alpha

    for node in nodes:
        _repair(node, config, viewport)
        if node.pinned:
            node.x, node.y = node.pinned_x, node.pinned_y

    xs =[n.x for n in nodes]
    ys = [n.y for n in nodes]

    # Group by type, in order of first appearance
    type_order = []
    sums = {}
    for n in nodes:
        if n.type not in sums:
            type_order.append(n.type)
            sums[n.type] = [0.0, 0.0, 0]
        acc = sums[n.type]
        acc[0] += n.x
        acc[1] += n.y
        acc[2] += 1

    center_x, center_y = viewport.center
    charge = -config.charge_strength
    padding = config.boundary_padding
    inner = padding + config.boundary_band

    moved = []
    for i, node in enumerate(nodes):
        if node.pinned:
            moved.append((node.pinned_x, node.pinned_y))
            continue

        x, y = xs[i], ys[i]
        fx = fy = 0.0

        # 1. Charge and 5. Collision (pairwise)
        for j, other in enumerate(nodes):
            if j == i:
                continue
            dx = x - xs[j]
            dy = y - ys[j]
            dist = math.hypot(dx, dy)
            if dist > 1e-9:
                ux, uy = dx / dist, dy / dist
            else:
                ux, uy = _pair_direction(i, j)
            d = max(dist, MIN_DISTANCE)

            if dist < config.charge_cutoff:
                factor = config.same_type_charge if node.type == other.type else config.cross_type_charge
                force = charge * factor / d
                if d < config.short_range:
                    force *= config.short_range / d
                fx += ux * force * alpha
                fy += uy * force * alpha

            min_distance = node.radius + other.radius + config.collision_padding
            if dist < min_distance:
                push = (min_distance - dist) * alpha * 0.5
                fx += ux * push
                fy += uy * push

        # 2. Links
        if node.id in graph:
            for _, other_id, data in graph.edges(node.id, data=True):
                j = state.index.get(other_id)
                if j is None:
                    continue
                dx = x - xs[j]
                dy = y - ys[j]
                dist = math.hypot(dx, dy)
                if dist > 1e-9:
                    ux, uy = dx / dist, dy / dist
                else:
                    ux, uy = _pair_direction(i, j)

                bias = config.same_type_link_bias if node.type == nodes[j].type else config.cross_type_link_bias
                strength = config.link_strength * bias
                if data.get("weight"):
                    strength *= data["weight"]
                force = (dist - config.link_distance) * strength * alpha
                fx -= ux * force
                fy -= uy * force

        # 3. Type clustering
        sx, sy, count = sums[node.type]
        if count > 1:
            dx = (sx - x) / (count - 1) - x
            dy = (sy - y) / (count - 1) - y
            if math.hypot(dx, dy) < config.cluster_radius:
                fx += dx * config.clustering_strength * alpha * 0.01
                fy += dy * config.clustering_strength * alpha * 0.01

        # 4. Centering, one sector per type when several types are present
        target_x, target_y = center_x, center_y
        if len(type_order) > 1:
            angle = type_order.index(node.type) / len(type_order) * 2 * math.pi
            target_x += math.cos(angle) * config.sector_offset
            target_y += math.sin(angle) * config.sector_offset
        dx = target_x - x
        dy = target_y - y
        falloff = min(1.0, math.hypot(dx, dy) / config.center_falloff)
        fx += dx * config.center_strength * alpha * falloff
        fy += dy * config.center_strength * alpha * falloff

        # 6. Boundary, kept proportional to alpha so it never switches off
        boundary = config.boundary_strength * alpha
        if x < inner:
            fx += boundary * (inner - x)
        if x > viewport.width - inner:
            fx -= boundary * (x - (viewport.width - inner))
        if y < inner:
            fy += boundary * (inner - y)
        if y > viewport.height - inner:
            fy -= boundary * (y - (viewport.height - inner))

        step = math.hypot(fx, fy)
        if step > config.max_step:
            fx *= config.max_step / step
            fy *= config.max_step / step

        moved.append((
            _clamp(x + fx, padding, viewport.width - padding),
            _clamp(y + fy, padding, viewport.height - padding),
        ))

    for node, (x, y) in zip(nodes, moved):
        node.x, node.y = x, y
    return state


class GraphEngine:
    """
    Runs the layout for a changing node/edge set, one tick per scheduler frame.

    The engine is the only writer of node positions. Hosts feed it data with
    ``set_graph``, read positions through ``subscribe``/``snapshot`` and hold
    nodes in place with ``pin``/``unpin``.
    """

    def __init__(self, scheduler, viewport=(800, 600), config=None, rng=None, on_diagnostic=None):
        self.scheduler = scheduler
        self._viewport = viewport if isinstance(viewport, Viewport) else Viewport(*viewport)
        self._base_config = config or ForceConfig()
        self._config = self._base_config.resolve(self._viewport)
        self.rng = rng or random.Random()
        self.on_diagnostic = on_diagnostic

        self.publisher = SnapshotPublisher(self._config.publish_every)
        self.state = None
        self.edges = []
        self._graph_listeners = []
        self._handle = None
        self._running = False

    @property
    def running(self):
        return self._running

    @property
    def viewport(self):
        return self._viewport

    @property
    def config(self):
        return self._config

    # Data

    def set_graph(self, nodes, edges):
        new_nodes, new_edges = normalize(nodes, edges, on_diagnostic=self.on_diagnostic)

        if not new_nodes:
            if self.state is not None:
                logger.info("Node set is empty, going idle")
            self.stop()
            self.state = None
            self.edges = []
            self.publisher.publish_empty()
            self._notify_graph_changed()
            return

        if self.state is not None and self.state.node_ids == frozenset(n.id for n in new_nodes):
            # Same nodes: keep the live run, only links and metadata change
            for fresh in new_nodes:
                live = self.state.node(fresh.id)
                live.type, live.label, live.data = fresh.type, fresh.label, fresh.data
                live.source_id = fresh.source_id
                live.radius = self._config.radius_for(live.type)
            self.state.graph = link_graph(self.state.nodes, new_edges)
            self.edges = new_edges
            logger.debug("Links updated: %d edges", len(new_edges))
            self._notify_graph_changed()
            self.reheat()
            return

        previous = self.state.nodes if self.state is not None else None
        self.stop()

        placed = initial_positions(new_nodes, self._viewport, previous, self.rng)
        for node in placed:
            node.radius = self._config.radius_for(node.type)
        self.state = SimulationState(placed, self._viewport, link_graph(placed, new_edges))
        self.edges = new_edges
        logger.info("Initializing %d nodes, %d edges", len(placed), len(new_edges))

        self.publisher.on_tick(self.state, immediate=True)
        self._notify_graph_changed()
        self.start()

    def has_node(self, node_id):
        return self.state is not None and node_id in self.state.index

    def node(self, node_id):
        return self.state.node(node_id) if self.state is not None else None

    def on_graph_changed(self, listener):
        self._graph_listeners.append(listener)

    def _notify_graph_changed(self):
        for listener in list(self._graph_listeners):
            listener()

    # Positions

    def subscribe(self, listener):
        return self.publisher.subscribe(listener)

    def snapshot(self):
        return self.publisher.latest

    def pin(self, node_id, x, y):
        node = self.node(node_id)
        if node is None:
            raise KeyError(f"Unknown node {node_id!r}")
        node.pinned_x = float(x)
        node.pinned_y = float(y)

    def unpin(self, node_id):
        node = self.node(node_id)
        if node is None:
            raise KeyError(f"Unknown node {node_id!r}")
        node.pinned_x = node.pinned_y = None

    # Settings

    def set_viewport(self, width, height):
        viewport = Viewport(width, height)
        if viewport == self._viewport:
            return
        self._viewport = viewport
        self._config = self._base_config.resolve(viewport)
        if self.state is not None:
            self.state.viewport = viewport
            self.reheat()

    def set_config(self, config):
        self._base_config = config
        self._config = config.resolve(self._viewport)
        self.publisher.every = self._config.publish_every
        if self.state is not None:
            for node in self.state.nodes:
                node.radius = self._config.radius_for(node.type)
            self.reheat()

    # Loop

    def start(self):
        if self.state is None or self._running:
            return
        self._running = True
        logger.debug("Simulation started at iteration %d", self.state.iteration)
        self._schedule()

    def stop(self):
        if self._handle is not None:
            self.scheduler.cancel_tick(self._handle)
            self._handle = None
        self._running = False

    def dispose(self):
        self.stop()
        self.state = None
        self.edges = []
        self.publisher.publish_empty()

    def reheat(self):
        if self.state is None:
            return
        self.state.alpha = 1.0
        if not self._running:
            self.state.iteration = 0
            self.start()

    def run_to_convergence(self):
        """Tick synchronously until the run halts; for headless use."""
        self.stop()
        state = self.state
        if state is None:
            return None
        while not converged(state, self._config):
            tick(state, state.graph, self._config)
        self.publisher.on_tick(state, final=True)
        return state

    def _schedule(self):
        self._handle = self.scheduler.request_tick(self._on_frame)

    def _on_frame(self):
        self._handle = None
        state = self.state
        if not self._running or state is None:
            return

        if not converged(state, self._config):
            tick(state, state.graph, self._config)
        final = converged(state, self._config)
        self.publisher.on_tick(state, final=final, immediate=state.has_pinned)

        if final:
            self._running = False
            logger.debug("Simulation completed after %d iterations", state.iteration)
        else:
            self._schedule()
