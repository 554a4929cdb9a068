import math

import pytest

from force_config import ForceConfig, Viewport
from graph_engine import SimulationState, converged, tick
from graph_model import Node, link_graph, normalize

from helpers import chain, pairwise

TYPES = ["VERSE", "GROUP", "NOTE", "TAG"]


def _nodes(ids, node_type="VERSE"):
    return [{"id": i, "type": node_type, "label": i.upper()} for i in ids]


def test_loop_terminates_within_max_iterations(make_engine, scheduler):
    engine = make_engine()
    ids = [f"n{i}" for i in range(12)]
    engine.set_graph(_nodes(ids), chain(ids))
    assert engine.running

    scheduler.run_until_idle()

    assert not engine.running
    assert scheduler.pending == 0
    assert engine.state.iteration <= engine.config.max_iterations
    assert converged(engine.state, engine.config)


def test_alpha_never_increases():
    config = ForceConfig().resolve(Viewport(400, 400))
    nodes, edges = normalize(_nodes(["a", "b", "c"]), chain(["a", "b", "c"]))
    for i, node in enumerate(nodes):
        node.x, node.y = 100 + 50 * i, 200
        node.radius = 12
    state = SimulationState(nodes, Viewport(400, 400), link_graph(nodes, edges))

    alphas = [state.alpha]
    while not converged(state, config):
        tick(state, state.graph, config)
        alphas.append(state.alpha)

    assert all(later <= earlier for earlier, later in zip(alphas, alphas[1:]))
    assert alphas[-1] == pytest.approx(config.alpha_min)
    assert state.iteration <= config.max_iterations


def test_nodes_end_inside_the_padded_viewport(make_engine, scheduler):
    engine = make_engine(viewport=(400, 300))
    ids = [f"n{i}" for i in range(30)]
    nodes = [{"id": i, "type": TYPES[k % 4]} for k, i in enumerate(ids)]
    engine.set_graph(nodes, chain(ids, kind="THEME"))

    scheduler.run_until_idle()

    padding = engine.config.boundary_padding
    for node in engine.state.nodes:
        assert padding <= node.x <= 400 - padding
        assert padding <= node.y <= 300 - padding


def test_pinned_node_does_not_move(make_engine, scheduler):
    engine = make_engine()
    ids = ["a", "b", "c", "d"]
    engine.set_graph(_nodes(ids), chain(ids))
    for _ in range(10):
        scheduler.run_pending()

    node = engine.node("b")
    pinned = (node.x, node.y)
    engine.pin("b", *pinned)

    for _ in range(100):
        scheduler.run_pending()
        assert (node.x, node.y) == pinned

    engine.unpin("b")
    assert not node.pinned


def test_pinned_node_jumps_to_new_pin_on_next_tick(make_engine, scheduler):
    engine = make_engine()
    engine.set_graph(_nodes(["a", "b"]), chain(["a", "b"]))
    engine.pin("a", 250.0, 120.0)
    scheduler.run_pending()
    assert (engine.node("a").x, engine.node("a").y) == (250.0, 120.0)


def test_neighbours_feel_a_moved_pin_on_the_same_tick():
    config = ForceConfig().resolve(Viewport(400, 400))

    def run(a_x):
        nodes = [Node("a", x=a_x, y=200.0, radius=12), Node("b", x=130.0, y=200.0, radius=12)]
        nodes[0].pinned_x, nodes[0].pinned_y = 300.0, 200.0
        state = SimulationState(nodes, Viewport(400, 400))
        tick(state, state.graph, config)
        return nodes

    moved = run(100.0)
    settled = run(300.0)

    assert (moved[0].x, moved[0].y) == (300.0, 200.0)
    assert moved[1].x == pytest.approx(settled[1].x)
    assert moved[1].y == pytest.approx(settled[1].y)


def _one_tick(specs, **options):
    config = ForceConfig(**options).resolve(Viewport(400, 400))
    nodes = [Node(node_id, type=node_type, x=x, y=y, radius=12) for node_id, node_type, x, y in specs]
    state = SimulationState(nodes, Viewport(400, 400))
    tick(state, state.graph, config)
    return {n.id: (n.x, n.y) for n in nodes}


def test_each_type_is_pulled_toward_its_own_sector():
    specs = [("v", "VERSE", 200.0, 150.0), ("n", "NOTE", 200.0, 250.0)]

    shared = _one_tick(specs, sector_offset=0)
    split = _one_tick(specs)

    assert shared["v"][0] == pytest.approx(200.0)
    assert shared["n"][0] == pytest.approx(200.0)
    # VERSE gets the sector at angle 0, NOTE the one at angle pi
    assert split["v"][0] > 200.0
    assert split["n"][0] < 200.0


def test_clustering_only_reaches_within_the_cluster_radius():
    near = [("a", "VERSE", 170.0, 200.0), ("b", "VERSE", 230.0, 200.0)]
    far = [("a", "VERSE", 100.0, 200.0), ("b", "VERSE", 300.0, 200.0)]

    assert _one_tick(near) != _one_tick(near, clustering_strength=0)
    assert _one_tick(far) == _one_tick(far, clustering_strength=0)


def test_sparse_graph_has_no_overlaps(make_engine, scheduler):
    engine = make_engine(viewport=(800, 800))
    nodes = [{"id": f"n{i}", "type": TYPES[i % 3]} for i in range(6)]
    engine.set_graph(nodes, [])

    scheduler.run_until_idle()

    for a, b in pairwise(engine.state.nodes):
        assert math.hypot(a.x - b.x, a.y - b.y) >= a.radius + b.radius - 1e-6


def test_three_verse_chain_scenario(make_engine, scheduler):
    engine = make_engine(viewport=(400, 400))
    engine.set_graph(_nodes(["A", "B", "C"]), chain(["A", "B", "C"]))

    # Initial placement is the three node circle
    radius = 126.0
    for i, node_id in enumerate(["A", "B", "C"]):
        node = engine.node(node_id)
        angle = 2 * math.pi * i / 3
        assert node.x == pytest.approx(200 + radius * math.cos(angle))
        assert node.y == pytest.approx(200 + radius * math.sin(angle))

    scheduler.run_until_idle()

    a, b, c = (engine.node(i) for i in "ABC")
    config = engine.config
    for node in (a, b, c):
        assert config.boundary_padding <= node.x <= 400 - config.boundary_padding
        assert config.boundary_padding <= node.y <= 400 - config.boundary_padding

    min_gap = 2 * 12 + config.collision_padding
    for p, q in pairwise([a, b, c]):
        assert math.hypot(p.x - q.x, p.y - q.y) >= min_gap - 0.5

    # B projects onto the inside of segment A-C
    acx, acy = c.x - a.x, c.y - a.y
    t = ((b.x - a.x) * acx + (b.y - a.y) * acy) / (acx * acx + acy * acy)
    assert 0 < t < 1


def test_adding_a_node_keeps_existing_layout(make_engine, scheduler):
    engine = make_engine()
    ids = ["a", "b", "c", "d"]
    engine.set_graph(_nodes(ids), chain(ids))
    scheduler.run_until_idle()
    before = {n.id: (n.x, n.y) for n in engine.state.nodes}
    old_state = engine.state

    engine.set_graph(_nodes(ids + ["e"]), chain(ids))

    assert engine.state is not old_state
    for node_id, pos in before.items():
        assert (engine.node(node_id).x, engine.node(node_id).y) == pos

    scheduler.run_until_idle()
    limit = 0.25 * engine.viewport.short_side
    for node_id, (x, y) in before.items():
        node = engine.node(node_id)
        assert math.hypot(node.x - x, node.y - y) < limit


def test_replacing_the_node_set_cancels_the_running_loop(make_engine, scheduler):
    engine = make_engine()
    engine.set_graph(_nodes(["a", "b"]), [])
    assert scheduler.pending == 1

    engine.set_graph(_nodes(["a", "c"]), [])

    assert scheduler.pending == 1
    assert engine.has_node("c") and not engine.has_node("b")


def test_edge_only_change_keeps_state(make_engine, scheduler):
    engine = make_engine()
    engine.set_graph(_nodes(["a", "b", "c"]), [])
    scheduler.run_until_idle()
    state = engine.state

    engine.set_graph(_nodes(["a", "b", "c"]), chain(["a", "b", "c"]))

    assert engine.state is state
    assert [e.id for e in engine.edges] == ["a-b", "b-c"]
    assert state.graph.number_of_edges() == 2
    assert engine.running
    assert state.iteration == 0


def test_empty_node_set_goes_idle(make_engine, scheduler):
    engine = make_engine()
    engine.set_graph(_nodes(["a"]), [])

    engine.set_graph([], [])

    assert engine.state is None
    assert not engine.running
    assert scheduler.pending == 0
    assert dict(engine.snapshot()) == {}


def test_stop_is_idempotent(make_engine, scheduler):
    engine = make_engine()
    engine.set_graph(_nodes(["a", "b"]), [])
    engine.stop()
    engine.stop()
    assert not engine.running
    assert scheduler.pending == 0

    engine.dispose()
    engine.dispose()
    assert engine.state is None


def test_reheat_restarts_an_idle_run(make_engine, scheduler):
    engine = make_engine()
    engine.set_graph(_nodes(["a", "b"]), chain(["a", "b"]))
    scheduler.run_until_idle()
    positions = {n.id: (n.x, n.y) for n in engine.state.nodes}

    engine.reheat()

    assert engine.running
    assert engine.state.alpha == 1.0
    assert engine.state.iteration == 0
    assert {n.id: (n.x, n.y) for n in engine.state.nodes} == positions


def test_snapshots_are_throttled(make_engine, scheduler):
    engine = make_engine()
    seen = []
    engine.subscribe(seen.append)
    engine.set_graph(_nodes(["a", "b", "c"]), chain(["a", "b", "c"]))
    assert len(seen) == 1  # initial placement

    for _ in range(9):
        scheduler.run_pending()

    assert len(seen) == 1 + 3
    assert set(seen[-1]) == {"a", "b", "c"}
    with pytest.raises(TypeError):
        seen[-1]["a"] = (0, 0)


def test_pinned_nodes_publish_every_tick(make_engine, scheduler):
    engine = make_engine()
    seen = []
    engine.subscribe(seen.append)
    engine.set_graph(_nodes(["a", "b"]), [])
    engine.pin("a", 100.0, 100.0)

    for _ in range(4):
        scheduler.run_pending()

    assert len(seen) == 1 + 4
    assert seen[-1]["a"] == (100.0, 100.0)


def test_malformed_node_state_is_repaired():
    config = ForceConfig().resolve(Viewport(400, 400))
    broken = [Node("a", x=100.0, y=100.0, radius=None), Node("b", x=float("nan"), y=5.0, radius=-1)]
    state = SimulationState(broken, Viewport(400, 400))

    tick(state, state.graph, config)

    assert broken[0].radius == 12.0
    assert broken[1].radius == 12.0
    assert all(math.isfinite(n.x) and math.isfinite(n.y) for n in broken)


def test_coincident_nodes_are_separated():
    config = ForceConfig().resolve(Viewport(400, 400))
    nodes = [Node("a", x=200.0, y=200.0, radius=12), Node("b", x=200.0, y=200.0, radius=12)]
    state = SimulationState(nodes, Viewport(400, 400))

    tick(state, state.graph, config)

    assert math.hypot(nodes[0].x - nodes[1].x, nodes[0].y - nodes[1].y) > 1


def test_viewport_change_reheats(make_engine, scheduler):
    engine = make_engine()
    engine.set_graph(_nodes(["a", "b"]), [])
    scheduler.run_until_idle()

    engine.set_viewport(800, 600)

    assert engine.running
    assert engine.config.link_distance == pytest.approx(90)
    assert engine.state.viewport == Viewport(800, 600)


def test_unknown_pin_raises(make_engine):
    engine = make_engine()
    engine.set_graph(_nodes(["a"]), [])
    with pytest.raises(KeyError):
        engine.pin("missing", 0, 0)


def test_run_to_convergence_without_scheduler(make_engine):
    engine = make_engine()
    engine.set_graph(_nodes(["a", "b", "c"]), chain(["a", "b", "c"]))

    state = engine.run_to_convergence()

    assert not engine.running
    assert converged(state, engine.config)
    assert set(engine.snapshot()) == {"a", "b", "c"}


def test_diagnostics_reach_the_host(make_engine):
    found = []
    engine = make_engine(on_diagnostic=found.append)
    engine.set_graph(_nodes(["a", "b"]), [{"id": "bad", "source": "a", "target": "ghost"}])
    assert [d.kind for d in found] == ["missing-endpoint"]
    assert engine.edges == []
