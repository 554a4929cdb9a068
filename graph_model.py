import logging
import math
from enum import Enum

import networkx as nx

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    VERSE = "VERSE"
    GROUP = "GROUP"
    NOTE = "NOTE"
    TAG = "TAG"


class ConnectionKind(str, Enum):
    CROSS_REFERENCE = "CROSS_REFERENCE"
    THEME = "THEME"
    PARALLEL = "PARALLEL"
    NOTE = "NOTE"
    THEMATIC = "THEMATIC"
    PROPHECY = "PROPHECY"
    GROUP_MEMBER = "GROUP_MEMBER"


def _coerce(enum_cls, value):
    """Map a raw type string onto the enum, keeping unknown strings as-is."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        return value


class Node:
    def __init__(self, id, type=NodeType.VERSE, label="", x=0.0, y=0.0,
                 pinned_x=None, pinned_y=None, radius=None, source_id=None, data=None):
        self.id = id
        self.type = type
        self.label = label
        self.x = x
        self.y = y
        self.pinned_x = pinned_x
        self.pinned_y = pinned_y
        self.radius = radius
        self.source_id = source_id if source_id is not None else id
        self.data = data or {}

    @property
    def pinned(self):
        return self.pinned_x is not None and self.pinned_y is not None

    def copy(self):
        return Node(self.id, self.type, self.label, self.x, self.y,
                    self.pinned_x, self.pinned_y, self.radius, self.source_id, self.data)

    def __repr__(self):
        return f"Node({self.id!r}, {self.type!r}, x={self.x:.1f}, y={self.y:.1f})"


class Edge:
    def __init__(self, id, source, target, type=ConnectionKind.CROSS_REFERENCE, weight=None):
        self.id = id
        self.source = source
        self.target = target
        self.type = type
        self.weight = weight

    def __repr__(self):
        return f"Edge({self.id!r}, {self.source!r} -> {self.target!r})"


class Diagnostic:
    """A non-fatal problem found while normalizing host data."""

    def __init__(self, kind, item_id, message):
        self.kind = kind
        self.item_id = item_id
        self.message = message

    def __repr__(self):
        return f"Diagnostic({self.kind!r}, {self.item_id!r})"


def _field(item, name, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def _unique_id(base, seen, count):
    """Return the first free ``<base>-dup<n>`` id, starting at ``count``."""
    candidate = f"{base}-dup{count}"
    while candidate in seen:
        count += 1
        candidate = f"{base}-dup{count}"
    return candidate


def _weight(raw, edge_id, report):
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = float("nan")
    if not math.isfinite(value) or value <= 0:
        report("bad-weight", edge_id, f"Ignoring weight {raw!r} on edge {edge_id}")
        return None
    return value


def normalize(nodes, edges, on_diagnostic=None, link_isolated=False):
    """
    Build the engine's node and edge lists from host data.

    Duplicate node ids are suffixed (``<id>-dup<n>``), the first occurrence
    keeps the shared id and edges resolve to it. Edges with a missing
    endpoint or that loop on a single node are dropped. Input sequences are
    never mutated.
    """

    def report(kind, item_id, message):
        logger.warning(message)
        if on_diagnostic:
            on_diagnostic(Diagnostic(kind, item_id, message))

    out_nodes = []
    seen = set()
    occurrences = {}  # original id -> times seen
    remap = {}  # original id -> resolved id

    for raw in nodes or []:
        node_id = _field(raw, "id")
        if node_id is None or node_id == "":
            report("missing-id", None, "Dropping node without an id")
            continue
        node_id = str(node_id)

        count = occurrences.get(node_id, 0)
        occurrences[node_id] = count + 1
        resolved = node_id
        if count > 0 or node_id in seen:
            resolved = _unique_id(node_id, seen, max(count, 1))
            report("duplicate-node", node_id,
                   f"Duplicate node id {node_id}, using {resolved}")
        seen.add(resolved)
        remap.setdefault(node_id, resolved)

        out_nodes.append(Node(
            resolved,
            type=_coerce(NodeType, _field(raw, "type", NodeType.VERSE)),
            label=_field(raw, "label", "") or "",
            source_id=node_id,
            data=_field(raw, "data"),
        ))

    out_edges = []
    edge_ids = set()
    for index, raw in enumerate(edges or []):
        raw_source = _field(raw, "source")
        raw_target = _field(raw, "target")
        # Only host ids resolve; generated -dup ids are never edge endpoints
        source = remap.get(str(raw_source)) if raw_source is not None else None
        target = remap.get(str(raw_target)) if raw_target is not None else None

        edge_id = _field(raw, "id")
        edge_id = str(edge_id) if edge_id not in (None, "") else f"{raw_source}-{raw_target}-{index}"

        if source is None or target is None:
            report("missing-endpoint", edge_id,
                   f"Skipping edge {edge_id} due to missing source or target node")
            continue
        if source == target:
            report("self-loop", edge_id, f"Skipping self-referencing edge {edge_id}")
            continue

        if edge_id in edge_ids:
            resolved = _unique_id(edge_id, edge_ids, 1)
            report("duplicate-edge", edge_id, f"Duplicate edge id {edge_id}, using {resolved}")
            edge_id = resolved
        edge_ids.add(edge_id)

        out_edges.append(Edge(
            edge_id, source, target,
            type=_coerce(ConnectionKind, _field(raw, "type", ConnectionKind.CROSS_REFERENCE)),
            weight=_weight(_field(raw, "weight"), edge_id, report),
        ))

    if link_isolated and len(out_nodes) > 1 and not out_edges:
        logger.info("Chaining %d disconnected nodes", len(out_nodes))
        for i in range(len(out_nodes) - 1):
            out_edges.append(Edge(f"default-edge-{i}", out_nodes[i].id, out_nodes[i + 1].id,
                                  type=ConnectionKind.THEME))

    return out_nodes, out_edges


def from_networkx(graph, **kwargs):
    """Normalize a networkx graph whose nodes carry ``type``/``label`` attributes."""
    nodes = []
    for n, data in graph.nodes(data=True):
        nodes.append({
            "id": n,
            "type": data.get("type", NodeType.VERSE),
            "label": data.get("label", str(n)),
            "data": data,
        })

    edges = []
    for u, v, data in graph.edges(data=True):
        edges.append({
            "id": data.get("id"),
            "source": u,
            "target": v,
            "type": data.get("type", ConnectionKind.CROSS_REFERENCE),
            "weight": data.get("weight"),
        })
    return normalize(nodes, edges, **kwargs)


def link_graph(nodes, edges):
    """Undirected multigraph used by the link force; edge keys are edge ids."""
    graph = nx.MultiGraph()
    for node in nodes:
        graph.add_node(node.id)
    for edge in edges:
        if edge.source in graph and edge.target in graph and edge.source != edge.target:
            graph.add_edge(edge.source, edge.target, key=edge.id, type=edge.type, weight=edge.weight)
    return graph
