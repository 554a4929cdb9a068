import logging
import math
import random

logger = logging.getLogger(__name__)

GOLDEN_RATIO = (1 + math.sqrt(5)) / 2
SMALL_LAYOUT = 10  # circle up to this many nodes
MEDIUM_LAYOUT = 20  # spiral up to this many nodes, grid beyond
GRID_JITTER = 0.3  # total jitter span as a fraction of the cell


def layout_positions(count, viewport, rng=None):
    """Seed positions for ``count`` nodes, chosen by how many there are."""
    if count <= 0:
        return []
    rng = rng or random.Random()

    padding = viewport.short_side * 0.15
    available_w = viewport.width - padding * 2
    available_h = viewport.height - padding * 2
    cx, cy = viewport.center

    if count <= SMALL_LAYOUT:
        radius = min(available_w, available_h) * 0.45
        positions = []
        for i in range(count):
            angle = (i / count) * 2 * math.pi
            positions.append((cx + math.cos(angle) * radius, cy + math.sin(angle) * radius))
        return positions

    if count <= MEDIUM_LAYOUT:
        max_radius = min(available_w, available_h) * 0.45
        positions = []
        for i in range(count):
            theta = i * 2 * math.pi / GOLDEN_RATIO
            distance = math.sqrt(i) / math.sqrt(count) * max_radius
            positions.append((cx + math.cos(theta) * distance, cy + math.sin(theta) * distance))
        return positions

    aspect = available_w / available_h
    cols = math.ceil(math.sqrt(count * aspect))
    rows = math.ceil(count / cols)
    cell_w = available_w / (cols + 0.5)
    cell_h = available_h / (rows + 0.5)

    positions = []
    for i in range(count):
        col = i % cols
        row = i // cols
        jitter_x = (rng.random() - 0.5) * cell_w * GRID_JITTER
        jitter_y = (rng.random() - 0.5) * cell_h * GRID_JITTER
        positions.append((padding + (col + 0.5) * cell_w + jitter_x,
                          padding + (row + 0.5) * cell_h + jitter_y))
    return positions


def initial_positions(nodes, viewport, previous=None, rng=None):
    """
    Place ``nodes`` for a new simulation run.

    Ids already present in ``previous`` (the nodes of the run being replaced)
    keep their live position and pin state so unrelated nodes do not shuffle.
    New ids take the slot they would get in a fresh layout of all nodes.
    Returns copies; ``nodes`` and ``previous`` are left untouched.
    """
    existing = {n.id: n for n in previous or []}
    fresh = [i for i, n in enumerate(nodes) if n.id not in existing]

    slots = []
    if fresh:
        logger.debug("Calculating positions for %d new nodes", len(fresh))
        slots = layout_positions(len(nodes), viewport, rng)

    placed = []
    for i, node in enumerate(nodes):
        out = node.copy()
        prior = existing.get(node.id)
        if prior is not None:
            out.x, out.y = prior.x, prior.y
            out.pinned_x, out.pinned_y = prior.pinned_x, prior.pinned_y
        else:
            out.x, out.y = slots[i]
            out.pinned_x = out.pinned_y = None
        placed.append(out)
    return placed
