import logging
from dataclasses import dataclass, field, fields, replace

from graph_model import NodeType

logger = logging.getLogger(__name__)

DEFAULT_RADII = {
    NodeType.VERSE: 12.0,
    NodeType.GROUP: 18.0,
    NodeType.NOTE: 10.0,
    NodeType.TAG: 8.0,
}

# Host-facing names -> field names
CAMEL_CASE = {
    "chargeStrength": "charge_strength",
    "linkDistance": "link_distance",
    "linkStrength": "link_strength",
    "centerStrength": "center_strength",
    "clusteringStrength": "clustering_strength",
    "collisionPadding": "collision_padding",
    "maxIterations": "max_iterations",
    "alphaMin": "alpha_min",
    "alphaDecay": "alpha_decay",
    "alphaTarget": "alpha_target",
}


class Viewport:
    def __init__(self, width, height):
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must have a positive size, got {width}x{height}")
        self.width = float(width)
        self.height = float(height)

    @property
    def short_side(self):
        return min(self.width, self.height)

    @property
    def center(self):
        return self.width / 2, self.height / 2

    def __eq__(self, other):
        return isinstance(other, Viewport) and (self.width, self.height) == (other.width, other.height)

    def __repr__(self):
        return f"Viewport({self.width:g}x{self.height:g})"


@dataclass
class ForceConfig:
    """
    Tuning knobs for the simulator.

    Fields left as ``None`` scale with the viewport and are filled in by
    ``resolve``. The numbers are chosen for visual quality, not physics.
    """

    # Charge (repulsion)
    charge_strength: float = None
    charge_cutoff: float = 180.0
    short_range: float = 30.0
    same_type_charge: float = 0.2
    cross_type_charge: float = 1.0

    # Links
    link_distance: float = None
    link_strength: float = 0.7
    same_type_link_bias: float = 1.2
    cross_type_link_bias: float = 0.8

    # Type clustering
    clustering_strength: float = 0.5
    cluster_radius: float = None

    # Centering / sectors
    center_strength: float = 0.1
    sector_offset: float = None
    center_falloff: float = None

    # Collision
    collision_padding: float = 5.0
    node_radii: dict = field(default_factory=lambda: dict(DEFAULT_RADII))
    default_radius: float = 10.0

    # Boundary
    boundary_padding: float = 30.0
    boundary_band: float = 30.0
    boundary_strength: float = 0.3

    max_step: float = None

    # Cooling
    max_iterations: int = 300
    alpha_min: float = 0.001
    alpha_decay: float = 0.0228
    alpha_target: float = 0.0

    # Output / interaction
    publish_every: int = 3
    hit_tolerance: float = 15.0
    tap_threshold: float = 6.0

    def __post_init__(self):
        self.validate()

    def validate(self):
        if int(self.max_iterations) <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if not 0 < self.alpha_decay < 1:
            raise ValueError(f"alpha_decay must be in (0, 1), got {self.alpha_decay}")
        if not 0 < self.alpha_min < 1:
            raise ValueError(f"alpha_min must be in (0, 1), got {self.alpha_min}")
        if int(self.publish_every) <= 0:
            raise ValueError(f"publish_every must be positive, got {self.publish_every}")
        for name in ("collision_padding", "boundary_padding", "boundary_band", "hit_tolerance", "tap_threshold"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @classmethod
    def from_mapping(cls, mapping):
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (mapping or {}).items():
            name = CAMEL_CASE.get(key, key)
            if name not in known:
                logger.warning("Ignoring unknown force option %r", key)
                continue
            kwargs[name] = value
        return cls(**kwargs)

    def resolve(self, viewport):
        """Return a copy with every viewport-relative field filled in."""
        side = viewport.short_side
        defaults = {
            "charge_strength": -30 * 0.01 * side,
            "link_distance": side * 0.15,
            "cluster_radius": side * 0.3,
            "sector_offset": side * 0.25,
            "center_falloff": side * 0.4,
            "max_step": side * 0.1,
        }
        changes = {k: v for k, v in defaults.items() if getattr(self, k) is None}
        return replace(self, **changes)

    def radius_for(self, node_type):
        return self.node_radii.get(node_type, self.default_radius)
