"""
Barnes-Hut force accumulation over an octree.

For a target body, a composite node whose size/distance ratio is below
``sd_max_ratio`` acts as a single mass at its center of mass; otherwise the
traversal opens it and visits its children. Leaves are summed directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .body import Body, force
from .geometry import magnitude, subtract
from .octree import CompositeOctree, Octree


@dataclass
class TraversalStats:
    """
    Interaction counters for observability overlays. Owned by the caller and
    cleared explicitly between measurement windows.
    """

    leaf: int = 0
    composite: int = 0
    total: int = 0
    nodes: int = 0
    depth: int = 0

    def clear(self) -> None:
        self.leaf = 0
        self.composite = 0
        self.total = 0

    def as_dict(self) -> dict:
        return {
            "leaf": self.leaf,
            "composite": self.composite,
            "total": self.total,
            "nodes": self.nodes,
            "depth": self.depth,
        }


def accelerate(
    target: Body,
    node: Octree,
    sd_max_ratio: float,
    stats: Optional[TraversalStats] = None,
) -> None:
    """
    Accumulate into ``target.acceleration`` the pull of every mass under
    ``node``. The caller zeroes the acceleration first when a fresh pass is
    wanted; a body never pulls on itself.
    """
    if not isinstance(node, CompositeOctree):
        for source in node.bodies:
            if source is not target:
                target.add_force_from(source)
                if stats is not None:
                    stats.leaf += 1
                    stats.total += 1
        return

    com = node.center_of_mass
    r = subtract(com.position, target.position)
    d = magnitude(r)

    if node.box.max_dimension / d < sd_max_ratio:
        target.add_force(force(r, d, com.mass, target.mass))
        if stats is not None:
            stats.composite += 1
            stats.total += 1
        return

    for child in node.children:
        accelerate(target, child, sd_max_ratio, stats)
