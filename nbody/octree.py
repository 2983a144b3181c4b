"""
Octree spatial index used by the Barnes-Hut accelerator.

A tree is built from scratch every frame with ``octree_of`` and never mutated
afterwards, so every derived field (center of mass, counts, depth) is computed
once at construction. Nodes reference the caller's bodies; they never copy
them, so in-place physics updates on a Body stay visible through the tree.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .constants import MAX_DEPTH
from .geometry import Box, PointMass, PositionedMass, Vector, center_of_mass

OctantCoordinates = Tuple[int, int, int]

# Slot i of a composite's children holds octant i.
OCTANT_INDEX_TO_COORDS: Tuple[OctantCoordinates, ...] = (
    (0, 0, 0),
    (0, 0, 1),
    (0, 1, 0),
    (0, 1, 1),
    (1, 0, 0),
    (1, 0, 1),
    (1, 1, 0),
    (1, 1, 1),
)


@dataclass(eq=False)
class OctreeLeaf:
    """
    A node holding at most one body, or several once the depth cap is hit.
    An empty leaf's center of mass is its box median with zero mass.
    """

    bodies: List[PositionedMass]
    box: Box
    center_of_mass: PositionedMass = field(init=False)
    count: int = field(init=False)
    depth: int = field(init=False, default=1)
    node_count: int = field(init=False, default=1)

    def __post_init__(self) -> None:
        self.count = len(self.bodies)
        if self.count == 1:
            self.center_of_mass = self.bodies[0]
        else:
            self.center_of_mass = center_of_mass(self.bodies, fallback=self.box.median)


@dataclass(eq=False)
class CompositeOctree:
    """A node split into exactly eight children, one per octant."""

    children: List[Octree]
    box: Box
    center_of_mass: PointMass = field(init=False)
    bodies: List[PositionedMass] = field(init=False)
    count: int = field(init=False)
    depth: int = field(init=False)
    node_count: int = field(init=False)

    def __post_init__(self) -> None:
        if len(self.children) != 8:
            raise ValueError("a composite octree needs exactly 8 children")
        self.center_of_mass = center_of_mass(
            (child.center_of_mass for child in self.children), fallback=self.box.median
        )
        self.bodies = [body for child in self.children for body in child.bodies]
        self.count = sum(child.count for child in self.children)
        self.depth = 1 + max(child.depth for child in self.children)
        self.node_count = 1 + sum(child.node_count for child in self.children)

    def __repr__(self) -> str:
        return f"CompositeOctree(box={self.box!r}, count={self.count}, depth={self.depth})"


Octree = Union[OctreeLeaf, CompositeOctree]


def octree_of(
    bodies: Sequence[PositionedMass] = (),
    box: Optional[Box] = None,
    depth: int = 1,
) -> Octree:
    """
    Build an octree over ``bodies``.

    With fewer than two bodies, or past MAX_DEPTH, the result is a leaf.
    Otherwise the box is split at its median into 8 octants and each group of
    bodies is built recursively; empty octants become empty leaves so a child's
    slot always equals its octant index.
    """
    if box is None:
        box = enclosing_cube(bodies)

    if len(bodies) <= 1 or depth > MAX_DEPTH:
        return OctreeLeaf(list(bodies), box)

    groups = group_by_octant_index(bodies, box.median)
    boxes = divide_octant_box(box)
    children: List[Octree] = []
    for index, octant_box in enumerate(boxes):
        group = groups.get(index)
        if group:
            children.append(octree_of(group, octant_box, depth + 1))
        else:
            children.append(OctreeLeaf([], octant_box))
    return CompositeOctree(children, box)


def enclosing_cube(bodies: Sequence[PositionedMass] = ()) -> Box:
    """
    Smallest cube holding every body, centered on the bodies' extent.

    An empty sequence gives the degenerate box at the origin.
    """
    if not bodies:
        return Box((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))

    low = np.array(bodies[0].position, dtype=float)
    high = low.copy()
    for body in bodies[1:]:
        np.minimum(low, body.position, out=low)
        np.maximum(high, body.position, out=high)

    size = float(np.max(np.abs(high - low)))
    return Box.centered_cube((high + low) / 2.0, size)


def octant_coords_to_index(coords: OctantCoordinates) -> int:
    x, y, z = coords
    return x * 4 + y * 2 + z


def octant_index_for(position: Vector, median: Vector) -> int:
    return (
        (0 if position[0] < median[0] else 4)
        + (0 if position[1] < median[1] else 2)
        + (0 if position[2] < median[2] else 1)
    )


def octant_coords_for(position: Vector, median: Vector) -> OctantCoordinates:
    return OCTANT_INDEX_TO_COORDS[octant_index_for(position, median)]


def group_by_octant_index(
    bodies: Sequence[PositionedMass], median: Vector
) -> Dict[int, List[PositionedMass]]:
    """Group bodies by the octant of the box whose median is ``median``."""
    groups: Dict[int, List[PositionedMass]] = defaultdict(list)
    for body in bodies:
        groups[octant_index_for(body.position, median)].append(body)
    return groups


def create_octant_box(coords: OctantCoordinates, parent_box: Box) -> Box:
    """Return the half of ``parent_box`` on the ``coords`` side of its median along each axis."""
    median = parent_box.median
    low = [parent_box.min[axis] if side == 0 else median[axis] for axis, side in enumerate(coords)]
    high = [median[axis] if side == 0 else parent_box.max[axis] for axis, side in enumerate(coords)]
    return Box(low, high)


def divide_octant_box(parent_box: Box) -> List[Box]:
    """The 8 octant boxes of ``parent_box``, indexed by octant index."""
    return [create_octant_box(coords, parent_box) for coords in OCTANT_INDEX_TO_COORDS]


def median_segments(octree: Octree, max_depth: int) -> np.ndarray:
    """
    Line segments depicting the partition, for renderers that draw it.

    Each non-empty node down to ``max_depth`` (root is level 1) contributes its
    three median axes as 6 vertices. Returns an (n_vertices, 3) array; vertex
    pairs are segment endpoints.
    """
    vertices: List[Vector] = []

    def visit(node: Octree, level: int) -> None:
        if level > max_depth or node.count == 0:
            return
        lo, hi, mid = node.box.min, node.box.max, node.box.median
        for axis in range(3):
            start = mid.copy()
            end = mid.copy()
            start[axis] = lo[axis]
            end[axis] = hi[axis]
            vertices.append(start)
            vertices.append(end)
        if isinstance(node, CompositeOctree):
            for child in node.children:
                visit(child, level + 1)

    visit(octree, 1)
    if not vertices:
        return np.zeros((0, 3), dtype=float)
    return np.array(vertices, dtype=float)
