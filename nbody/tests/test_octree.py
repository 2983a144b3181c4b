import numpy as np
import pytest

from nbody.geometry import Box, PointMass, center_of_mass
from nbody.octree import (
    OCTANT_INDEX_TO_COORDS,
    CompositeOctree,
    OctreeLeaf,
    create_octant_box,
    enclosing_cube,
    median_segments,
    octant_coords_for,
    octant_coords_to_index,
    octree_of,
)


def mass(x, y, z, m=1.0):
    return PointMass(position=np.array([x, y, z], dtype=float), mass=m)


def box4():
    return Box([-2, -2, -2], [2, 2, 2])


def children_contain_their_center_of_mass(node):
    if isinstance(node, OctreeLeaf):
        return True
    for child in node.children:
        if child.count and not child.box.contains(child.center_of_mass.position):
            return False
        if not children_contain_their_center_of_mass(child):
            return False
    return True


def count_nodes(node):
    if isinstance(node, OctreeLeaf):
        return 1
    return 1 + sum(count_nodes(child) for child in node.children)


@pytest.mark.parametrize("bodies", [[], [mass(1, 1, 1)]])
def test_octree_of_zero_or_one_body_is_leaf(bodies):
    octree = octree_of(bodies, box4())
    assert isinstance(octree, OctreeLeaf)
    assert octree.depth == 1
    assert octree.node_count == 1
    assert octree.count == len(bodies)


def test_empty_leaf_center_of_mass_is_box_median():
    leaf = octree_of([], box4())
    assert leaf.center_of_mass.mass == 0
    np.testing.assert_array_equal(leaf.center_of_mass.position, [0, 0, 0])


def test_single_body_leaf_references_the_body():
    body = mass(1, 1, 1)
    leaf = octree_of([body], box4())
    assert leaf.bodies[0] is body
    assert leaf.center_of_mass is body


def test_octant_index_round_trip():
    for index in range(8):
        assert octant_coords_to_index(OCTANT_INDEX_TO_COORDS[index]) == index


def test_octant_index_to_coords_order():
    assert OCTANT_INDEX_TO_COORDS[0] == (0, 0, 0)
    assert OCTANT_INDEX_TO_COORDS[1] == (0, 0, 1)
    assert OCTANT_INDEX_TO_COORDS[2] == (0, 1, 0)
    assert OCTANT_INDEX_TO_COORDS[4] == (1, 0, 0)
    assert OCTANT_INDEX_TO_COORDS[7] == (1, 1, 1)


def test_octant_coords_for_uses_median_as_high_side():
    median = np.zeros(3)
    assert octant_coords_for(np.array([-1.0, -1.0, -1.0]), median) == (0, 0, 0)
    assert octant_coords_for(np.array([0.0, 0.0, 0.0]), median) == (1, 1, 1)
    assert octant_coords_for(np.array([1.0, -1.0, 1.0]), median) == (1, 0, 1)


def test_create_octant_box_halves_parent():
    child = create_octant_box((1, 0, 1), box4())
    np.testing.assert_array_equal(child.min, [0, -2, 0])
    np.testing.assert_array_equal(child.max, [2, 0, 2])


def test_octree_depth_2_two_bodies():
    bodies = [mass(-1, 1, 1), mass(1, 1, -1)]
    octree = octree_of(bodies, box4())
    assert isinstance(octree, CompositeOctree)
    assert octree.depth == 2
    assert len(octree.children) == 8
    assert children_contain_their_center_of_mass(octree)


def test_octree_depth_2_three_bodies():
    bodies = [mass(1, -1, -1), mass(-1, -1, -1), mass(-1, -1, 1)]
    octree = octree_of(bodies, box4())
    assert isinstance(octree, CompositeOctree)
    assert octree.depth == 2
    assert children_contain_their_center_of_mass(octree)


def test_octree_depth_3_three_bodies():
    bodies = [mass(0.5, 0.5, 0.5), mass(1.5, 1.5, 1.5), mass(1, 1, -1)]
    octree = octree_of(bodies, box4())
    assert isinstance(octree, CompositeOctree)
    assert octree.depth == 3
    assert children_contain_their_center_of_mass(octree)


def test_children_slots_match_octant_index():
    bodies = [mass(-1, -1, -1), mass(1, 1, 1)]
    octree = octree_of(bodies, box4())
    assert octree.children[0].bodies == [bodies[0]]
    assert octree.children[7].bodies == [bodies[1]]
    assert all(octree.children[i].count == 0 for i in range(1, 7))


def test_random_cloud_counts_and_containment():
    rng = np.random.default_rng(42)
    points = rng.uniform(-100.0, 100.0, size=(200, 3))
    bodies = [mass(*p, m=rng.uniform(1.0, 10.0)) for p in points]
    octree = octree_of(bodies, Box([-128, -128, -128], [128, 128, 128]))

    assert octree.count == len(bodies)
    assert octree.node_count == count_nodes(octree)
    assert len(octree.bodies) == len(bodies)
    assert {id(b) for b in octree.bodies} == {id(b) for b in bodies}
    assert children_contain_their_center_of_mass(octree)


def test_composite_center_of_mass_matches_direct_average():
    rng = np.random.default_rng(3)
    bodies = [mass(*rng.normal(size=3), m=rng.uniform(0.5, 5.0)) for _ in range(50)]
    octree = octree_of(bodies)

    masses = np.array([b.mass for b in bodies])
    positions = np.array([b.position for b in bodies])
    expected = (positions * masses[:, None]).sum(axis=0) / masses.sum()

    assert octree.center_of_mass.mass == pytest.approx(masses.sum())
    np.testing.assert_allclose(octree.center_of_mass.position, expected, rtol=1e-12, atol=1e-12)
    direct = center_of_mass(octree.bodies)
    np.testing.assert_allclose(octree.center_of_mass.position, direct.position, atol=1e-12)


def test_coincident_bodies_stop_at_depth_cap():
    bodies = [mass(1, 1, 1), mass(1, 1, 1)]
    octree = octree_of(bodies)
    assert octree.count == 2
    assert octree.depth == 41


def test_enclosing_cube_is_cube_around_extent():
    bodies = [mass(0, 0, 0), mass(4, 1, -2)]
    cube = enclosing_cube(bodies)
    np.testing.assert_allclose(cube.dimensions, [4, 4, 4])
    np.testing.assert_allclose(cube.median, [2, 0.5, -1])


def test_enclosing_cube_of_nothing_is_degenerate():
    cube = enclosing_cube([])
    assert cube.max_dimension == 0


def test_box_contains_is_half_open():
    box = box4()
    assert box.contains(np.array([-2.0, -2.0, -2.0]))
    assert not box.contains(np.array([2.0, 0.0, 0.0]))
    assert box.contains(np.array([1.999, 1.999, 1.999]))


def test_median_segments_depth_limited():
    bodies = [mass(-1, -1, -1), mass(1, 1, 1)]
    octree = octree_of(bodies, box4())

    root_only = median_segments(octree, 1)
    assert root_only.shape == (6, 3)
    np.testing.assert_array_equal(root_only[0], [-2, 0, 0])
    np.testing.assert_array_equal(root_only[1], [2, 0, 0])

    # root plus its two non-empty leaves, empty octants are skipped
    assert median_segments(octree, 2).shape == (18, 3)
    assert median_segments(octree_of([], box4()), 3).shape == (0, 3)
