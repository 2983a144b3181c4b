import numpy as np

from nbody.barnes_hut import TraversalStats, accelerate
from nbody.body import Body, two_body_force
from nbody.constants import G
from nbody.geometry import Box
from nbody.octree import octree_of


def random_bodies(count, seed):
    rng = np.random.default_rng(seed)
    return [
        Body(
            mass=rng.uniform(1e20, 1e22),
            radius=1.0,
            position=rng.uniform(-1e7, 1e7, size=3),
            velocity=np.zeros(3),
        )
        for _ in range(count)
    ]


def brute_force_accelerations(bodies):
    accelerations = []
    for target in bodies:
        total = np.zeros(3)
        for source in bodies:
            if source is target:
                continue
            r = source.position - target.position
            total += G * source.mass * r / np.linalg.norm(r) ** 3
        accelerations.append(total)
    return accelerations


def test_full_recursion_matches_brute_force():
    bodies = random_bodies(5, seed=11)
    octree = octree_of(bodies)
    stats = TraversalStats()

    for body in bodies:
        body.reset_acceleration()
        accelerate(body, octree, 0.0, stats)

    for body, expected in zip(bodies, brute_force_accelerations(bodies)):
        np.testing.assert_allclose(body.acceleration, expected, rtol=1e-10)
    assert stats.composite == 0
    assert stats.leaf == 5 * 4
    assert stats.total == stats.leaf


def test_approximation_is_close_and_uses_composites():
    bodies = random_bodies(300, seed=5)
    octree = octree_of(bodies)
    stats = TraversalStats()

    for body in bodies:
        body.reset_acceleration()
        accelerate(body, octree, 0.5, stats)

    approx = np.array([body.acceleration for body in bodies])
    exact = np.array(brute_force_accelerations(bodies))
    errors = np.linalg.norm(approx - exact, axis=1) / np.linalg.norm(exact, axis=1)
    assert stats.composite > 0
    assert stats.total < 300 * 299
    assert np.median(errors) < 0.05


def test_body_does_not_pull_on_itself():
    body = Body(1e24, 1.0, [1.0, 2.0, 3.0], [0.0, 0.0, 0.0])
    body.reset_acceleration()
    accelerate(body, octree_of([body]), 0.8)
    np.testing.assert_array_equal(body.acceleration, [0.0, 0.0, 0.0])


def test_identity_not_equality_decides_self_exclusion():
    a = Body(1e24, 1.0, [5.0, 0.0, 0.0], [0.0, 0.0, 0.0])
    twin = Body(1e24, 1.0, [5.0, 0.0, 0.0], [0.0, 0.0, 0.0])
    a.reset_acceleration()
    with np.errstate(divide="ignore", invalid="ignore"):
        accelerate(a, octree_of([a, twin]), 0.8)
    assert not np.all(np.isfinite(a.acceleration))


def test_newton_third_law():
    bodies = random_bodies(4, seed=2)
    for a in bodies:
        for b in bodies:
            if a is b:
                continue
            np.testing.assert_allclose(two_body_force(a, b), -two_body_force(b, a))


def test_far_cluster_treated_as_one_mass():
    cluster = [
        Body(1e22, 1.0, [1e9, 0.0, 0.0], [0, 0, 0]),
        Body(1e22, 1.0, [1e9 + 10.0, 10.0, 0.0], [0, 0, 0]),
        Body(1e22, 1.0, [1e9, 10.0, 10.0], [0, 0, 0]),
    ]
    probe = Body(1.0, 0.0, [-1e3, -1e3, -1e3], [0, 0, 0])
    octree = octree_of(cluster + [probe], Box([-2e9, -2e9, -2e9], [2e9, 2e9, 2e9]))
    stats = TraversalStats()

    probe.reset_acceleration()
    accelerate(probe, octree, 0.8, stats)

    assert stats.composite == 1
    assert stats.leaf == 0
    com = sum(b.position for b in cluster) / 3.0
    r = com - probe.position
    expected = G * 3e22 * r / np.linalg.norm(r) ** 3
    np.testing.assert_allclose(probe.acceleration, expected, rtol=1e-9)


def test_stats_clear_keeps_tree_shape():
    stats = TraversalStats(leaf=3, composite=2, total=5, nodes=9, depth=2)
    stats.clear()
    assert stats.as_dict() == {"leaf": 0, "composite": 0, "total": 0, "nodes": 9, "depth": 2}
