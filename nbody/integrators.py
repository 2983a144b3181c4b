"""
Time integrators driven once per frame by an external loop.

Each updater consumes an octree built from the current bodies, accumulates
accelerations through the Barnes-Hut accelerator and advances positions and
velocities in place.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, MutableSequence, Optional, Sequence, Type

import numpy as np

from .barnes_hut import TraversalStats, accelerate
from .body import Body
from .constants import DEBUG, DEFAULT_SD_MAX_RATIO
from .geometry import add, divide
from .octree import Octree

logger = logging.getLogger(__name__)


class NonFiniteStateError(FloatingPointError):
    """A body's position or velocity stopped being finite."""

    def __init__(self, index: int, body: Body) -> None:
        super().__init__(f"body {index} has non-finite state: {body!r}")
        self.index = index
        self.body = body


class OctreeSystemUpdater(ABC):
    """
    Base class for integrators.

    ``sd_max_ratio`` may be changed between frames. ``stats`` accumulates
    traversal counters until ``clear_stats`` is called.
    """

    name = "abstract"

    def __init__(
        self,
        sd_max_ratio: float = DEFAULT_SD_MAX_RATIO,
        check_finite: Optional[bool] = None,
    ) -> None:
        self.sd_max_ratio = float(sd_max_ratio)
        self.check_finite = DEBUG if check_finite is None else check_finite
        self.stats = TraversalStats()
        self.octree: Optional[Octree] = None

    def clear_stats(self) -> None:
        self.stats.clear()

    def get_stats(self) -> TraversalStats:
        if self.octree is not None:
            self.stats.nodes = self.octree.node_count
            self.stats.depth = self.octree.depth
        return self.stats

    def accelerate(self, body: Body, octree: Octree) -> None:
        accelerate(body, octree, self.sd_max_ratio, self.stats)

    @abstractmethod
    def update_bodies_state(self, bodies: Sequence[Body], octree: Octree, dt: float) -> None:
        """Advance ``bodies`` by ``dt`` seconds using forces from ``octree``."""

    def update(
        self,
        octree: Octree,
        position_buffer: MutableSequence[float],
        bodies: Sequence[Body],
        timestep_ms: float,
    ) -> None:
        """
        Run one frame: advance the bodies by ``timestep_ms`` and write body i's
        position to ``position_buffer[3i:3i+3]``.
        """
        self.octree = octree
        self.update_bodies_state(bodies, octree, timestep_ms / 1000.0)
        if self.check_finite:
            self._verify_finite(bodies)

        for i, body in enumerate(bodies):
            offset = i * 3
            position = body.position
            position_buffer[offset] = position[0]
            position_buffer[offset + 1] = position[1]
            position_buffer[offset + 2] = position[2]

    def _verify_finite(self, bodies: Sequence[Body]) -> None:
        for index, body in enumerate(bodies):
            if not (np.all(np.isfinite(body.position)) and np.all(np.isfinite(body.velocity))):
                logger.error("Non-finite state for body %d after %s step", index, self.name)
                raise NonFiniteStateError(index, body)


class EulerSystemUpdater(OctreeSystemUpdater):
    """First order: each body's acceleration is used for both position and velocity."""

    name = "euler"

    def update_bodies_state(self, bodies: Sequence[Body], octree: Octree, dt: float) -> None:
        for body in bodies:
            body.reset_acceleration()
            self.accelerate(body, octree)
            body.update_position(dt)
            body.update_velocity(dt)


class LeapfrogSystemUpdater(OctreeSystemUpdater):
    """
    Second order, time symmetric:

        p(i+1) = p(i) + v(i) dt + a(i) dt^2 / 2
        v(i+1) = v(i) + (a(i) + a(i+1)) / 2 dt

    a(i+1) is kept on the body and reused as a(i) by the next step.
    """

    name = "leapfrog"

    def update_bodies_state(self, bodies: Sequence[Body], octree: Octree, dt: float) -> None:
        # Only the very first step has to compute a(i); all of it before anything moves.
        for body in bodies:
            if body.acceleration is None:
                body.reset_acceleration()
                self.accelerate(body, octree)

        for body in bodies:
            body.update_position(dt)

        for body in bodies:
            acceleration = body.acceleration
            body.acceleration = np.zeros(3, dtype=float)
            self.accelerate(body, octree)
            next_acceleration = body.acceleration

            average = divide(add(acceleration, next_acceleration), 2.0)
            body.do_velocity(average, dt, out=body.velocity)
            body.acceleration = next_acceleration


UPDATERS: Dict[str, Type[OctreeSystemUpdater]] = {
    EulerSystemUpdater.name: EulerSystemUpdater,
    LeapfrogSystemUpdater.name: LeapfrogSystemUpdater,
}


def updater_for(
    name: str,
    sd_max_ratio: float = DEFAULT_SD_MAX_RATIO,
    check_finite: Optional[bool] = None,
) -> OctreeSystemUpdater:
    try:
        updater_cls = UPDATERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"unknown integrator {name!r}, expected one of {sorted(UPDATERS)}"
        ) from None
    return updater_cls(sd_max_ratio, check_finite=check_finite)
