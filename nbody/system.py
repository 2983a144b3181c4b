"""
Main class for handling a set of gravitating bodies.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from .body import Body
from .clock import Clock
from .constants import DEFAULT_SD_MAX_RATIO, G
from .integrators import LeapfrogSystemUpdater, OctreeSystemUpdater
from .octree import Octree, octree_of

logger = logging.getLogger(__name__)


class System:
    """
    Container that owns Body instances, rebuilds an octree over them every step
    and lets an integrator advance their trajectories.
    """

    def __init__(
        self,
        name: str = "Unnamed system",
        updater: Optional[OctreeSystemUpdater] = None,
        initial_bodies: Optional[Sequence[dict]] = None,
        clock: Optional[Clock] = None,
    ):
        self.name = name
        self.clock = clock
        self.updater = updater or LeapfrogSystemUpdater(DEFAULT_SD_MAX_RATIO)
        self.bodies: List[Body] = []
        self.elapsed = 0.0
        self.position_buffer = np.zeros(0, dtype=float)
        if initial_bodies:
            self.add_bodies(initial_bodies)

    def add_body(
        self,
        mass: float,
        radius: float,
        position: Iterable[float],
        velocity: Iterable[float],
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Body:
        body = Body(mass, radius, position, velocity, name=name, metadata=metadata)
        self.bodies.append(body)
        return body

    def add_bodies(self, configs: Sequence[dict]) -> List[Body]:
        created = []
        for cfg in configs:
            created.append(
                self.add_body(
                    mass=cfg["mass"],
                    radius=cfg.get("radius", 0.0),
                    position=cfg["position"],
                    velocity=cfg["velocity"],
                    name=cfg.get("name"),
                    metadata=cfg.get("metadata"),
                )
            )
        return created

    def total_mass(self) -> float:
        return sum(body.mass for body in self.bodies)

    def build_octree(self) -> Octree:
        return octree_of(self.bodies)

    def step(self, dt: float) -> None:
        """
        Build a fresh octree, then advance each body by dt seconds.
        """
        if not self.bodies:
            return
        self._update(dt * 1000.0)

    def advance(self, timer_id: str = "physics") -> float:
        """
        Frame loop entry point: advance by the clock time that passed since the
        previous call for ``timer_id``. The first call only starts the timer.
        A paused clock yields a zero timestep and nothing moves.

        Returns the timestep in milliseconds.
        """
        if self.clock is None:
            raise ValueError("advance() needs a System created with a clock")
        timer = self.clock.timers.get(timer_id)
        if timer is None:
            self.clock.start_timer(timer_id)
            return 0.0
        timestep_ms = timer.get_delta()
        if timestep_ms and self.bodies:
            self._update(timestep_ms)
        return timestep_ms

    def _update(self, timestep_ms: float) -> None:
        if self.position_buffer.shape != (3 * len(self.bodies),):
            self.position_buffer = np.zeros(3 * len(self.bodies), dtype=float)

        octree = self.build_octree()
        self.updater.update(octree, self.position_buffer, self.bodies, timestep_ms)
        self.elapsed += timestep_ms / 1000.0

        if logger.isEnabledFor(logging.DEBUG):
            stats = self.updater.get_stats()
            logger.debug(
                "t=%.3fs nodes=%d depth=%d interactions=%d (leaf=%d composite=%d)",
                self.elapsed,
                stats.nodes,
                stats.depth,
                stats.total,
                stats.leaf,
                stats.composite,
            )

    def kinetic_energy(self) -> float:
        return sum(body.kinetic_energy() for body in self.bodies)

    def potential_energy(self) -> float:
        """Exact pairwise gravitational potential energy, O(n^2)."""
        if len(self.bodies) < 2:
            return 0.0
        positions = np.array([body.position for body in self.bodies])
        masses = np.array([body.mass for body in self.bodies])
        energy = 0.0
        for i in range(len(self.bodies) - 1):
            offsets = positions[i + 1:] - positions[i]
            distances = np.sqrt(np.einsum("ij,ij->i", offsets, offsets))
            energy -= G * masses[i] * float(np.sum(masses[i + 1:] / distances))
        return energy

    def total_energy(self) -> float:
        return self.kinetic_energy() + self.potential_energy()

    def center_of_mass_velocity(self) -> np.ndarray:
        momentum = sum((body.velocity * body.mass for body in self.bodies), np.zeros(3))
        return momentum / self.total_mass()

    def sample_positions(
        self,
        duration_seconds: float = 300.0,
        sample_rate_hz: float = 10.0,
        restore: bool = True,
    ) -> List[dict]:
        """
        Return a list of samples representing each body's position during the
        requested duration, one integrator step per sample.

        With ``restore`` the live state is put back afterwards; otherwise the
        system is left at the last sample.
        """
        if sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be positive")
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        if not self.bodies:
            return []

        dt = 1.0 / sample_rate_hz
        steps = max(1, math.ceil(duration_seconds * sample_rate_hz))

        # Preserve state so sampling does not mutate the live system.
        preserved_state = [
            (
                body,
                body.position.copy(),
                body.velocity.copy(),
                None if body.acceleration is None else body.acceleration.copy(),
            )
            for body in self.bodies
        ]
        preserved_elapsed = self.elapsed

        def capture_sample(t: float) -> dict:
            return {
                "t": t,
                "positions": [body.position.tolist() for body in self.bodies],
            }

        samples: List[dict] = [capture_sample(0.0)]
        try:
            for idx in range(1, steps + 1):
                self.step(dt)
                samples.append(capture_sample(idx * dt))
        finally:
            if restore:
                for body, position, velocity, acceleration in preserved_state:
                    body.position = position
                    body.velocity = velocity
                    body.acceleration = acceleration
                self.elapsed = preserved_elapsed
        return samples
