"""
Mutable representation of a point mass and the Newtonian force law.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import numpy as np

from .constants import G
from .geometry import PositionedMass, Vector, add, magnitude, scale, subtract, vector3


class Body:
    """
    A point mass owning its full kinematic state, in SI units.

    ``acceleration`` is transient: it is None until the first force
    accumulation pass and is rebuilt by the integrators every step.
    ``radius`` is only used for display.
    """

    def __init__(
        self,
        mass: float,
        radius: float,
        position: Iterable[float],
        velocity: Iterable[float],
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.mass = float(mass)
        self.radius = float(radius)
        if self.mass <= 0:
            raise ValueError("mass must be positive")
        if self.radius < 0:
            raise ValueError("radius must not be negative")
        try:
            self.position = vector3(position)
            self.velocity = vector3(velocity)
        except ValueError:
            raise ValueError("position and velocity must be 3-element vectors") from None
        self.acceleration: Optional[Vector] = None
        self.name = name
        self.metadata: Dict[str, Any] = dict(metadata or {})

    def __repr__(self) -> str:
        return (
            f"Body(name={self.name!r}, mass={self.mass!r}, "
            f"position={self.position.tolist()}, velocity={self.velocity.tolist()})"
        )

    def reset_acceleration(self) -> Vector:
        if self.acceleration is None:
            self.acceleration = np.zeros(3, dtype=float)
        else:
            self.acceleration.fill(0.0)
        return self.acceleration

    def add_force(self, force: Vector) -> Vector:
        """Accumulate ``force / mass`` into the acceleration, in place."""
        if self.acceleration is None:
            self.acceleration = np.zeros(3, dtype=float)
        self.acceleration += force / self.mass
        return self.acceleration

    def add_force_from(self, source: PositionedMass) -> Vector:
        return self.add_force(two_body_force(source, self))

    def do_velocity(self, acceleration: Vector, dt: float, out: Optional[Vector] = None) -> Vector:
        """Return v0 + a * dt."""
        step = scale(acceleration, dt)
        return add(self.velocity, step, out=out)

    def do_position(self, acceleration: Vector, dt: float, out: Optional[Vector] = None) -> Vector:
        """Return s0 + v0 * dt + a * dt^2 / 2."""
        step = scale(self.velocity, dt)
        step += scale(acceleration, dt * dt / 2.0)
        return add(self.position, step, out=out)

    def _current_acceleration(self) -> Vector:
        if self.acceleration is None:
            return np.zeros(3, dtype=float)
        return self.acceleration

    def update_position(self, dt: float) -> Vector:
        """Advance the position by dt seconds under the current acceleration."""
        return self.do_position(self._current_acceleration(), dt, out=self.position)

    def update_velocity(self, dt: float) -> Vector:
        """Advance the velocity by dt seconds under the current acceleration."""
        return self.do_velocity(self._current_acceleration(), dt, out=self.velocity)

    def distance_to(self, other: PositionedMass) -> Vector:
        """Vector from this body to ``other``."""
        return subtract(other.position, self.position)

    def kinetic_energy(self) -> float:
        speed = magnitude(self.velocity)
        return 0.5 * self.mass * speed * speed


def two_body_force(source: PositionedMass, target: PositionedMass) -> Vector:
    """Force exerted by ``source`` on ``target``, pointing from target to source."""
    r = subtract(source.position, target.position)
    return force(r, magnitude(r), source.mass, target.mass)


def force(r: Vector, distance: float, m1: float, m2: float) -> Vector:
    """
    Newton's law on a precomputed separation: G * m1 * m2 * r / |r|^3.

    Coincident masses give a zero distance and a non-finite result; nothing
    here softens or guards against it.
    """
    numerator = G * m1 * m2
    denominator = np.float64(distance) ** 3
    return r * (numerator / denominator)
