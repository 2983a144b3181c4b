"""
Vector helpers and axis-aligned boxes shared by the body model and the octree.

Vectors are 3-element float64 numpy arrays. Every helper returns a fresh array
unless an ``out`` buffer is passed, which lets hot paths reuse memory.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

import numpy as np

Vector = np.ndarray


def vector3(values: Iterable[float]) -> Vector:
    vec = np.array(values, dtype=float)
    if vec.shape != (3,):
        raise ValueError("expected a 3-element vector")
    return vec


def subtract(a: Vector, b: Vector, out: Optional[Vector] = None) -> Vector:
    return np.subtract(a, b, out=out)


def add(a: Vector, b: Vector, out: Optional[Vector] = None) -> Vector:
    return np.add(a, b, out=out)


def scale(a: Vector, k: float, out: Optional[Vector] = None) -> Vector:
    return np.multiply(a, k, out=out)


def divide(a: Vector, k: float, out: Optional[Vector] = None) -> Vector:
    return np.divide(a, k, out=out)


def magnitude(v: Vector) -> float:
    # numpy scalar, so dividing by a zero magnitude yields inf/nan instead of raising
    return np.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def absolute(v: Vector) -> Vector:
    return np.abs(v)


def distance_magnitude(a: Vector, b: Vector) -> float:
    return magnitude(subtract(b, a))


class PositionedMass(Protocol):
    """Anything with a mass and a position: a body or an aggregate of bodies."""

    mass: float
    position: Vector


@dataclass(eq=False)
class PointMass:
    """Synthetic positioned mass, used for the center of mass of a group."""

    position: Vector
    mass: float


def center_of_mass(
    masses: Iterable[PositionedMass], fallback: Optional[Vector] = None
) -> PointMass:
    """
    Return the point where the mass-weighted relative positions sum to zero,
    carrying the total mass.

    A group with no mass has no such point; ``fallback`` (or the origin) is
    used as its position and the returned mass is 0.
    """
    weighted = np.zeros(3, dtype=float)
    total_mass = 0.0
    for item in masses:
        weighted += item.position * item.mass
        total_mass += item.mass

    if total_mass == 0:
        position = np.zeros(3) if fallback is None else np.array(fallback, dtype=float)
        return PointMass(position=position, mass=0.0)
    return PointMass(position=weighted / total_mass, mass=total_mass)


class Box:
    """
    Axis-aligned box. ``contains`` is half-open: a point on the max face belongs
    to the neighbouring box.
    """

    def __init__(self, min: Iterable[float], max: Iterable[float]) -> None:
        self.min = vector3(min)
        self.max = vector3(max)
        if np.any(self.min > self.max):
            raise ValueError("box min must not exceed max on any axis")
        self.median = (self.min + self.max) / 2.0
        self.dimensions = np.abs(self.max - self.min)
        self.max_dimension = float(self.dimensions.max())

    @classmethod
    def centered_cube(cls, center: Iterable[float], size: float) -> Box:
        center = vector3(center)
        half = size / 2.0
        return cls(center - half, center + half)

    def contains(self, point: Vector) -> bool:
        return bool(np.all(self.min <= point) and np.all(point < self.max))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Box):
            return NotImplemented
        return bool(np.array_equal(self.min, other.min) and np.array_equal(self.max, other.max))

    def __repr__(self) -> str:
        return f"Box(min={self.min.tolist()}, max={self.max.tolist()})"
