"""
Utilities for constructing a System from a request payload and sampling its
positions for a renderer. Bodies come either from an explicit list or from a
named preset.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

import numpy as np

from .constants import (
    CLOUD_COUNT,
    CLOUD_MASS,
    CLOUD_RADIUS,
    CLOUD_SPREAD,
    CLOUD_VELOCITY_SPREAD,
    DEFAULT_SD_MAX_RATIO,
    EARTH_MASS,
    EARTH_RADIUS,
    G,
    LUNAR_DISTANCE,
    MOON_MASS,
    MOON_RADIUS,
)
from .integrators import updater_for
from .octree import median_segments
from .system import System

logger = logging.getLogger(__name__)


def circular_orbit_speed(central_mass: float, orbital_radius: float) -> float:
    """Speed of a circular orbit of radius ``orbital_radius`` around ``central_mass``."""
    if orbital_radius <= 0:
        return 0.0
    return math.sqrt(G * central_mass / orbital_radius)


def orbital_period(m1: float, m2: float, separation: float) -> float:
    # Kepler's third law for a circular two-body orbit
    return 2.0 * math.pi * math.sqrt(separation ** 3 / (G * (m1 + m2)))


def _vector3(values: Any) -> List[float]:
    vec = list(values)
    if len(vec) < 3:
        vec.extend([0.0] * (3 - len(vec)))
    return [float(v) for v in vec[:3]]


def cloud_bodies(
    count: int = CLOUD_COUNT,
    seed: Optional[int] = None,
    mass: float = CLOUD_MASS,
    radius: float = CLOUD_RADIUS,
    spread: float = CLOUD_SPREAD,
    velocity_spread: float = CLOUD_VELOCITY_SPREAD,
) -> List[Dict[str, Any]]:
    """
    Equal masses scattered uniformly in a cube of side ``spread`` centered on
    the origin, with velocities uniform in a cube of side ``velocity_spread``.
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    rng = np.random.default_rng(seed)
    positions = rng.uniform(-spread / 2.0, spread / 2.0, size=(count, 3))
    velocities = rng.uniform(-velocity_spread / 2.0, velocity_spread / 2.0, size=(count, 3))
    return [
        {
            "name": f"particle-{idx}",
            "mass": mass,
            "radius": radius,
            "position": positions[idx].tolist(),
            "velocity": velocities[idx].tolist(),
            "metadata": {"kind": "particle"},
        }
        for idx in range(count)
    ]


def earth_moon_bodies(
    earth_mass: float = EARTH_MASS,
    moon_mass: float = MOON_MASS,
    separation: float = LUNAR_DISTANCE,
) -> List[Dict[str, Any]]:
    """
    Earth and Moon on a circular orbit in the xy plane, in the barycentric
    frame so the pair does not drift.
    """
    total = earth_mass + moon_mass
    relative_speed = circular_orbit_speed(total, separation)
    earth_x = -separation * moon_mass / total
    moon_x = separation * earth_mass / total
    return [
        {
            "name": "Earth",
            "mass": earth_mass,
            "radius": EARTH_RADIUS,
            "position": [earth_x, 0.0, 0.0],
            "velocity": [0.0, -relative_speed * moon_mass / total, 0.0],
            "metadata": {"kind": "planet"},
        },
        {
            "name": "Moon",
            "mass": moon_mass,
            "radius": MOON_RADIUS,
            "position": [moon_x, 0.0, 0.0],
            "velocity": [0.0, relative_speed * earth_mass / total, 0.0],
            "metadata": {"kind": "moon"},
        },
    ]


PRESETS = {
    "cloud": lambda cfg: cloud_bodies(
        count=int(cfg.get("count") or CLOUD_COUNT), seed=cfg.get("seed")
    ),
    "earth_moon": lambda cfg: earth_moon_bodies(),
}


def _build_initial_bodies(system_cfg: Dict[str, Any]) -> List[Dict[str, Any]]:
    bodies_cfg = system_cfg.get("bodies")
    if bodies_cfg is not None:
        if not bodies_cfg:
            raise ValueError("bodies must not be empty")
        bodies: List[Dict[str, Any]] = []
        for idx, body in enumerate(bodies_cfg):
            bodies.append(
                {
                    "name": body.get("name") or f"body-{idx}",
                    "mass": body["mass"],
                    "radius": body.get("radius") or 0.0,
                    "position": _vector3(body.get("position") or []),
                    "velocity": _vector3(body.get("velocity") or []),
                    "metadata": dict(body.get("metadata") or {}),
                }
            )
        return bodies

    preset = system_cfg.get("preset") or "cloud"
    builder = PRESETS.get(preset)
    if builder is None:
        raise ValueError(f"unknown preset {preset!r}, expected one of {sorted(PRESETS)}")
    return builder(system_cfg)


def _body_metadata(system: System) -> List[Dict[str, Any]]:
    return [
        {
            "name": body.name,
            "mass": body.mass,
            "radius": body.radius,
            "kind": body.metadata.get("kind", "body"),
        }
        for body in system.bodies
    ]


def samples_for_system(system_cfg: Dict[str, Any], duration_sec: float, dt_sec: float):
    if dt_sec <= 0:
        raise ValueError("dtSec must be positive")
    sd_max_ratio = system_cfg.get("sdMaxRatio")
    updater = updater_for(
        system_cfg.get("integrator") or "leapfrog",
        DEFAULT_SD_MAX_RATIO if sd_max_ratio is None else float(sd_max_ratio),
    )
    system = System(
        name="User system",
        updater=updater,
        initial_bodies=_build_initial_bodies(system_cfg),
    )
    logger.info(
        "Sampling %d bodies for %.1fs at dt=%.3fs with %s (sd_max_ratio=%.2f)",
        len(system.bodies),
        duration_sec,
        dt_sec,
        updater.name,
        updater.sd_max_ratio,
    )

    initial_energy = system.total_energy()
    samples = system.sample_positions(
        duration_seconds=duration_sec, sample_rate_hz=1.0 / dt_sec, restore=False
    )
    final_energy = system.total_energy()

    result: Dict[str, Any] = {
        "bodyMetadata": _body_metadata(system),
        "samples": samples,
        "stats": updater.get_stats().as_dict(),
        "energy": {"initial": initial_energy, "final": final_energy},
    }

    octree_depth = system_cfg.get("octreeDepth")
    if octree_depth:
        segments = median_segments(system.build_octree(), int(octree_depth))
        result["octreeSegments"] = segments.reshape(-1).tolist()
    return result
