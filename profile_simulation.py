"""
Profile octree construction and integrator steps across several scenarios,
capturing per-phase timings and traversal counters. Results are printed and
appended to profiling_runs.csv.

Run from repo root:
    python profile_simulation.py
"""

from __future__ import annotations

import csv
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List

from nbody.integrators import updater_for
from nbody.physics import cloud_bodies
from nbody.system import System

DEFAULT_DT = 60.0
STEPS_PER_SCENARIO = 6  # first = cold, remaining warm
SEED = 7


@dataclass
class Scenario:
    name: str
    body_count: int
    sd_max_ratio: float
    integrator: str = "leapfrog"


SCENARIOS: List[Scenario] = [
    Scenario(name="cloud_500_theta_0.8", body_count=500, sd_max_ratio=0.8),
    Scenario(name="cloud_500_theta_0.3", body_count=500, sd_max_ratio=0.3),
    Scenario(name="cloud_2000_theta_0.8", body_count=2000, sd_max_ratio=0.8),
    Scenario(name="cloud_2000_euler", body_count=2000, sd_max_ratio=0.8, integrator="euler"),
]


CSV_FIELDS = [
    "timestamp",
    "scenario",
    "step",
    "run_kind",
    "build_octree_ms",
    "update_ms",
    "leaf_interactions",
    "composite_interactions",
    "node_count",
    "tree_depth",
    "body_count",
    "sd_max_ratio",
    "integrator",
    "dt_sec",
]


def _ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def _percentile(values: List[float], pct: float) -> float:
    if not values:
        return 0.0
    values_sorted = sorted(values)
    k = (len(values_sorted) - 1) * pct / 100.0
    lower = int(k)
    upper = min(lower + 1, len(values_sorted) - 1)
    if lower == upper:
        return values_sorted[lower]
    fraction = k - lower
    return values_sorted[lower] + (values_sorted[upper] - values_sorted[lower]) * fraction


def _summary_line(values: List[float]) -> str:
    if not values:
        return "min=0.0 p50=0.0 p95=0.0 max=0.0"
    return (
        f"min={min(values):.1f} ms "
        f"p50={_percentile(values, 50):.1f} ms "
        f"p95={_percentile(values, 95):.1f} ms "
        f"max={max(values):.1f} ms"
    )


def profile_scenario(scenario: Scenario, run_timestamp: str) -> List[Dict[str, object]]:
    """Return one trace row per integrator step of ``scenario``."""
    updater = updater_for(scenario.integrator, scenario.sd_max_ratio)
    system = System(
        name=scenario.name,
        updater=updater,
        initial_bodies=cloud_bodies(count=scenario.body_count, seed=SEED),
    )
    positions = [0.0] * (3 * len(system.bodies))

    rows: List[Dict[str, object]] = []
    for step in range(STEPS_PER_SCENARIO):
        updater.clear_stats()

        build_start = time.perf_counter()
        octree = system.build_octree()
        build_ms = _ms(build_start)

        update_start = time.perf_counter()
        updater.update(octree, positions, system.bodies, DEFAULT_DT * 1000.0)
        update_ms = _ms(update_start)

        stats = updater.get_stats()
        rows.append(
            {
                "timestamp": run_timestamp,
                "scenario": scenario.name,
                "step": step,
                "run_kind": "cold" if step == 0 else "warm",
                "build_octree_ms": build_ms,
                "update_ms": update_ms,
                "leaf_interactions": stats.leaf,
                "composite_interactions": stats.composite,
                "node_count": stats.nodes,
                "tree_depth": stats.depth,
                "body_count": scenario.body_count,
                "sd_max_ratio": scenario.sd_max_ratio,
                "integrator": scenario.integrator,
                "dt_sec": DEFAULT_DT,
            }
        )
    return rows


def _write_trace(rows: List[Dict[str, object]], path: str = "profiling_runs.csv") -> None:
    with open(path, "a", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        if f.tell() == 0:
            writer.writeheader()
        for row in rows:
            writer.writerow(row)


def main() -> None:
    run_timestamp = datetime.now(timezone.utc).isoformat()
    all_rows: List[Dict[str, object]] = []

    for scenario in SCENARIOS:
        scenario_rows = profile_scenario(scenario, run_timestamp)
        all_rows.extend(scenario_rows)

        print(f"\nScenario: {scenario.name} ({scenario.body_count} bodies, "
              f"theta={scenario.sd_max_ratio}, {scenario.integrator}, dt={DEFAULT_DT})")
        cold = [r for r in scenario_rows if r["run_kind"] == "cold"]
        warm = [r for r in scenario_rows if r["run_kind"] == "warm"]

        for label, runs in [("Cold start", cold), ("Warm", warm)]:
            if not runs:
                continue
            build = [r["build_octree_ms"] for r in runs]
            update = [r["update_ms"] for r in runs]
            print(f"- {label} build octree: {_summary_line(build)}")
            print(f"- {label} update: {_summary_line(update)}")

        last = scenario_rows[-1]
        print(
            f"- Interactions per step: leaf={last['leaf_interactions']} "
            f"composite={last['composite_interactions']} "
            f"nodes={last['node_count']} depth={last['tree_depth']}"
        )

    _write_trace(all_rows)
    print("\nPer-step traces appended to profiling_runs.csv")


if __name__ == "__main__":
    main()
