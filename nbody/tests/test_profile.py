import csv

from profile_simulation import STEPS_PER_SCENARIO, Scenario, _percentile, _write_trace, profile_scenario


def test_percentile_interpolates():
    assert _percentile([], 50) == 0.0
    assert _percentile([4.0, 1.0, 3.0, 2.0], 50) == 2.5
    assert _percentile([1.0, 2.0], 100) == 2.0


def test_profile_scenario_rows(tmp_path):
    rows = profile_scenario(Scenario(name="tiny", body_count=30, sd_max_ratio=0.8), "now")
    assert len(rows) == STEPS_PER_SCENARIO
    assert rows[0]["run_kind"] == "cold"
    assert all(row["leaf_interactions"] > 0 for row in rows)
    assert all(row["node_count"] >= 9 for row in rows)

    path = tmp_path / "trace.csv"
    _write_trace(rows, str(path))
    _write_trace(rows, str(path))
    with open(path, newline="") as f:
        assert len(list(csv.DictReader(f))) == 2 * STEPS_PER_SCENARIO
