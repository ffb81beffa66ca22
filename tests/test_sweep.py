"""
Tests for the sweep script's argument handling and CSV output.
"""

import csv

import pytest

import sweep


def test_unknown_scenario_rejected_at_parse_time(capsys):
    with pytest.raises(SystemExit) as exc:
        sweep.main(["--scenario", "blackout"])
    assert exc.value.code == 2
    assert "invalid choice" in capsys.readouterr().err


def test_small_serial_sweep_writes_csv(tmp_path):
    out = tmp_path / "sweep.csv"
    sweep.main([
        "--vehicles", "2,3", "--seeds", "1", "--duration", "30",
        "--scenario", "base", "--csv", str(out),
    ])

    with open(out, newline="") as f:
        rows = list(csv.DictReader(f))
    assert [int(r["num_vehicles"]) for r in rows] == [2, 3]
    assert all(r["scenario"] == "base" for r in rows)
