from __future__ import annotations

import argparse
import json

import pytest

from evac_route.cli import _parse_latlon, main

from conftest import DATA_DIR

DATASETS = [
    "--hazards", str(DATA_DIR / "hazards.geojson"),
    "--destinations", str(DATA_DIR / "destinations.json"),
]
START = "4.8133,-75.6961"


def test_parse_latlon():
    c = _parse_latlon("4.8133,-75.6961")
    assert (c.lat, c.lon) == (4.8133, -75.6961)


@pytest.mark.parametrize("text", ["4.8133", "north,-75", "95,0"])
def test_parse_latlon_rejects_garbage(text):
    with pytest.raises(argparse.ArgumentTypeError):
        _parse_latlon(text)


def test_route_to_nearest_meeting_point(tmp_path):
    out = tmp_path / "route.json"
    rc = main(DATASETS + ["--save", str(out), "route", "--start", START])

    assert rc == 0
    points = json.loads(out.read_text())
    assert points[0] == {"lat": 4.8133, "lon": -75.6961}
    assert points[-1] == {"lat": 4.812, "lon": -75.693}


def test_drive_route_through_flooded_underpass_fails():
    rc = main(DATASETS + ["--profile", "drive", "route", "--start", START])
    assert rc == 1


def test_unknown_destination_id():
    rc = main(DATASETS + ["route", "--start", START, "--destination", "42"])
    assert rc == 2


def test_simulate_sample_track(tmp_path):
    out = tmp_path / "replay.json"
    rc = main(DATASETS + ["--save", str(out), "simulate", "--track", str(DATA_DIR / "sample_track.json")])

    assert rc == 0
    rows = json.loads(out.read_text())
    recalcs = [r["i"] for r in rows if "recalc" in r["flags"]]
    assert len(recalcs) == 1
    assert rows[recalcs[0] - 1]["phase"] == "active"
    assert rows[-1]["phase"] == "arrived"
    assert "arrived" in rows[-1]["flags"]
