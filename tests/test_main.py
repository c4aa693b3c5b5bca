# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import json
import logging

import pytest

from dronesim.main import main

CONFIG = {
    "environment": {
        "world": {"width": 400, "height": 400},
        "time_limit": 0.5,
        "logging": {"enabled": False},
        "items": [
            {"id": "d1", "type": "drone", "position": [100, 100], "goal": [200, 100]},
            {"id": "rock", "type": "circle", "obstacle": True, "position": [300, 300], "radius": 20},
        ],
    }
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "sim.json"
    path.write_text(json.dumps(CONFIG))
    yield path
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


def test_runs_for_time_limit(config_file, capsys):
    assert main(["-c", str(config_file)]) == 0
    out = capsys.readouterr().out
    assert 0 < int(out.split()[0]) <= 30
    assert "agents at goal" in out


def test_tick_override_and_snapshot(config_file, tmp_path, capsys):
    output = tmp_path / "out.png"
    assert main(["-c", str(config_file), "-t", "3", "-o", str(output)]) == 0
    assert capsys.readouterr().out.startswith("3 ticks")
    assert output.exists()


def test_missing_config_exits():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 1


def test_invalid_config_exits(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"environment": {"items": []}}))
    with pytest.raises(SystemExit) as excinfo:
        main(["-c", str(path)])
    assert excinfo.value.code == 1


def test_bad_tick_count_exits(config_file):
    with pytest.raises(SystemExit):
        main(["-c", str(config_file), "-t", "many"])
