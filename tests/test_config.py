# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import json

import pytest

from dronesim.config import Config


def _config(**environment):
    environment.setdefault("world", {"width": 400, "height": 300})
    return Config(new_data={"environment": environment})


def test_load_from_file(tmp_path):
    path = tmp_path / "sim.json"
    path.write_text(json.dumps({"environment": {"world": {"width": 10, "height": 20}, "time_limit": 2}}))
    config = Config(config_path=str(path))
    assert config.validate()
    assert config.world == {"width": 10, "height": 20}
    assert config.time_limit == 2.0
    assert config.ticks_per_second == 60
    assert config.random_seed is None


def test_requires_a_source():
    with pytest.raises(ValueError):
        Config()


def test_in_memory_data_is_copied():
    data = {"environment": {"world": {"width": 10, "height": 20}}}
    config = Config(new_data=data)
    config.data["extra"] = True
    assert "extra" not in data
    with pytest.raises(ValueError):
        Config()


@pytest.mark.parametrize("environment", [
    {"world": None},
    {"world": {"width": 0, "height": 10}},
    {"items": {"id": "x"}},
    {"items": [{"type": "drone"}]},
    {"items": [{"id": "a", "type": "drone"}, {"id": "a", "type": "drone"}]},
    {"items": [{"id": "a", "type": "drone", "position": [1]}]},
    {"items": [{"id": "a", "type": "drone", "goal": {"x": 1}}]},
    {"items": [{"id": "a", "type": "drone", "statePositions": [1, 2]}]},
    {"plugins": "module"},
])
def test_rejects_invalid(environment):
    with pytest.raises(ValueError):
        _config(**environment).validate()


def test_missing_environment():
    with pytest.raises(ValueError):
        Config(new_data={"world": {}}).validate()


def test_accepts_position_forms():
    config = _config(items=[
        {"id": "a", "type": "drone", "position": [1, 2], "goal": {"x": 3, "y": 4}},
        {"id": "b", "type": "circle", "statePositions": {"s1": [5, 6]}},
    ])
    assert config.validate()
    assert len(config.items) == 2
    assert config.messages == {}
    assert config.logging == {}
