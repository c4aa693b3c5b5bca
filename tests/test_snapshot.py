# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.snapshot import render_snapshot


def test_renders_full_state(manager, tmp_path):
    manager.add_agent("a", (100, 100))
    manager.set_agent_goal("a", (300, 100))
    manager.add_obstacle("rock", "circle", (200, 300), {"radius": 40})
    manager.add_object("box", "rectangle", (400, 400), {"width": 80, "height": 40}, is_target=True)
    manager.add_object("shard", "custom", (600, 600), {"points": [(0, 0), (40, 0), (0, 40)]})
    slots = manager.arrange_formation("box", ["a"])
    out = tmp_path / "snap.png"
    fig = render_snapshot(manager.get_state(), out, slots=slots.values(),
                          paths={"a": [Vector2D(100, 100), Vector2D(200, 150), Vector2D(300, 100)]})
    assert out.exists() and out.stat().st_size > 0
    ax = fig.axes[0]
    assert ax.get_xlim() == (0, 2000)
    assert ax.get_title() == "1 agents"


def test_renders_agent_map_without_saving(manager):
    manager.add_agent("a", (50, 50))
    fig = render_snapshot(manager.get_agent_states(), world=(500, 400))
    assert fig.axes[0].get_ylim() == (400, 0)
