# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import pytest

import dronesim.models  # noqa: F401
from dronesim.geometry_utils.polygon import Bounds
from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.messagebus import Message
from dronesim.models.behavior.common import arrival_scale
from dronesim.plugin_registry import available_behaviors, get_behavior
from dronesim.sensor_system import BodyInfo, SenseResult


def _info(body_id, position, kind="drone", velocity=(0, 0), static=False, half=15):
    position = Vector2D.from_any(position)
    return BodyInfo(
        id=body_id, kind=kind, label=f"{kind}_{body_id}", position=position,
        velocity=Vector2D.from_any(velocity), angle=0.0, distance=position.magnitude(),
        is_static=static, is_target=False,
        bounds=Bounds(position.x - half, position.y - half, position.x + half, position.y + half),
    )


def _state(**extra):
    state = {"id": "me", "position": Vector2D(0, 0), "velocity": Vector2D(), "max_speed": 5.0,
             "goal": None, "goal_reached": False}
    state.update(extra)
    return state


def test_builtins_are_registered():
    assert {"idle", "goal_seek", "avoid_obstacles", "flock", "formation_hold"} <= set(available_behaviors())
    assert get_behavior("nope") is None
    assert get_behavior(None) is None


def test_arrival_scale():
    assert arrival_scale(200, 100) == 1.0
    assert arrival_scale(50, 100) == 0.5
    assert arrival_scale(0, 100) == pytest.approx(0.05)


def test_goal_seek():
    behavior = get_behavior("goal_seek")
    intent = behavior.decide(None, [], _state(goal=Vector2D(300, 0)))
    assert intent.target == Vector2D(300, 0)
    assert intent.speed_scale == 1.0
    assert behavior.decide(None, [], _state(goal=Vector2D(300, 0), goal_reached=True)).stop
    assert behavior.decide(None, [], _state()).is_empty


def test_avoid_obstacles_steers_away():
    behavior = get_behavior("avoid_obstacles", {"avoid_radius": 60})
    sensed = SenseResult(walls=[_info("rock", (40, 0), kind="obstacle", static=True, half=20)])
    intent = behavior.decide(sensed, [], _state(goal=Vector2D(300, 0)))
    assert intent.velocity is not None
    assert intent.velocity.x < 5.0
    assert intent.velocity.magnitude() <= 5.0 + 1e-9


def test_avoid_obstacles_without_threats_seeks():
    behavior = get_behavior("avoid_obstacles")
    sensed = SenseResult(walls=[_info("rock", (500, 0), kind="obstacle", static=True)])
    intent = behavior.decide(sensed, [], _state(goal=Vector2D(300, 0)))
    assert intent.target == Vector2D(300, 0)


def test_flock_separates_from_close_neighbor():
    behavior = get_behavior("flock", {"alignment_weight": 0.0001, "cohesion_weight": 0.0001})
    sensed = SenseResult(drones=[_info("n", (10, 0))])
    intent = behavior.decide(sensed, [], _state())
    assert intent.velocity.x < 0
    assert intent.velocity.magnitude() == pytest.approx(5.0)


def test_flock_alone_without_goal():
    assert get_behavior("flock").decide(SenseResult(), [], _state()).is_empty


def test_formation_hold_announces_once():
    behavior = get_behavior("formation_hold", {"tolerance": 5})
    state = _state(slot=Vector2D(2, 0), slot_index=3)
    first = behavior.decide(None, [], state)
    assert first.stop
    assert first.messages == [(None, {"type": "slot_reached", "agent": "me", "slot": 3})]
    second = behavior.decide(None, [], state)
    assert second.stop and second.messages == []


def test_formation_hold_seeks_slot_and_tracks_peers():
    behavior = get_behavior("formation_hold")
    state = _state(slot=Vector2D(200, 0), goal_reached=True)
    message = Message("peer", None, {"type": "slot_reached", "agent": "peer", "slot": 1}, 0.0)
    intent = behavior.decide(None, [message], state)
    assert intent.target == Vector2D(200, 0)
    assert state["peers_in_slot"] == {"peer"}
