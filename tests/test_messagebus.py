# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import math

import pytest

from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.messagebus import GlobalMessageBus, MessageBusFactory, SpatialMessageBus


def _join(bus, agent_id, position, inbox):
    point = Vector2D.from_any(position)
    bus.subscribe(agent_id, lambda message: inbox.setdefault(agent_id, []).append(message), lambda: point)


def test_broadcast_is_range_gated(bus):
    inbox = {}
    _join(bus, "a", (0, 0), inbox)
    _join(bus, "b", (300, 0), inbox)
    _join(bus, "c", (301, 0), inbox)
    delivered = bus.broadcast("a", {"hello": 1}, (0, 0))
    assert delivered == 1
    assert "a" not in inbox
    assert inbox["b"][0].payload == {"hello": 1}
    assert inbox["b"][0].sender == "a"
    assert "c" not in inbox


def test_broadcast_range_override(bus):
    inbox = {}
    _join(bus, "a", (0, 0), inbox)
    _join(bus, "b", (100, 0), inbox)
    assert bus.broadcast("a", "x", (0, 0), comm_range=50) == 0
    assert bus.broadcast("a", "x", (0, 0), comm_range=150) == 1


def test_send_direct(bus):
    inbox = {}
    _join(bus, "a", (0, 0), inbox)
    _join(bus, "b", (100, 0), inbox)
    _join(bus, "far", (1000, 0), inbox)
    assert bus.send("a", "b", "ping", (0, 0))
    assert inbox["b"][0].target == "b"
    assert not bus.send("a", "far", "ping", (0, 0))
    # Unknown targets are dropped without touching the history.
    before = len(bus.get_message_history(100))
    assert not bus.send("a", "ghost", "ping", (0, 0))
    assert len(bus.get_message_history(100)) == before


def test_history_is_bounded(bus):
    for i in range(8):
        bus.broadcast("a", i, (0, 0))
    history = bus.get_message_history(100)
    assert [message.payload for message in history] == [3, 4, 5, 6, 7]
    assert [message.payload for message in bus.get_message_history(2)] == [6, 7]
    assert bus.get_message_history(0) == []
    assert history[-1].to_dict()["type"] == "broadcast"


def test_failing_handler_is_isolated(bus):
    inbox = {}

    def explode(message):
        raise RuntimeError("boom")

    bus.subscribe("bad", explode, lambda: Vector2D(10, 0))
    _join(bus, "good", (20, 0), inbox)
    assert bus.broadcast("a", "x", (0, 0)) == 1
    assert len(inbox["good"]) == 1


def test_drones_in_range_and_unsubscribe(bus):
    inbox = {}
    _join(bus, "a", (0, 0), inbox)
    _join(bus, "b", (200, 0), inbox)
    _join(bus, "c", (900, 0), inbox)
    assert bus.get_drones_in_range((0, 0)) == ["a", "b"]
    assert bus.get_drones_in_range((0, 0), 100) == ["a"]
    assert bus.get_drones_in_range((0, 0), 1000) == ["a", "b", "c"]
    bus.unsubscribe("b")
    bus.unsubscribe("missing")
    assert not bus.is_subscribed("b")
    assert bus.get_drones_in_range((0, 0)) == ["a"]


def test_position_read_at_delivery_time(bus):
    inbox = {}
    position = {"p": Vector2D(1000, 0)}
    bus.subscribe("mover", lambda message: inbox.setdefault("mover", []).append(message), lambda: position["p"])
    assert bus.broadcast("a", "x", (0, 0)) == 0
    position["p"] = Vector2D(10, 0)
    assert bus.broadcast("a", "x", (0, 0)) == 1


def test_global_bus_ignores_distance():
    bus = GlobalMessageBus()
    inbox = {}
    _join(bus, "a", (0, 0), inbox)
    _join(bus, "b", (1e6, 1e6), inbox)
    bus.set_comm_range(10)
    assert math.isinf(bus.comm_range)
    assert bus.broadcast("a", "x", (0, 0), comm_range=1) == 1


def test_factory():
    assert isinstance(MessageBusFactory.create({"bus": "auto", "comm_range": 50}), SpatialMessageBus)
    assert isinstance(MessageBusFactory.create({"bus": "global"}), GlobalMessageBus)
    assert MessageBusFactory.create({"comm_range": "inf"}).comm_range == math.inf
    with pytest.raises(ValueError):
        MessageBusFactory.create({"bus": "carrier-pigeon"})
