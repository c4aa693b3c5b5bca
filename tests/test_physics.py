# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import pytest

from dronesim.bodies.shapes2D import Circle, Rectangle
from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.physics import PhysicsWorld


def test_boundaries_are_created():
    world = PhysicsWorld(400, 300)
    walls = [body for body in world.bodies() if body.kind == "boundary"]
    assert len(walls) == 4
    assert all(body.static for body in walls)


def test_duplicate_body_rejected(world):
    world.create_body("a", Circle(10), (0, 0))
    with pytest.raises(ValueError):
        world.create_body("a", Circle(10), (50, 50))
    assert world.remove_body("a")
    assert not world.remove_body("a")
    assert world.get_body("a") is None


def test_force_integration_and_air_friction(world):
    body = world.create_body("a", Circle(10), (0, 0), friction_air=0.1, density=1.0)
    world.set_velocity("a", (10, 0))
    world.step(1000 / 60)
    assert world.get_velocity("a").x == pytest.approx(9.0)
    assert world.get_position("a").x == pytest.approx(9.0)

    world.apply_force("a", (body.mass, 0))
    world.step(1.0)
    # v = 9 * 0.9 + F/m * dt^2
    assert world.get_velocity("a").x == pytest.approx(9.1)


def test_static_bodies_ignore_forces(world):
    world.create_body("wall", Rectangle(10, 10), (0, 0), static=True, kind="obstacle")
    world.apply_force("wall", (5, 5))
    world.step()
    assert world.get_position("wall") == Vector2D(0, 0)


def test_collision_start_is_reported_once(world):
    world.create_body("a", Circle(15), (0, 0), kind="drone")
    world.create_body("b", Circle(15), (20, 0), kind="drone")
    events = []
    world.on_collision(events.append)
    first = world.step()
    assert len(first) == 1
    assert set(first[0].pair_key()) == {"a", "b"}
    # Bodies were pushed apart.
    assert world.get_position("a").distance_to(world.get_position("b")) >= 30
    world.step()
    assert len(events) == 1


def test_failing_collision_listener_is_isolated(world):
    world.create_body("a", Circle(15), (0, 0), kind="drone")
    world.create_body("b", Circle(15), (20, 0), kind="drone")
    events = []

    def explode(contact):
        raise RuntimeError("listener bug")

    world.on_collision(explode)
    world.on_collision(events.append)
    assert len(world.step()) == 1
    assert len(events) == 1


def test_drone_separates_from_static_obstacle(world):
    world.create_body("rock", Circle(50), (0, 0), static=True, kind="obstacle")
    world.create_body("d", Circle(15), (60, 0), kind="drone")
    world.step()
    assert world.get_position("rock") == Vector2D(0, 0)
    assert world.get_position("d").x >= 65


def test_obstacles_do_not_collide_with_each_other(world):
    world.create_body("o1", Circle(20), (0, 0), kind="obstacle")
    world.create_body("o2", Circle(20), (10, 0), kind="obstacle")
    assert world.step() == []
