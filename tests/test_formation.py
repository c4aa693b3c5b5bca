# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import math

import numpy as np
import pytest

from dronesim.algorithms.formation import (
    CagePosition,
    FormationPlanner,
    FormationShape,
    FormationSlot,
    assign_slots,
    centroid,
    is_formation_complete,
)
from dronesim.geometry_utils.polygon import Bounds, point_in_polygon
from dronesim.geometry_utils.vector2D import Vector2D


def _approx(points):
    return [(pytest.approx(p.x, abs=1e-9), pytest.approx(p.y, abs=1e-9)) for p in points]


@pytest.fixture
def planner():
    return FormationPlanner(sample_count=600, ccvt_iterations=10)


def test_rectangle_perimeter_edge_midpoints(planner):
    shape = FormationShape("rectangle", width=100, height=100)
    points = planner.perimeter_layout(shape, 4)
    assert [(p.x, p.y) for p in points] == _approx([Vector2D(0, -50), Vector2D(50, 0), Vector2D(0, 50), Vector2D(-50, 0)])


def test_circle_perimeter_starts_at_angle_zero(planner):
    points = planner.perimeter_layout(FormationShape("circle", radius=50), 4)
    assert [(p.x, p.y) for p in points] == _approx([Vector2D(50, 0), Vector2D(0, 50), Vector2D(-50, 0), Vector2D(0, -50)])
    assert planner.perimeter_layout(FormationShape("circle"), 0) == []


def test_custom_perimeter_stays_on_outline(planner):
    shape = FormationShape("custom", width=100, height=100, path=[Vector2D(0, 0), Vector2D(100, 0), Vector2D(0, 100)])
    outline = shape.outline()
    points = planner.perimeter_layout(shape, 6)
    assert len(points) == 6
    assert points[0] == outline[0]


def test_area_layout_exact_count_and_balance(planner):
    shape = FormationShape("circle", radius=100)
    points = planner.area_layout(shape, 5)
    assert len(points) == 5
    assert all(p.magnitude() <= 100 for p in points)
    sizes = planner.last_cluster_sizes
    assert sum(sizes) == 600
    assert max(sizes) - min(sizes) <= 1


def test_area_layout_is_deterministic():
    shape = FormationShape("rectangle", width=200, height=100)
    first = FormationPlanner(sample_count=400, ccvt_iterations=5, seed=3).area_layout(shape, 4)
    second = FormationPlanner(sample_count=400, ccvt_iterations=5, seed=3).area_layout(shape, 4)
    assert first == second


def test_area_layout_with_injected_generator():
    shape = FormationShape("rectangle", width=200, height=100)
    planner = FormationPlanner(sample_count=400, ccvt_iterations=5, random_generator=np.random.default_rng(9))
    points = planner.area_layout(shape, 3)
    assert len(points) == 3
    assert all(abs(p.x) <= 100 and abs(p.y) <= 50 for p in points)


def test_area_layout_custom_shape_is_scaled(planner):
    path = [Vector2D(0, 0), Vector2D(100, 0), Vector2D(100, 100), Vector2D(0, 100)]
    shape = FormationShape("custom", width=200, height=200, path=path, original_width=100, original_height=100)
    points = planner.area_layout(shape, 4)
    outline = shape.outline()
    assert len(points) == 4
    assert all(point_in_polygon(p, outline) for p in points)
    assert max(abs(p.x) for p in points) > 35


def test_area_layout_collapses_when_samples_are_short():
    shape = FormationShape("circle", radius=100)
    points = FormationPlanner(sample_count=3, ccvt_iterations=2).area_layout(shape, 5)
    assert len(points) == 5
    assert len(set(points)) == 1
    assert points[0].magnitude() == pytest.approx(0, abs=1e-6)


def test_calculate_formation_slots(planner):
    slots = planner.calculate_formation(FormationShape("rectangle", width=100, height=100), 4, "ground")
    assert [slot.index for slot in slots] == [0, 1, 2, 3]
    assert all(isinstance(slot, FormationSlot) for slot in slots)
    assert len(planner.calculate_formation(FormationShape("circle"), 3)) == 3


def test_to_world_rotates_offsets():
    slots = FormationPlanner.to_world([Vector2D(10, 0)], Vector2D(100, 100), math.pi / 2)
    assert slots[0].offset == Vector2D(10, 0)
    assert slots[0].target.x == pytest.approx(100)
    assert slots[0].target.y == pytest.approx(110)


def test_required_drones():
    shape = FormationShape("rectangle", width=200, height=100, weight=120)
    assert FormationPlanner.required_drones(shape) == 3
    assert FormationPlanner.required_drones(shape, weight=10) == 2
    assert FormationPlanner.required_drones(FormationShape("circle", radius=10, weight=1)) == 1


def test_caging_positions():
    cage = FormationPlanner.caging_positions(Bounds(-50, -50, 50, 50), Vector2D(0, 0), 4)
    assert len(cage) == 4
    assert all(isinstance(entry, CagePosition) for entry in cage)
    assert cage[0].position.x == pytest.approx(0, abs=1e-9)
    assert cage[0].position.y == pytest.approx(-125)
    assert cage[0].angle == pytest.approx(math.pi / 2)
    assert all(entry.position.magnitude() == pytest.approx(125) for entry in cage)
    assert FormationPlanner.caging_positions(Bounds(0, 0, 1, 1), (0, 0), 0) == []


def test_from_item():
    shape = FormationShape.from_item({"type": "Rectangle", "w": 80, "h": 40, "weight": 30})
    assert shape.kind == "rectangle"
    assert (shape.width, shape.height, shape.weight) == (80, 40, 30)
    assert shape.area() == 3200


def test_assign_slots_is_greedy():
    agents = {"a": (0, 0), "b": (10, 0)}
    slots = [Vector2D(5, 0), Vector2D(20, 0)]
    assignments = assign_slots(agents, slots)
    # a and b tie for the first slot; a comes first.
    assert assignments == {"a": Vector2D(5, 0), "b": Vector2D(20, 0)}


def test_assign_slots_tie_prefers_first_slot():
    assignments = assign_slots([("solo", Vector2D(0, 0))], [Vector2D(1, 0), Vector2D(-1, 0)])
    assert assignments == {"solo": Vector2D(1, 0)}


def test_assign_slots_more_agents_than_slots():
    agents = [{"id": "a", "position": (0, 0)}, {"id": "b", "position": (100, 0)}]
    assignments = assign_slots(agents, [FormationSlot(0, Vector2D(90, 0))])
    assert list(assignments) == ["b"]
    assert assign_slots(agents, []) == {}


def test_formation_complete():
    slots = {"a": Vector2D(0, 0), "b": Vector2D(100, 0)}
    assert is_formation_complete({"a": (3, 4), "b": (100, 10)}, slots, tolerance=10)
    assert not is_formation_complete({"a": (3, 4), "b": (100, 10.5)}, slots, tolerance=10)
    # Agents without a slot are ignored.
    assert is_formation_complete({"a": (0, 0), "x": (999, 999)}, slots)


def test_centroid():
    assert centroid([(0, 0), (10, 0), (10, 10), (0, 10)]) == Vector2D(5, 5)
    assert centroid([]) == Vector2D()
