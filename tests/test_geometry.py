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

from dronesim.bodies.shapes2D import Circle, PolygonShape, Rectangle, Shape2DFactory
from dronesim.geometry_utils.polygon import (
    Bounds,
    point_in_polygon,
    polygon_area,
    polygon_centroid,
    segment_intersection,
    segment_intersects_rect,
)
from dronesim.geometry_utils.vector2D import Vector2D


def test_vector_arithmetic():
    a = Vector2D(3, 4)
    assert a.magnitude() == 5
    assert a + Vector2D(1, 1) == Vector2D(4, 5)
    assert 2 * a == Vector2D(6, 8)
    assert a.normalize().magnitude() == pytest.approx(1.0)
    assert Vector2D().normalize() == Vector2D()
    assert a.clamp_magnitude(1).magnitude() == pytest.approx(1.0)


def test_vector_from_any():
    assert Vector2D.from_any((1, 2)) == Vector2D(1, 2)
    assert Vector2D.from_any({"x": 1, "y": 2}) == Vector2D(1, 2)
    assert Vector2D.from_any(Vector2D(1, 2)) == Vector2D(1, 2)


def test_rotate_quarter_turn():
    v = Vector2D(1, 0).rotate(math.pi / 2)
    assert v.x == pytest.approx(0.0, abs=1e-12)
    assert v.y == pytest.approx(1.0)


def test_segment_intersection():
    hit = segment_intersection(Vector2D(0, 0), Vector2D(10, 10), Vector2D(0, 10), Vector2D(10, 0))
    assert hit == Vector2D(5, 5)
    assert segment_intersection(Vector2D(0, 0), Vector2D(10, 0), Vector2D(0, 1), Vector2D(10, 1)) is None


def test_segment_against_rect():
    box = Bounds(10, -5, 20, 5)
    assert segment_intersects_rect(Vector2D(0, 0), Vector2D(30, 0), box)
    assert not segment_intersects_rect(Vector2D(0, 10), Vector2D(30, 10), box)
    # Starting inside counts as a collision.
    assert segment_intersects_rect(Vector2D(15, 0), Vector2D(16, 0), box)


def test_polygon_helpers():
    square = [Vector2D(0, 0), Vector2D(10, 0), Vector2D(10, 10), Vector2D(0, 10)]
    assert polygon_area(square) == 100
    assert polygon_centroid(square) == Vector2D(5, 5)
    assert point_in_polygon(Vector2D(5, 5), square)
    assert not point_in_polygon(Vector2D(15, 5), square)


def test_shape_factory():
    assert isinstance(Shape2DFactory.create_shape("circle", {"radius": 10}), Circle)
    rect = Shape2DFactory.create_shape("rectangle", {"width": 40, "height": 20})
    assert isinstance(rect, Rectangle)
    assert rect.area() == 800
    poly = Shape2DFactory.create_shape("custom", {"points": [(0, 0), (30, 0), (0, 30)]})
    assert isinstance(poly, PolygonShape)
    assert poly.area() == pytest.approx(450)
    with pytest.raises(ValueError):
        Shape2DFactory.create_shape("blob", {})


def test_rectangle_bounds_rotate():
    rect = Rectangle(40, 20)
    bounds = rect.bounds(Vector2D(100, 100), math.pi / 2)
    assert bounds.width == pytest.approx(20)
    assert bounds.height == pytest.approx(40)
