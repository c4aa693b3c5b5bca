# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import pytest

from dronesim.algorithms.path_utils import interpolate_along_path, path_length, point_at_distance, smooth_curve
from dronesim.geometry_utils.vector2D import Vector2D

L_PATH = [(0, 0), (100, 0), (100, 100)]


def test_path_length():
    assert path_length(L_PATH) == 200
    assert path_length([(5, 5)]) == 0
    assert path_length([]) == 0


def test_point_at_distance():
    assert point_at_distance(L_PATH, 50) == Vector2D(50, 0)
    assert point_at_distance(L_PATH, 150) == Vector2D(100, 50)
    assert point_at_distance(L_PATH, 500) == Vector2D(100, 100)
    assert point_at_distance([], 10) == Vector2D()


def test_interpolate_along_path():
    point, heading = interpolate_along_path(L_PATH, 0.75)
    assert point == Vector2D(100, 50)
    assert heading == pytest.approx(90)
    assert interpolate_along_path(L_PATH, 0.0) == (Vector2D(0, 0), 0.0)
    assert interpolate_along_path([(3, 4)], 0.5) == (Vector2D(3, 4), 0.0)


def test_smooth_curve_passes_through_points():
    curve = smooth_curve(L_PATH, segments_per_point=4)
    assert len(curve) == 9
    assert curve[0] == Vector2D(0, 0)
    assert curve[4] == Vector2D(100, 0)
    assert curve[-1] == Vector2D(100, 100)
    assert smooth_curve([(0, 0), (1, 1)]) == [Vector2D(0, 0), Vector2D(1, 1)]
