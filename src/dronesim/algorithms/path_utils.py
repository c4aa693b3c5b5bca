# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Polyline helpers: length, arc-length lookup and interpolation along a path."""
import math
from typing import List, Sequence, Tuple

from dronesim.geometry_utils.vector2D import Vector2D


def path_length(points: Sequence) -> float:
    """Total length of an open polyline."""
    if not points or len(points) < 2:
        return 0.0
    pts = [Vector2D.from_any(p) for p in points]
    return sum(pts[i].distance_to(pts[i + 1]) for i in range(len(pts) - 1))


def point_at_distance(points: Sequence, target_distance: float) -> Vector2D:
    """Point at `target_distance` along the polyline; clamps past the end."""
    if not points:
        return Vector2D()
    pts = [Vector2D.from_any(p) for p in points]
    if len(pts) == 1:
        return pts[0]
    travelled = 0.0
    for i in range(len(pts) - 1):
        segment = pts[i + 1] - pts[i]
        length = segment.magnitude()
        if length > 0 and travelled + length >= target_distance:
            t = max(0.0, (target_distance - travelled) / length)
            return pts[i] + segment * t
        travelled += length
    return pts[-1]


def _heading_at_distance(pts: List[Vector2D], target_distance: float) -> float:
    """Tangent direction in degrees of the segment holding `target_distance`."""
    travelled = 0.0
    for i in range(len(pts) - 1):
        segment = pts[i + 1] - pts[i]
        length = segment.magnitude()
        if travelled + length >= target_distance or i == len(pts) - 2:
            return math.degrees(math.atan2(segment.y, segment.x))
        travelled += length
    return 0.0


def interpolate_along_path(points: Sequence, progress: float) -> Tuple[Vector2D, float]:
    """
    Position and heading (degrees) at `progress` in [0, 1] of the path length.

    Empty paths yield the origin, single points a zero heading.
    """
    if not points:
        return Vector2D(), 0.0
    pts = [Vector2D.from_any(p) for p in points]
    if len(pts) == 1:
        return pts[0], 0.0
    distance = path_length(pts) * progress
    return point_at_distance(pts, distance), _heading_at_distance(pts, distance)


def smooth_curve(points: Sequence, segments_per_point: int = 10) -> List[Vector2D]:
    """Catmull-Rom spline through the points, for rendering."""
    pts = [Vector2D.from_any(p) for p in points or []]
    if len(pts) <= 2:
        return pts
    segments_per_point = max(1, int(segments_per_point))
    curve = []
    for i in range(len(pts) - 1):
        p0 = pts[max(0, i - 1)]
        p1 = pts[i]
        p2 = pts[i + 1]
        p3 = pts[min(len(pts) - 1, i + 2)]
        for step in range(segments_per_point):
            curve.append(_catmull_rom(p0, p1, p2, p3, step / segments_per_point))
    curve.append(pts[-1])
    return curve


def _catmull_rom(p0, p1, p2, p3, t: float) -> Vector2D:
    t2 = t * t
    t3 = t2 * t
    x = 0.5 * ((2 * p1.x) + (-p0.x + p2.x) * t + (2 * p0.x - 5 * p1.x + 4 * p2.x - p3.x) * t2
               + (-p0.x + 3 * p1.x - 3 * p2.x + p3.x) * t3)
    y = 0.5 * ((2 * p1.y) + (-p0.y + p2.y) * t + (2 * p0.y - 5 * p1.y + 4 * p2.y - p3.y) * t2
               + (-p0.y + 3 * p1.y - 3 * p2.y + p3.y) * t3)
    return Vector2D(x, y)
