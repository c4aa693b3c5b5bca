# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Segment, polygon and bounding-box helpers shared by sensors and planners."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from dronesim.geometry_utils.vector2D import Vector2D

PARALLEL_EPSILON = 1e-4


@dataclass
class Bounds:
    """Axis-aligned bounding box."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_any(cls, value) -> "Bounds":
        """Accept a Bounds, a {min: {x, y}, max: {x, y}} mapping or a 4-sequence."""
        if isinstance(value, Bounds):
            return value
        if isinstance(value, dict):
            lo = Vector2D.from_any(value["min"])
            hi = Vector2D.from_any(value["max"])
            return cls(lo.x, lo.y, hi.x, hi.y)
        if hasattr(value, "min_x"):
            return cls(value.min_x, value.min_y, value.max_x, value.max_y)
        min_x, min_y, max_x, max_y = value
        return cls(float(min_x), float(min_y), float(max_x), float(max_y))

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Vector2D:
        return Vector2D((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def min(self) -> Vector2D:
        return Vector2D(self.min_x, self.min_y)

    @property
    def max(self) -> Vector2D:
        return Vector2D(self.max_x, self.max_y)

    def contains(self, point) -> bool:
        """Return True when `point` lies inside or on the box."""
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y

    def expand(self, margin: float) -> "Bounds":
        """Return a copy grown by `margin` on every side."""
        return Bounds(self.min_x - margin, self.min_y - margin, self.max_x + margin, self.max_y + margin)

    def intersects(self, other: "Bounds") -> bool:
        """Overlap test between two boxes."""
        return not (self.max_x < other.min_x or self.min_x > other.max_x or
                    self.max_y < other.min_y or self.min_y > other.max_y)


def segment_intersection(p1, p2, p3, p4, eps: float = PARALLEL_EPSILON) -> Optional[Vector2D]:
    """
    Intersection point of segments p1-p2 and p3-p4.

    Nearly parallel pairs (|denominator| below `eps`) count as no intersection.
    """
    denom = (p4.y - p3.y) * (p2.x - p1.x) - (p4.x - p3.x) * (p2.y - p1.y)
    if abs(denom) < eps:
        return None
    ua = ((p4.x - p3.x) * (p1.y - p3.y) - (p4.y - p3.y) * (p1.x - p3.x)) / denom
    ub = ((p2.x - p1.x) * (p1.y - p3.y) - (p2.y - p1.y) * (p1.x - p3.x)) / denom
    if ua < 0 or ua > 1 or ub < 0 or ub > 1:
        return None
    return Vector2D(p1.x + ua * (p2.x - p1.x), p1.y + ua * (p2.y - p1.y))


def segments_intersect(p1, p2, p3, p4, eps: float = PARALLEL_EPSILON) -> bool:
    """Boolean form of `segment_intersection`."""
    return segment_intersection(p1, p2, p3, p4, eps) is not None


def segment_intersects_aabb(p1, p2, bounds: Bounds) -> bool:
    """Cheap reject: compare the segment's own box against `bounds`."""
    min_x = min(p1.x, p2.x)
    max_x = max(p1.x, p2.x)
    min_y = min(p1.y, p2.y)
    max_y = max(p1.y, p2.y)
    return not (max_x < bounds.min_x or min_x > bounds.max_x or
                max_y < bounds.min_y or min_y > bounds.max_y)


def segment_intersects_rect(p1, p2, bounds: Bounds) -> bool:
    """True when the segment crosses an edge of `bounds` or starts strictly inside it."""
    top_left = Vector2D(bounds.min_x, bounds.min_y)
    top_right = Vector2D(bounds.max_x, bounds.min_y)
    bottom_right = Vector2D(bounds.max_x, bounds.max_y)
    bottom_left = Vector2D(bounds.min_x, bounds.max_y)
    return (segments_intersect(p1, p2, top_left, top_right) or
            segments_intersect(p1, p2, top_right, bottom_right) or
            segments_intersect(p1, p2, bottom_right, bottom_left) or
            segments_intersect(p1, p2, bottom_left, top_left) or
            (bounds.min_x < p1.x < bounds.max_x and bounds.min_y < p1.y < bounds.max_y))


def point_in_polygon(point, vertices: Sequence[Vector2D]) -> bool:
    """Even-odd rule test."""
    inside = False
    n = len(vertices)
    if n < 3:
        return False
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i].x, vertices[i].y
        xj, yj = vertices[j].x, vertices[j].y
        if (yi > point.y) != (yj > point.y):
            x_cross = (xj - xi) * (point.y - yi) / (yj - yi) + xi
            if point.x < x_cross:
                inside = not inside
        j = i
    return inside


def polygon_bounds(vertices: Iterable[Vector2D]) -> Bounds:
    """Return the bounding box of a vertex list."""
    xs = []
    ys = []
    for v in vertices:
        xs.append(v.x)
        ys.append(v.y)
    if not xs:
        return Bounds(0.0, 0.0, 0.0, 0.0)
    return Bounds(min(xs), min(ys), max(xs), max(ys))


def polygon_area(vertices: Sequence[Vector2D]) -> float:
    """Unsigned shoelace area."""
    total = 0.0
    n = len(vertices)
    for i in range(n):
        j = (i + 1) % n
        total += vertices[i].x * vertices[j].y - vertices[j].x * vertices[i].y
    return abs(total) / 2.0


def polygon_centroid(vertices: Sequence[Vector2D]) -> Vector2D:
    """Area centroid; degenerate polygons fall back to the vertex mean."""
    n = len(vertices)
    if n == 0:
        return Vector2D()
    signed = 0.0
    cx = 0.0
    cy = 0.0
    for i in range(n):
        j = (i + 1) % n
        cross = vertices[i].x * vertices[j].y - vertices[j].x * vertices[i].y
        signed += cross
        cx += (vertices[i].x + vertices[j].x) * cross
        cy += (vertices[i].y + vertices[j].y) * cross
    if abs(signed) < 1e-12:
        return Vector2D(sum(v.x for v in vertices) / n, sum(v.y for v in vertices) / n)
    signed *= 0.5
    return Vector2D(cx / (6.0 * signed), cy / (6.0 * signed))


def polygon_perimeter(vertices: Sequence[Vector2D]) -> float:
    """Closed perimeter length."""
    n = len(vertices)
    return sum(vertices[i].distance_to(vertices[(i + 1) % n]) for i in range(n))


def edge_normal(v1, v2) -> Vector2D:
    """Unit normal of the edge v1 -> v2."""
    dx = v2.x - v1.x
    dy = v2.y - v1.y
    length = math.hypot(dx, dy)
    if length == 0:
        return Vector2D()
    return Vector2D(-dy / length, dx / length)


def regular_polygon(center, radius: float, sides: int, start_angle: float = 0.0) -> List[Vector2D]:
    """Vertices of a regular polygon inscribed in a circle."""
    sides = max(3, int(sides))
    step = 2 * math.pi / sides
    return [
        Vector2D(center.x + radius * math.cos(start_angle + i * step),
                 center.y + radius * math.sin(start_angle + i * step))
        for i in range(sides)
    ]
