# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Planar body shapes expressed in local coordinates."""
import math
from typing import List, Sequence

from dronesim.geometry_utils.polygon import (
    Bounds,
    point_in_polygon,
    polygon_area,
    polygon_bounds,
    polygon_centroid,
    regular_polygon,
)
from dronesim.geometry_utils.vector2D import Vector2D

_PI = math.pi
CIRCLE_SIDES = 24
DEFAULT_RADIUS = 50.0
DEFAULT_SIDE = 100.0


def _positive(value, default: float) -> float:
    """Return `value` as a positive float or `default`."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return value


class Shape2DFactory:
    """Shape 2D factory."""
    @staticmethod
    def create_shape(shape_type: str, config_elem: dict):
        """Create shape."""
        shape_type = (shape_type or "").strip().lower()
        if shape_type in ("circle", "sphere", "cylinder"):
            return Circle(config_elem.get("radius"))
        elif shape_type in ("rectangle", "square", "box"):
            return Rectangle(config_elem.get("width"), config_elem.get("height"))
        elif shape_type in ("custom", "polygon"):
            points = config_elem.get("points") or config_elem.get("path") or []
            if len(points) < 3:
                return Rectangle(config_elem.get("width"), config_elem.get("height"))
            return PolygonShape([Vector2D.from_any(p) for p in points])
        else:
            raise ValueError(f"Unknown shape type: {shape_type}")


class Shape2D:
    """Base class; subclasses describe geometry around a local origin."""
    kind = "point"

    def vertices(self, center, angle: float = 0.0) -> List[Vector2D]:
        """World-space vertices for a body placed at `center` rotated by `angle` radians."""
        return [Vector2D(center.x, center.y)]

    def bounds(self, center, angle: float = 0.0) -> Bounds:
        """Return the world-space bounding box."""
        return polygon_bounds(self.vertices(center, angle))

    def contains(self, point, center, angle: float = 0.0) -> bool:
        """Point containment test."""
        return point_in_polygon(point, self.vertices(center, angle))

    def get_radius(self) -> float:
        """Return the bounding radius."""
        return 0.0

    def area(self) -> float:
        """Return the enclosed area."""
        return 0.0

    def to_dict(self) -> dict:
        """Describe the shape for snapshots."""
        return {"type": self.kind}


class Circle(Shape2D):
    """Circle."""
    kind = "circle"

    def __init__(self, radius=None):
        """Initialize the instance."""
        self.radius = _positive(radius, DEFAULT_RADIUS)

    def vertices(self, center, angle: float = 0.0) -> List[Vector2D]:
        return regular_polygon(center, self.radius, CIRCLE_SIDES, angle)

    def bounds(self, center, angle: float = 0.0) -> Bounds:
        r = self.radius
        return Bounds(center.x - r, center.y - r, center.x + r, center.y + r)

    def contains(self, point, center, angle: float = 0.0) -> bool:
        return point.distance_to(center) <= self.radius

    def get_radius(self) -> float:
        return self.radius

    def area(self) -> float:
        return _PI * self.radius ** 2

    def to_dict(self) -> dict:
        return {"type": self.kind, "radius": self.radius}


class Rectangle(Shape2D):
    """Rectangle centred on the body position."""
    kind = "rectangle"

    def __init__(self, width=None, height=None):
        """Initialize the instance."""
        self.width = _positive(width, DEFAULT_SIDE)
        self.height = _positive(height, DEFAULT_SIDE)

    def vertices(self, center, angle: float = 0.0) -> List[Vector2D]:
        hw = self.width * 0.5
        hh = self.height * 0.5
        corners = (Vector2D(-hw, -hh), Vector2D(hw, -hh), Vector2D(hw, hh), Vector2D(-hw, hh))
        if angle:
            return [center + c.rotate(angle) for c in corners]
        return [center + c for c in corners]

    def get_radius(self) -> float:
        return math.hypot(self.width, self.height) * 0.5

    def area(self) -> float:
        return self.width * self.height

    def to_dict(self) -> dict:
        return {"type": self.kind, "width": self.width, "height": self.height}


class PolygonShape(Shape2D):
    """Arbitrary closed polygon; points are re-centred on their area centroid."""
    kind = "custom"

    def __init__(self, points: Sequence[Vector2D]):
        """Initialize the instance."""
        if len(points) < 3:
            raise ValueError("A polygon shape needs at least three points")
        centroid = polygon_centroid(points)
        self.points = [p - centroid for p in points]

    def vertices(self, center, angle: float = 0.0) -> List[Vector2D]:
        if angle:
            return [center + p.rotate(angle) for p in self.points]
        return [center + p for p in self.points]

    def get_radius(self) -> float:
        return max(p.magnitude() for p in self.points)

    def area(self) -> float:
        return polygon_area(self.points)

    def to_dict(self) -> dict:
        return {"type": self.kind, "points": [p.as_tuple() for p in self.points]}
