# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import math

class Vector2D:
    """Planar vector used by every component of the simulator."""
    __slots__ = ("x", "y")

    def __init__(self, x: float = 0, y: float = 0):
        """Initialize the instance."""
        self.x = float(x)
        self.y = float(y)

    @classmethod
    def from_any(cls, value):
        """Build a vector from a Vector2D, an (x, y) sequence or an {x, y} mapping."""
        if isinstance(value, Vector2D):
            return cls(value.x, value.y)
        if isinstance(value, dict):
            return cls(value.get("x", 0.0), value.get("y", 0.0))
        if hasattr(value, "x") and hasattr(value, "y"):
            return cls(value.x, value.y)
        x, y = value[0], value[1]
        return cls(x, y)

    def __add__(self, other):
        """Provide the add."""
        return Vector2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other):
        """Provide the sub."""
        return Vector2D(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar):
        """Provide the mul."""
        return Vector2D(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar):
        """Provide the truediv."""
        return Vector2D(self.x / scalar, self.y / scalar)

    def __neg__(self):
        return Vector2D(-self.x, -self.y)

    def __eq__(self, other):
        if not isinstance(other, Vector2D):
            return NotImplemented
        return self.x == other.x and self.y == other.y

    def __hash__(self):
        return hash((self.x, self.y))

    def __iter__(self):
        yield self.x
        yield self.y

    def dot(self, other):
        """Provide the dot."""
        return self.x * other.x + self.y * other.y

    def cross(self, other) -> float:
        """Z component of the 3D cross product."""
        return self.x * other.y - self.y * other.x

    def magnitude(self):
        """Provide the magnitude."""
        return math.hypot(self.x, self.y)

    def magnitude_squared(self):
        return self.x * self.x + self.y * self.y

    def normalize(self):
        """Normalize the vector."""
        mag = self.magnitude()
        if mag == 0:
            return Vector2D()
        return self / mag

    def distance_to(self, other) -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def rotate(self, angle: float):
        """Rotate by `angle` radians around the origin."""
        cos_a = math.cos(angle)
        sin_a = math.sin(angle)
        return Vector2D(self.x * cos_a - self.y * sin_a, self.x * sin_a + self.y * cos_a)

    def perpendicular(self):
        """Left-hand perpendicular."""
        return Vector2D(-self.y, self.x)

    def clamp_magnitude(self, max_magnitude: float):
        """Scale the vector down so it does not exceed `max_magnitude`."""
        mag = self.magnitude()
        if mag > max_magnitude and mag > 0:
            return self * (max_magnitude / mag)
        return Vector2D(self.x, self.y)

    def angle(self) -> float:
        """Heading in radians."""
        return math.atan2(self.y, self.x)

    def as_tuple(self):
        """Return the components as a tuple."""
        return (self.x, self.y)

    def __repr__(self) -> str:
        """Return the string representation."""
        return f"Vector2D({self.x}, {self.y})"
