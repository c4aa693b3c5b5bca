# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Collision detection utilities."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from dronesim.bodies.shapes2D import Circle
from dronesim.geometry_utils.vector2D import Vector2D

logger = logging.getLogger("sim.collision")

SEPARATION_SLOP = 1e-3


@dataclass
class Contact:
    """Overlap between two bodies; `normal` points from `body_a` to `body_b`."""
    body_a: object
    body_b: object
    depth: float
    normal: Vector2D

    def pair_key(self) -> Tuple[str, str]:
        """Order-independent identifier of the pair."""
        a, b = self.body_a.id, self.body_b.id
        return (a, b) if a <= b else (b, a)

    def describe(self) -> dict:
        """Return the payload forwarded to collision listeners."""
        return {
            "body_a": self.body_a.describe(),
            "body_b": self.body_b.describe(),
            "depth": self.depth,
        }


def filters_allow(body_a, body_b) -> bool:
    """Category/mask rule: both bodies must accept each other."""
    return bool(body_a.category & body_b.mask) and bool(body_b.category & body_a.mask)


class CollisionDetector:
    """
    Finds overlapping body pairs and produces separation/bounce responses.

    The broad phase compares bounding circles; the narrow phase is exact for
    circle pairs and uses the separating-axis test on vertices otherwise.
    """
    def __init__(self, restitution: Optional[float] = None) -> None:
        """Initialize the instance."""
        self.restitution = restitution

    def detect(self, bodies: Iterable) -> List[Contact]:
        """Return every contact among `bodies` allowed by collision filters."""
        items = list(bodies)
        contacts: List[Contact] = []
        for i in range(len(items)):
            a = items[i]
            for j in range(i + 1, len(items)):
                b = items[j]
                if a.static and b.static:
                    continue
                if not filters_allow(a, b):
                    continue
                delta = b.position - a.position
                reach = a.shape.get_radius() + b.shape.get_radius()
                if delta.magnitude_squared() >= reach * reach:
                    continue
                contact = self._narrow_phase(a, b)
                if contact is not None:
                    contacts.append(contact)
        if contacts and logger.isEnabledFor(logging.DEBUG):
            logger.debug("Detected %d contacts", len(contacts))
        return contacts

    def resolve(self, contact: Contact) -> None:
        """Push dynamic bodies apart and reflect their closing velocity."""
        a, b = contact.body_a, contact.body_b
        inv_a = 0.0 if a.static else 1.0 / a.mass
        inv_b = 0.0 if b.static else 1.0 / b.mass
        inv_total = inv_a + inv_b
        if inv_total == 0:
            return
        normal = contact.normal
        separation = normal * (contact.depth + SEPARATION_SLOP)
        if inv_a:
            a.position = a.position - separation * (inv_a / inv_total)
        if inv_b:
            b.position = b.position + separation * (inv_b / inv_total)
        relative_velocity = b.velocity - a.velocity
        closing_speed = relative_velocity.dot(normal)
        if closing_speed >= 0:
            return
        restitution = self.restitution
        if restitution is None:
            restitution = min(a.restitution, b.restitution)
        impulse = -(1 + restitution) * closing_speed / inv_total
        if inv_a:
            a.velocity = a.velocity - normal * (impulse * inv_a)
        if inv_b:
            b.velocity = b.velocity + normal * (impulse * inv_b)

    def _narrow_phase(self, a, b) -> Optional[Contact]:
        """Narrow phase."""
        if isinstance(a.shape, Circle) and isinstance(b.shape, Circle):
            delta = b.position - a.position
            distance = delta.magnitude()
            overlap = a.shape.radius + b.shape.radius - distance
            if overlap <= 0:
                return None
            normal = delta / distance if distance > 0 else Vector2D(1, 0)
            return Contact(a, b, overlap, normal)
        verts_a = a.vertices()
        verts_b = b.vertices()
        best_depth = float("inf")
        best_axis = None
        for verts in (verts_a, verts_b):
            n = len(verts)
            for i in range(n):
                edge = verts[(i + 1) % n] - verts[i]
                axis = edge.perpendicular().normalize()
                if axis.magnitude_squared() == 0:
                    continue
                min_a, max_a = _project(verts_a, axis)
                min_b, max_b = _project(verts_b, axis)
                overlap = min(max_a, max_b) - max(min_a, min_b)
                if overlap <= 0:
                    return None
                if overlap < best_depth:
                    best_depth = overlap
                    best_axis = axis
        if best_axis is None:
            return None
        if (b.position - a.position).dot(best_axis) < 0:
            best_axis = -best_axis
        return Contact(a, b, best_depth, best_axis)


def _project(vertices, axis: Vector2D) -> Tuple[float, float]:
    """Project vertices onto an axis."""
    values = [v.dot(axis) for v in vertices]
    return min(values), max(values)
