# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Environment perception: proximity queries and raycasting over physics bodies."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from dronesim.bodies.shapes2D import Circle
from dronesim.geometry_utils.polygon import Bounds, edge_normal, segment_intersection, segment_intersects_aabb
from dronesim.geometry_utils.vector2D import Vector2D

logger = logging.getLogger("sim.sensors")

DEFAULT_RAY_LENGTH = 500.0


@dataclass
class BodyInfo:
    """Snapshot of a sensed body."""
    id: str
    kind: str
    label: str
    position: Vector2D
    velocity: Vector2D
    angle: float
    distance: float
    is_static: bool
    is_target: bool
    bounds: Bounds


@dataclass
class SenseResult:
    """Bodies around a point, classified and sorted by distance."""
    objects: List[BodyInfo] = field(default_factory=list)
    drones: List[BodyInfo] = field(default_factory=list)
    walls: List[BodyInfo] = field(default_factory=list)
    target: Optional[BodyInfo] = None
    all: List[BodyInfo] = field(default_factory=list)
    rays: List["FanRay"] = field(default_factory=list)

    def nearest(self, bucket: str = "all") -> Optional[BodyInfo]:
        """Closest body of a bucket, if any."""
        items = getattr(self, bucket)
        if bucket == "all":
            return min(items, key=lambda info: info.distance) if items else None
        return items[0] if items else None


@dataclass
class RayHit:
    """Closest intersection along a ray."""
    point: Vector2D
    distance: float
    body: dict
    normal: Vector2D


@dataclass
class FanRay:
    """One ray of a fan and its hit, if any."""
    angle: float
    hit: Optional[RayHit]


class SensorSystem:
    """
    Perception over every body of a `PhysicsWorld`.

    `sense` buckets bodies by kind; `raycast` first rejects bodies whose
    bounding box does not meet the ray's box, then intersects the ray with
    the body outline (exact circle test for circles, edge-by-edge for
    polygons) and keeps the closest hit.
    """
    def __init__(self, physics) -> None:
        """Initialize the instance."""
        self.physics = physics

    def sense(self, position, radius: float, exclude_id=None) -> SenseResult:
        """Return every body within `radius` (inclusive) of `position`."""
        result = SenseResult()
        if self.physics is None:
            return result
        position = Vector2D.from_any(position)
        exclude = None if exclude_id is None else str(exclude_id)
        for body in self.physics.bodies():
            if body.id == exclude:
                continue
            distance = position.distance_to(body.position)
            if distance > radius:
                continue
            info = BodyInfo(
                id=body.id,
                kind=body.kind,
                label=body.label,
                position=Vector2D(body.position.x, body.position.y),
                velocity=Vector2D(body.velocity.x, body.velocity.y),
                angle=body.angle,
                distance=distance,
                is_static=body.static,
                is_target=body.is_target,
                bounds=body.bounds(),
            )
            if body.static:
                result.walls.append(info)
            elif body.kind == "drone":
                result.drones.append(info)
            elif body.is_target or body.label == "target":
                if result.target is None or distance < result.target.distance:
                    result.target = info
                result.objects.append(info)
            else:
                result.objects.append(info)
            result.all.append(info)
        result.objects.sort(key=lambda info: info.distance)
        result.drones.sort(key=lambda info: info.distance)
        result.walls.sort(key=lambda info: info.distance)
        return result

    def raycast(self, origin, direction, max_distance: float = DEFAULT_RAY_LENGTH, exclude_id=None) -> Optional[RayHit]:
        """Cast a segment of length `max_distance` and return the closest hit."""
        if self.physics is None:
            return None
        origin = Vector2D.from_any(origin)
        direction = Vector2D.from_any(direction)
        length = direction.magnitude()
        if length == 0 or max_distance <= 0:
            return None
        direction = direction / length
        end = origin + direction * max_distance
        exclude = None if exclude_id is None else str(exclude_id)
        closest: Optional[RayHit] = None
        closest_dist = max_distance
        for body in self.physics.bodies():
            if body.id == exclude:
                continue
            if not segment_intersects_aabb(origin, end, body.bounds()):
                continue
            if isinstance(body.shape, Circle):
                hit = self._circle_hit(origin, direction, body)
                if hit is not None and hit.distance < closest_dist:
                    closest_dist = hit.distance
                    closest = hit
                continue
            vertices = body.vertices()
            n = len(vertices)
            for i in range(n):
                v1 = vertices[i]
                v2 = vertices[(i + 1) % n]
                point = segment_intersection(origin, end, v1, v2)
                if point is None:
                    continue
                dist = origin.distance_to(point)
                if dist < closest_dist:
                    closest_dist = dist
                    closest = RayHit(point, dist, _descriptor(body), edge_normal(v1, v2))
        return closest

    def raycast_fan(
        self,
        origin,
        start_angle: float,
        end_angle: float,
        ray_count: int,
        max_distance: float = DEFAULT_RAY_LENGTH,
        exclude_id=None,
    ) -> List[FanRay]:
        """Cast `ray_count` evenly spaced rays between two angles (radians)."""
        ray_count = int(ray_count)
        if ray_count <= 0:
            return []
        step = (end_angle - start_angle) / max(1, ray_count - 1)
        results = []
        for i in range(ray_count):
            angle = start_angle + step * i
            direction = Vector2D(math.cos(angle), math.sin(angle))
            results.append(FanRay(angle, self.raycast(origin, direction, max_distance, exclude_id)))
        return results

    def is_path_clear(self, start, end, exclude_id=None) -> bool:
        """True iff a ray from `start` to `end` hits nothing."""
        start = Vector2D.from_any(start)
        end = Vector2D.from_any(end)
        delta = end - start
        distance = delta.magnitude()
        if distance == 0:
            return True
        hit = self.raycast(start, delta / distance, distance, exclude_id)
        if hit is not None:
            logger.debug("Path %s -> %s blocked by %s at %.1f", start, end, hit.body["label"], hit.distance)
        return hit is None

    @staticmethod
    def _circle_hit(origin: Vector2D, direction: Vector2D, body) -> Optional[RayHit]:
        """Analytic ray/circle intersection (origin inside hits the exit point)."""
        radius = body.shape.radius
        offset = origin - body.position
        b = offset.dot(direction)
        c = offset.magnitude_squared() - radius * radius
        disc = b * b - c
        if disc < 0:
            return None
        root = math.sqrt(disc)
        t = -b - root
        if t < 0:
            t = -b + root
        if t < 0:
            return None
        point = origin + direction * t
        return RayHit(point, t, _descriptor(body), (point - body.position).normalize())


def _descriptor(body) -> dict:
    """Describe the hit body."""
    return {"id": body.id, "kind": body.kind, "label": body.label, "is_static": body.static}
