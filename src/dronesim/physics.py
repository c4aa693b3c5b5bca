# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Physics adapter.

The simulator only talks to rigid bodies through `PhysicsWorld`: bodies are
kept in an arena keyed by stable string ids, so removing a body can never
leave a dangling reference in sensors, planners or the agent registry.
Integration follows the browser engine the editor used (velocity damped by
`friction_air`, forces scaled by the squared step in milliseconds).
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional

from dronesim.bodies.shapes2D import Rectangle, Shape2D
from dronesim.collision_detector import CollisionDetector, Contact
from dronesim.geometry_utils.polygon import Bounds
from dronesim.geometry_utils.vector2D import Vector2D

logger = logging.getLogger("sim.physics")

CATEGORY_DRONE = 0x0001
CATEGORY_OBJECT = 0x0002
CATEGORY_OBSTACLE = 0x0004
CATEGORY_BOUNDARY = 0x0008
CATEGORY_ALL = 0xFFFF

DEFAULT_MASKS = {
    "drone": CATEGORY_OBJECT | CATEGORY_OBSTACLE | CATEGORY_BOUNDARY | CATEGORY_DRONE,
    "object": CATEGORY_DRONE | CATEGORY_OBSTACLE | CATEGORY_BOUNDARY | CATEGORY_OBJECT,
    "obstacle": CATEGORY_DRONE | CATEGORY_OBJECT,
    "boundary": CATEGORY_DRONE | CATEGORY_OBJECT,
}
DEFAULT_CATEGORIES = {
    "drone": CATEGORY_DRONE,
    "object": CATEGORY_OBJECT,
    "obstacle": CATEGORY_OBSTACLE,
    "boundary": CATEGORY_BOUNDARY,
}
DEFAULT_DENSITY = 0.001
DEFAULT_FRICTION_AIR = 0.01
DEFAULT_DELTA_MS = 1000 / 60


class Body:
    """Rigid body tracked by the physics world."""
    def __init__(
        self,
        body_id: str,
        shape: Shape2D,
        position: Vector2D,
        *,
        static: bool = False,
        kind: str = "object",
        label: Optional[str] = None,
        category: Optional[int] = None,
        mask: Optional[int] = None,
        density: float = DEFAULT_DENSITY,
        friction_air: float = DEFAULT_FRICTION_AIR,
        restitution: float = 0.3,
        angle: float = 0.0,
        is_target: bool = False,
    ):
        """Initialize the instance."""
        self.id = body_id
        self.shape = shape
        self.position = Vector2D(position.x, position.y)
        self.velocity = Vector2D()
        self.angle = float(angle)
        self.static = bool(static)
        self.kind = kind
        self.label = label or f"{kind}_{body_id}"
        self.category = DEFAULT_CATEGORIES.get(kind, CATEGORY_OBJECT) if category is None else int(category)
        self.mask = DEFAULT_MASKS.get(kind, CATEGORY_ALL) if mask is None else int(mask)
        self.mass = max(shape.area() * density, 1e-6)
        self.friction_air = friction_air
        self.restitution = restitution
        self.is_target = bool(is_target)
        self.force = Vector2D()

    def vertices(self):
        """Return the world-space vertices."""
        return self.shape.vertices(self.position, self.angle)

    def bounds(self) -> Bounds:
        """Return the world-space bounding box."""
        return self.shape.bounds(self.position, self.angle)

    def describe(self) -> dict:
        """Identity tags handed to collision listeners."""
        return {"id": self.id, "kind": self.kind, "label": self.label, "is_static": self.static}

    def __repr__(self) -> str:
        return f"Body({self.id!r}, kind={self.kind!r}, position={self.position!r})"


class PhysicsWorld:
    """
    Minimal rigid-body world behind the narrow adapter surface the core uses.

    Parameters
    ----------
    width, height:
        World extent in pixels; boundary walls are placed just outside it.
    boundary_thickness:
        Thickness of the four static walls.
    create_boundaries:
        Disable to get an unbounded world (useful in unit tests).
    """
    def __init__(
        self,
        width: float = 2000,
        height: float = 2000,
        boundary_thickness: float = 50,
        create_boundaries: bool = True,
        detector: Optional[CollisionDetector] = None,
    ) -> None:
        """Initialize the instance."""
        self.width = float(width)
        self.height = float(height)
        self.boundary_thickness = float(boundary_thickness)
        self._bodies: Dict[str, Body] = {}
        self._collision_callbacks: List[Callable[[Contact], None]] = []
        self._active_pairs: set = set()
        self.detector = detector or CollisionDetector()
        self.time_ms = 0.0
        if create_boundaries:
            self._create_boundaries()
        logger.info("PhysicsWorld ready (%.0fx%.0f, boundaries=%s)", self.width, self.height, create_boundaries)

    # ----- body management ----------------------------------------------------

    def create_body(self, body_id, shape: Shape2D, position, **options) -> Body:
        """Create a body and add it to the arena; duplicate ids raise ValueError."""
        body_id = str(body_id)
        if body_id in self._bodies:
            raise ValueError(f"Body '{body_id}' already exists")
        body = Body(body_id, shape, Vector2D.from_any(position), **options)
        self._bodies[body_id] = body
        logger.debug("Created %s", body)
        return body

    def remove_body(self, body_id) -> bool:
        """Remove a body; unknown ids are ignored."""
        body_id = str(body_id)
        body = self._bodies.pop(body_id, None)
        if body is None:
            return False
        self._active_pairs = {pair for pair in self._active_pairs if body_id not in pair}
        logger.debug("Removed body %s", body_id)
        return True

    def has_body(self, body_id) -> bool:
        """Return True when the arena holds `body_id`."""
        return str(body_id) in self._bodies

    def get_body(self, body_id) -> Optional[Body]:
        """Return the body or None."""
        return self._bodies.get(str(body_id))

    def bodies(self) -> Iterator[Body]:
        """Iterate bodies in insertion order."""
        return iter(list(self._bodies.values()))

    def __len__(self) -> int:
        return len(self._bodies)

    # ----- state access -------------------------------------------------------

    def apply_force(self, body_id, force) -> None:
        """Accumulate a force applied at the body's current position."""
        body = self._require(body_id)
        if body.static:
            return
        body.force = body.force + Vector2D.from_any(force)

    def get_position(self, body_id) -> Vector2D:
        """Return the position."""
        body = self._require(body_id)
        return Vector2D(body.position.x, body.position.y)

    def get_velocity(self, body_id) -> Vector2D:
        """Return the velocity."""
        body = self._require(body_id)
        return Vector2D(body.velocity.x, body.velocity.y)

    def get_angle(self, body_id) -> float:
        """Return the rotation in radians."""
        return self._require(body_id).angle

    def get_bounds(self, body_id) -> Bounds:
        """Return the axis-aligned bounds."""
        return self._require(body_id).bounds()

    def set_velocity(self, body_id, velocity) -> None:
        """Set the velocity."""
        self._require(body_id).velocity = Vector2D.from_any(velocity)

    def set_position(self, body_id, position) -> None:
        """Set the position."""
        self._require(body_id).position = Vector2D.from_any(position)

    def on_collision(self, callback: Callable[[Contact], None]) -> None:
        """Register a listener for new contacts."""
        self._collision_callbacks.append(callback)

    # ----- integration --------------------------------------------------------

    def step(self, delta_ms: float = DEFAULT_DELTA_MS) -> List[Contact]:
        """
        Advance the world by `delta_ms` milliseconds.

        Returns the contacts that started during this step.
        """
        dt_sq = float(delta_ms) ** 2
        for body in self._bodies.values():
            if body.static:
                continue
            damping = 1.0 - body.friction_air
            accel = body.force * (dt_sq / body.mass)
            body.velocity = body.velocity * damping + accel
            body.position = body.position + body.velocity
            body.force = Vector2D()
        self.time_ms += float(delta_ms)
        contacts = self.detector.detect(self._bodies.values())
        current_pairs = set()
        started: List[Contact] = []
        for contact in contacts:
            self.detector.resolve(contact)
            key = contact.pair_key()
            current_pairs.add(key)
            if key not in self._active_pairs:
                started.append(contact)
        self._active_pairs = current_pairs
        for contact in started:
            logger.info("Collision start: %s <-> %s depth=%.3f", contact.body_a.label, contact.body_b.label, contact.depth)
            for callback in list(self._collision_callbacks):
                try:
                    callback(contact)
                except Exception:
                    logger.exception("Collision listener failed on %s <-> %s", contact.body_a.label, contact.body_b.label)
        return started

    def clear(self) -> None:
        """Drop every body and listener."""
        self._bodies.clear()
        self._active_pairs.clear()
        self._collision_callbacks.clear()

    # ----- internals ----------------------------------------------------------

    def _require(self, body_id) -> Body:
        """Return the body or raise KeyError."""
        body = self._bodies.get(str(body_id))
        if body is None:
            raise KeyError(f"Unknown body '{body_id}'")
        return body

    def _create_boundaries(self) -> None:
        """Create the four static walls around the world."""
        w, h, t = self.width, self.height, self.boundary_thickness
        walls = {
            "boundary_top": (Vector2D(w / 2, -t / 2), Rectangle(w + t * 2, t)),
            "boundary_bottom": (Vector2D(w / 2, h + t / 2), Rectangle(w + t * 2, t)),
            "boundary_left": (Vector2D(-t / 2, h / 2), Rectangle(t, h + t * 2)),
            "boundary_right": (Vector2D(w + t / 2, h / 2), Rectangle(t, h + t * 2)),
        }
        for wall_id, (center, shape) in walls.items():
            self.create_body(wall_id, shape, center, static=True, kind="boundary", label="boundary")
