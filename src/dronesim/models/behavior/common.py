# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

from typing import Optional

from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.plugin_base import Intent

DEFAULT_SLOW_RADIUS = 100.0
MIN_SPEED_SCALE = 0.05


def option(config: Optional[dict], key: str, default: float) -> float:
    """Read a positive float option, falling back to `default`."""
    if not config or key not in config:
        return default
    try:
        value = float(config[key])
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def arrival_scale(distance: float, slow_radius: float) -> float:
    """Speed multiplier that ramps down inside `slow_radius`."""
    if slow_radius <= 0 or distance >= slow_radius:
        return 1.0
    return max(MIN_SPEED_SCALE, distance / slow_radius)


def seek_velocity(state: dict, target, slow_radius: float) -> Vector2D:
    """Desired velocity toward `target` with arrival slowdown."""
    position = state["position"]
    delta = Vector2D.from_any(target) - position
    distance = delta.magnitude()
    if distance == 0:
        return Vector2D()
    speed = state.get("max_speed", 5.0) * arrival_scale(distance, slow_radius)
    return delta * (speed / distance)


def seek_intent(state: dict, target, slow_radius: float) -> Intent:
    """Intent heading for `target`; halts once the goal is reached."""
    if target is None:
        return Intent.none()
    if state.get("goal_reached"):
        return Intent.halt()
    position = state["position"]
    distance = position.distance_to(Vector2D.from_any(target))
    return Intent.move_toward(target, arrival_scale(distance, slow_radius))


def closest_point_on_bounds(point: Vector2D, bounds) -> Vector2D:
    """Clamp `point` onto an axis-aligned box."""
    return Vector2D(
        min(max(point.x, bounds.min_x), bounds.max_x),
        min(max(point.y, bounds.min_y), bounds.max_y),
    )
