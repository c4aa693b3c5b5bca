# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import logging

from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.models.behavior.common import (
    DEFAULT_SLOW_RADIUS,
    closest_point_on_bounds,
    option,
    seek_intent,
    seek_velocity,
)
from dronesim.plugin_base import Behavior, Intent
from dronesim.plugin_registry import register_behavior

logger = logging.getLogger("sim.behavior.goal_seek")


class IdleBehavior(Behavior):
    """Never actuates; the drone drifts under air friction."""
    def __init__(self, config=None):
        """Initialize the instance."""
        self.config = config or {}

    def decide(self, sensed, messages, state):
        return Intent.none()


class GoalSeekBehavior(Behavior):
    """Follows `state["goal"]` (the current waypoint) and holds position on arrival."""
    def __init__(self, config=None):
        """Initialize the instance."""
        self.config = config or {}
        self.slow_radius = option(self.config, "slow_radius", DEFAULT_SLOW_RADIUS)

    def decide(self, sensed, messages, state):
        """Decide the intent."""
        return seek_intent(state, state.get("goal"), self.slow_radius)


class AvoidObstaclesBehavior(GoalSeekBehavior):
    """
    Goal seeking plus repulsion from nearby bodies.

    Each sensed wall, object or drone closer than `avoid_radius` (measured
    to its bounding box) pushes the desired velocity away, linearly
    stronger as the gap closes.
    """
    def __init__(self, config=None):
        """Initialize the instance."""
        super().__init__(config)
        self.avoid_radius = option(self.config, "avoid_radius", 60.0)
        self.weight = option(self.config, "weight", 1.5)

    def decide(self, sensed, messages, state):
        """Decide the intent."""
        goal = state.get("goal")
        if goal is None or state.get("goal_reached"):
            return seek_intent(state, goal, self.slow_radius)
        position = state["position"]
        desired = seek_velocity(state, goal, self.slow_radius)
        repulsion = self._repulsion(sensed, position)
        if repulsion.magnitude_squared() == 0:
            return seek_intent(state, goal, self.slow_radius)
        max_speed = state.get("max_speed", 5.0)
        velocity = (desired + repulsion * (self.weight * max_speed)).clamp_magnitude(max_speed)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s avoiding: repulsion=%s velocity=%s", state.get("id"), repulsion, velocity)
        return Intent.desired_velocity(velocity.x, velocity.y)

    def _repulsion(self, sensed, position: Vector2D) -> Vector2D:
        """Sum of the push-away vectors."""
        total = Vector2D()
        if sensed is None:
            return total
        for info in list(sensed.walls) + list(sensed.objects) + list(sensed.drones):
            closest = closest_point_on_bounds(position, info.bounds)
            away = position - closest
            gap = away.magnitude()
            if gap == 0:
                away = position - info.position
                gap = away.magnitude()
                if gap == 0:
                    continue
                total = total + away / gap
                continue
            if gap >= self.avoid_radius:
                continue
            total = total + (away / gap) * (1.0 - gap / self.avoid_radius)
        return total


register_behavior("idle", lambda config=None: IdleBehavior(config))
register_behavior("goal_seek", lambda config=None: GoalSeekBehavior(config))
register_behavior("avoid_obstacles", lambda config=None: AvoidObstaclesBehavior(config))
