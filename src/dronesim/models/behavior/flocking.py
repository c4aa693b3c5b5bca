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
from dronesim.models.behavior.common import DEFAULT_SLOW_RADIUS, option, seek_velocity
from dronesim.plugin_base import Behavior, Intent
from dronesim.plugin_registry import register_behavior

logger = logging.getLogger("sim.behavior.flock")


class FlockBehavior(Behavior):
    """Reynolds flocking over the sensed drones, optionally biased toward the goal."""
    def __init__(self, config=None):
        """Initialize the instance."""
        self.config = config or {}
        self.separation_radius = option(self.config, "separation_radius", 40.0)
        self.separation_weight = option(self.config, "separation_weight", 1.5)
        self.alignment_weight = option(self.config, "alignment_weight", 1.0)
        self.cohesion_weight = option(self.config, "cohesion_weight", 1.0)
        self.goal_weight = option(self.config, "goal_weight", 1.0)

    def decide(self, sensed, messages, state):
        """Decide the intent."""
        position = state["position"]
        max_speed = state.get("max_speed", 5.0)
        neighbors = list(sensed.drones) if sensed is not None else []
        steer = Vector2D()
        if neighbors:
            separation = Vector2D()
            center = Vector2D()
            heading = Vector2D()
            for info in neighbors:
                center = center + info.position
                heading = heading + info.velocity
                if 0 < info.distance < self.separation_radius:
                    separation = separation + (position - info.position) / (info.distance * info.distance)
            count = len(neighbors)
            cohesion = (center / count - position).normalize()
            alignment = (heading / count).normalize()
            steer = (separation.normalize() * self.separation_weight
                     + alignment * self.alignment_weight
                     + cohesion * self.cohesion_weight)
        goal = state.get("goal")
        if goal is not None and not state.get("goal_reached"):
            steer = steer + (seek_velocity(state, goal, DEFAULT_SLOW_RADIUS) / max_speed) * self.goal_weight
        if steer.magnitude_squared() == 0:
            return Intent.halt() if goal is not None else Intent.none()
        velocity = steer.normalize() * max_speed
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s flocking with %d neighbours: velocity=%s", state.get("id"), len(neighbors), velocity)
        return Intent.desired_velocity(velocity.x, velocity.y)


register_behavior("flock", lambda config=None: FlockBehavior(config))
