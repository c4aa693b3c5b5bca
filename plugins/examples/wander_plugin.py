# ------------------------------------------------------------------------------
#  CollectiPy
# Copyright (c) 2025 Fabio Oddi
#
#  Example plugin showing how to add a behaviour from outside the package.
#  Import this module (e.g. add "plugins.examples.wander_plugin" to the
#  `plugins` list in the config) and set a drone item's `behavior` to
#  `"wander"` to attach the behaviour provided below.
# ------------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from random import Random
from typing import Any

from dronesim.models.behavior.common import closest_point_on_bounds
from dronesim.plugin_base import Intent
from dronesim.plugin_registry import register_behavior

logger = logging.getLogger("sim.plugins.wander")


class WanderBehavior:
    """
    Random walk: the heading drifts by at most `turn_rate` radians per tick.

    The heading lives in the agent's `state`, so one instance can drive any
    number of agents. Nearby walls turn the drone around.
    """

    def __init__(self, config: Any = None) -> None:
        config = config or {}
        self.turn_rate = float(config.get("turn_rate", 0.3))
        self.speed_scale = float(config.get("speed_scale", 0.5))
        self.wall_distance = float(config.get("wall_distance", 40.0))
        self.random = Random(config.get("seed"))

    def decide(self, sensed, messages, state: dict) -> Intent:
        """Drift the heading and cruise along it."""
        heading = state.get("wander_heading")
        if heading is None:
            heading = self.random.uniform(-math.pi, math.pi)
        heading += self.random.uniform(-self.turn_rate, self.turn_rate)
        position = state["position"]
        for wall in (sensed.walls if sensed is not None else []):
            if position.distance_to(closest_point_on_bounds(position, wall.bounds)) < self.wall_distance:
                heading += math.pi
                logger.debug("%s turning away from %s", state.get("id"), wall.label)
                break
        state["wander_heading"] = heading
        speed = state.get("max_speed", 5.0) * self.speed_scale
        return Intent.desired_velocity(speed * math.cos(heading), speed * math.sin(heading))


register_behavior("wander", lambda config=None: WanderBehavior(config))
