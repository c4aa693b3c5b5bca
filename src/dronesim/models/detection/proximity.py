# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import logging
import math

from dronesim.plugin_base import DetectionModel
from dronesim.plugin_registry import register_detection_model

logger = logging.getLogger("sim.detection.proximity")


class ProximityDetectionModel(DetectionModel):
    """Buckets every body within the agent's sensor radius."""
    def __init__(self, agent, context: dict | None = None):
        """Initialize the instance."""
        self.agent = agent
        context = context or {}
        self.radius = context.get("radius")

    def sense(self, agent, radius=None):
        """Sense the environment around `agent`."""
        radius = radius or self.radius or agent.sensor_radius
        result = agent.sensors.sense(agent.get_position(), radius, agent.id)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s proximity drones=%d objects=%d walls=%d target=%s",
                agent.get_name(),
                len(result.drones),
                len(result.objects),
                len(result.walls),
                result.target.id if result.target else None,
            )
        return result


class RaycastFanDetectionModel(ProximityDetectionModel):
    """
    Proximity sensing plus a fan of rays around the agent's heading.

    Context keys: `fov` (radians, default 2*pi), `ray_count` (default 16),
    `ray_length` (default: the sensor radius), `egocentric` (default True).
    """
    def __init__(self, agent, context: dict | None = None):
        """Initialize the instance."""
        super().__init__(agent, context)
        context = context or {}
        self.fov = float(context.get("fov", 2 * math.pi))
        self.ray_count = max(1, int(context.get("ray_count", 16)))
        self.ray_length = context.get("ray_length")
        self.egocentric = bool(context.get("egocentric", True))

    def sense(self, agent, radius=None):
        """Sense the environment and attach the ray fan."""
        result = super().sense(agent, radius)
        heading = 0.0
        if self.egocentric:
            velocity = agent.get_velocity()
            heading = velocity.angle() if velocity.magnitude_squared() > 0 else agent.get_angle()
        if self.fov >= 2 * math.pi:
            # Closed fan: avoid casting the first and last ray along the same angle.
            start = heading - math.pi
            end = heading + math.pi - 2 * math.pi / self.ray_count
        else:
            start = heading - self.fov / 2
            end = heading + self.fov / 2
        length = self.ray_length or radius or agent.sensor_radius
        result.rays = agent.sensors.raycast_fan(agent.get_position(), start, end, self.ray_count, length, agent.id)
        return result


register_detection_model("proximity", lambda agent, context=None: ProximityDetectionModel(agent, context))
register_detection_model("raycast_fan", lambda agent, context=None: RaycastFanDetectionModel(agent, context))
