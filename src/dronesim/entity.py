# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Entity and agent classes for the simulator.

Agents never own their physical state: position, velocity and heading are
read from the physics world through the agent's body id every time they are
needed. Decision logic is delegated to a `Behavior` plugin; perception to a
`DetectionModel` plugin.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from dronesim.bodies.shapes2D import Circle, Shape2DFactory
from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.plugin_base import Intent
from dronesim.plugin_registry import get_behavior, get_detection_model
import dronesim.models  # noqa: F401  # ensure built-in models register themselves

logger = logging.getLogger("sim.entity")

DRONE_RADIUS = 15.0
DRONE_DENSITY = 0.006
DRONE_FRICTION_AIR = 0.08
DRONE_RESTITUTION = 0.3
OBJECT_FRICTION_AIR = 0.05
OBJECT_RESTITUTION = 0.1
DEFAULT_OBJECT_MASS = 5.0
DEFAULT_SENSOR_RADIUS = 200.0
DEFAULT_MAX_FORCE = 0.005
DEFAULT_MAX_SPEED = 5.0
DEFAULT_WAYPOINT_THRESHOLD = 10.0
ARRIVAL_DISTANCE = 1.0


def _coerce_positive(value, default: float) -> float:
    """Return `value` as a positive float, `default` when missing or implausible."""
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or value <= 0:
        return default
    return value


@dataclass
class PIDGains:
    """Velocity controller gains."""
    kp: float = 0.01
    ki: float = 0.0001
    kd: float = 0.005

    @classmethod
    def from_config(cls, value) -> "PIDGains":
        """Accept a PIDGains, a mapping (kp/kP, ki/kI, kd/kD) or None."""
        if isinstance(value, PIDGains):
            return value
        gains = cls()
        if not isinstance(value, dict):
            return gains
        for attr, keys in (("kp", ("kp", "kP")), ("ki", ("ki", "kI")), ("kd", ("kd", "kD"))):
            for key in keys:
                if key in value:
                    try:
                        setattr(gains, attr, float(value[key]))
                    except (TypeError, ValueError):
                        logger.warning("Ignoring invalid PID gain %s=%r", key, value[key])
                    break
        return gains


@dataclass
class PIDState:
    """Integral and last error per axis."""
    integral_x: float = 0.0
    integral_y: float = 0.0
    last_error_x: float = 0.0
    last_error_y: float = 0.0

    def reset(self) -> None:
        """Zero the accumulated terms."""
        self.integral_x = 0.0
        self.integral_y = 0.0
        self.last_error_x = 0.0
        self.last_error_y = 0.0


@dataclass
class Obstacle:
    """Static geometry registered with the simulation manager."""
    obstacle_id: str
    shape_type: str
    position: Vector2D
    size: dict
    static: bool = True

    @property
    def radius(self) -> float:
        """Footprint radius (circle radius or half the larger side)."""
        if "radius" in self.size:
            return float(self.size["radius"])
        return max(float(self.size.get("width", 100)), float(self.size.get("height", 100))) / 2

    def reposition(self, position) -> None:
        """Move the obstacle; only the simulation manager calls this."""
        self.position = Vector2D.from_any(position)

    def to_dict(self) -> dict:
        return {
            "id": self.obstacle_id,
            "type": self.shape_type,
            "position": {"x": self.position.x, "y": self.position.y},
            "size": dict(self.size),
            "is_static": self.static,
        }


@dataclass
class TransportObject:
    """Movable object (for example a payload to be caged and transported)."""
    object_id: str
    shape_type: str
    size: dict
    mass: float = DEFAULT_OBJECT_MASS
    is_target: bool = False


class EntityFactory:
    """Entity factory: creates physics bodies for drones, obstacles and objects."""
    @staticmethod
    def normalize_size(shape_type: str, size: Optional[dict]) -> dict:
        """Fill radius/width/height defaults for a shape."""
        size = dict(size or {})
        width = _coerce_positive(size.get("width", size.get("w")), 100.0)
        height = _coerce_positive(size.get("height", size.get("h")), 100.0)
        result = {"width": width, "height": height}
        if (shape_type or "").lower() == "circle":
            result["radius"] = _coerce_positive(size.get("radius"), 50.0)
        if size.get("points") or size.get("path"):
            result["points"] = size.get("points") or size.get("path")
        return result

    @staticmethod
    def create_drone_body(physics, agent_id: str, position, config: Optional[dict] = None):
        """Create the circular drone hitbox."""
        config = config or {}
        radius = _coerce_positive(config.get("radius"), DRONE_RADIUS)
        return physics.create_body(
            agent_id,
            Circle(radius),
            position,
            kind="drone",
            label=f"drone_{agent_id}",
            density=_coerce_positive(config.get("density"), DRONE_DENSITY),
            friction_air=DRONE_FRICTION_AIR,
            restitution=DRONE_RESTITUTION,
        )

    @staticmethod
    def create_obstacle(
        physics, obstacle_id: str, shape_type: str, position, size: Optional[dict] = None, angle: float = 0.0
    ) -> Obstacle:
        """Create a static obstacle body, rotated by `angle` radians, and its registry record."""
        shape_type = (shape_type or "rectangle").lower()
        size = EntityFactory.normalize_size(shape_type, size)
        if shape_type not in ("circle", "custom", "polygon"):
            shape_type = "rectangle"
        shape = Shape2DFactory.create_shape(shape_type, size)
        physics.create_body(
            obstacle_id,
            shape,
            position,
            static=True,
            kind="obstacle",
            label=f"obstacle_{obstacle_id}",
            angle=angle,
        )
        obstacle = Obstacle(str(obstacle_id), shape_type, Vector2D.from_any(position), size)
        logger.info("Created obstacle %s (%s)", obstacle_id, shape_type)
        return obstacle

    @staticmethod
    def create_object(
        physics,
        object_id: str,
        shape_type: str,
        position,
        size: Optional[dict] = None,
        mass: float = DEFAULT_OBJECT_MASS,
        is_target: bool = False,
        angle: float = 0.0,
    ) -> TransportObject:
        """Create a dynamic object whose density yields the requested mass."""
        shape_type = (shape_type or "rectangle").lower()
        size = EntityFactory.normalize_size(shape_type, size)
        if shape_type not in ("circle", "custom", "polygon"):
            shape_type = "rectangle"
        shape = Shape2DFactory.create_shape(shape_type, size)
        mass = _coerce_positive(mass, DEFAULT_OBJECT_MASS)
        physics.create_body(
            object_id,
            shape,
            position,
            kind="object",
            label="target" if is_target else f"object_{object_id}",
            density=mass / shape.area(),
            friction_air=OBJECT_FRICTION_AIR,
            restitution=OBJECT_RESTITUTION,
            is_target=is_target,
            angle=angle,
        )
        logger.info("Created object %s (%s, mass=%.2f, target=%s)", object_id, shape_type, mass, is_target)
        return TransportObject(str(object_id), shape_type, size, mass, is_target)


class DroneAgent:
    """
    A simulated drone with sensing, communication and force-based actuation.

    The agent's physics body must already exist under `agent_id`. One tick
    of the agent is `perceive()`, `communicate()`, `think()` and `act()`;
    the simulation manager runs each phase for every agent before moving to
    the next one and steps physics only after every agent has acted.
    """
    def __init__(self, agent_id, physics, bus, sensors, config: Optional[dict] = None):
        """Initialize the instance."""
        config = dict(config or {})
        self.id = str(agent_id)
        self.physics = physics
        self.bus = bus
        self.sensors = sensors
        self.config = config
        self.team = config.get("team") or "default"
        self.role = config.get("role") or "worker"
        self.sensor_radius = _coerce_positive(config.get("sensor_radius", config.get("senseRange")), DEFAULT_SENSOR_RADIUS)
        bus_range = getattr(bus, "comm_range", math.inf) if bus is not None else math.inf
        self.comm_radius = _coerce_positive(config.get("comm_radius", config.get("commRange")), bus_range)
        self.max_force = _coerce_positive(config.get("max_force"), DEFAULT_MAX_FORCE)
        self.max_speed = _coerce_positive(config.get("max_speed"), DEFAULT_MAX_SPEED)
        self.waypoint_threshold = _coerce_positive(config.get("waypoint_threshold"), DEFAULT_WAYPOINT_THRESHOLD)
        self.reset_pid_on_goal = bool(config.get("reset_pid_on_goal", False))
        self.pid_gains = PIDGains.from_config(config.get("pid"))
        self.pid_state = PIDState()
        self.state: dict = dict(config.get("state") or {})
        # --- goals ---
        self.goal: Optional[Vector2D] = None
        self.path: List[Vector2D] = []
        self.current_waypoint = 0
        self.goal_reached = False
        # --- messaging ---
        self.message_handlers: List[Callable[[Any], None]] = []
        self._inbox: list = []
        self.messages: list = []
        # --- perception / decision ---
        self.sensed = None
        self.last_intent: Optional[Intent] = None
        self.behavior_name = None
        self.behavior = None
        self.set_behavior(config.get("behavior", "goal_seek"), config.get("behavior_options"))
        detection_name = config.get("detection", "proximity")
        self.detection = get_detection_model(detection_name, self, config.get("detection_options"))
        if self.detection is None:
            raise ValueError(f"Unknown detection model '{detection_name}' for agent {self.id}")
        if self.bus is not None:
            self.bus.subscribe(self.id, self._receive, self.get_position)
        self._destroyed = False
        logger.info("Created agent %s (team=%s, role=%s, behavior=%s)", self.id, self.team, self.role, self.behavior_name)

    def get_name(self) -> str:
        """Return the name."""
        return self.id

    def set_behavior(self, behavior, options: Optional[dict] = None) -> None:
        """Attach a behaviour by registered name or instance; None disables decisions."""
        if behavior is None:
            self.behavior = None
            self.behavior_name = None
            return
        if isinstance(behavior, str):
            instance = get_behavior(behavior, options)
            if instance is None:
                raise ValueError(f"Unknown behavior '{behavior}' for agent {self.id}")
            self.behavior = instance
            self.behavior_name = behavior.strip().lower()
            return
        self.behavior = behavior
        self.behavior_name = type(behavior).__name__

    # ----- perception ---------------------------------------------------------

    def sense(self, radius: Optional[float] = None):
        """Sense the environment around the drone."""
        return self.sensors.sense(self.get_position(), radius or self.sensor_radius, self.id)

    def get_position(self) -> Vector2D:
        """Return the position."""
        return self.physics.get_position(self.id)

    def get_velocity(self) -> Vector2D:
        """Return the velocity."""
        return self.physics.get_velocity(self.id)

    def get_angle(self) -> float:
        """Return the heading in radians."""
        return self.physics.get_angle(self.id)

    def raycast(self, angle: float, max_distance: float = 500.0):
        """Cast a ray from the drone along `angle` radians."""
        direction = Vector2D(math.cos(angle), math.sin(angle))
        return self.sensors.raycast(self.get_position(), direction, max_distance, self.id)

    def can_see(self, target) -> bool:
        """True when nothing blocks the segment to `target`."""
        return self.sensors.is_path_clear(self.get_position(), target, self.id)

    # ----- communication ------------------------------------------------------

    def broadcast(self, payload: Any) -> int:
        """Broadcast to every drone within this agent's communication radius."""
        if self.bus is None:
            return 0
        return self.bus.broadcast(self.id, payload, self.get_position(), self.comm_radius)

    def send(self, target_id, payload: Any) -> bool:
        """Send a direct message; returns True when delivered."""
        if self.bus is None:
            return False
        return self.bus.send(self.id, str(target_id), payload, self.get_position(), self.comm_radius)

    def on_message(self, handler: Callable[[Any], None]) -> None:
        """Register a message handler run during the communicate phase."""
        self.message_handlers.append(handler)

    def get_drones_in_range(self) -> List[str]:
        """Ids of other drones a `broadcast` would reach."""
        if self.bus is None:
            return []
        in_range = self.bus.get_drones_in_range(self.get_position(), self.comm_radius)
        return [agent_id for agent_id in in_range if agent_id != self.id]

    def _receive(self, message) -> None:
        """Bus callback: queue until the next communicate phase."""
        self._inbox.append(message)

    # ----- action -------------------------------------------------------------

    def apply_force(self, fx: float, fy: float) -> None:
        """Apply a force clamped to `max_force`."""
        force = Vector2D(fx, fy).clamp_magnitude(self.max_force)
        self.physics.apply_force(self.id, force)

    def set_desired_velocity(self, vx: float, vy: float) -> None:
        """
        Track a velocity with the PID controller.

        The integral and derivative terms persist when the target changes
        (see `reset_pid`). The integral only grows while the output stays
        below `max_force`, and an axis restarts its integral when its error
        changes sign, so a saturated approach cannot carry the body past
        the target.
        """
        desired = Vector2D(vx, vy).clamp_magnitude(self.max_speed)
        current = self.get_velocity()
        error_x = desired.x - current.x
        error_y = desired.y - current.y
        gains = self.pid_gains
        pid = self.pid_state
        if error_x * pid.integral_x < 0:
            pid.integral_x = 0.0
        if error_y * pid.integral_y < 0:
            pid.integral_y = 0.0
        derivative_x = error_x - pid.last_error_x
        derivative_y = error_y - pid.last_error_y
        pd_x = gains.kp * error_x + gains.kd * derivative_x
        pd_y = gains.kp * error_y + gains.kd * derivative_y
        integral_x = pid.integral_x + error_x
        integral_y = pid.integral_y + error_y
        if math.hypot(pd_x + gains.ki * integral_x, pd_y + gains.ki * integral_y) <= self.max_force:
            pid.integral_x = integral_x
            pid.integral_y = integral_y
        fx = pd_x + gains.ki * pid.integral_x
        fy = pd_y + gains.ki * pid.integral_y
        pid.last_error_x = error_x
        pid.last_error_y = error_y
        self.apply_force(fx, fy)

    def move_toward(self, target, speed_scale: float = 1.0) -> None:
        """Head for `target` at `speed_scale * max_speed`; no-op within one unit."""
        target = Vector2D.from_any(target)
        delta = target - self.get_position()
        dist = delta.magnitude()
        if dist < ARRIVAL_DISTANCE:
            return
        velocity = delta * (speed_scale * self.max_speed / dist)
        self.set_desired_velocity(velocity.x, velocity.y)

    def stop(self) -> None:
        """Track a zero velocity."""
        self.set_desired_velocity(0.0, 0.0)

    def reset_pid(self) -> None:
        """Drop the accumulated PID terms."""
        self.pid_state.reset()

    # ----- goals --------------------------------------------------------------

    def set_goal(self, goal) -> None:
        """Track a single point."""
        self.goal = Vector2D.from_any(goal)
        self.path = []
        self.current_waypoint = 0
        self.goal_reached = False
        if self.reset_pid_on_goal:
            self.reset_pid()
        logger.debug("%s goal set to %s", self.id, self.goal)

    def set_path(self, waypoints) -> None:
        """Follow an ordered waypoint list; the last waypoint is the goal."""
        points = list(waypoints or [])
        if not points:
            self.clear_goal()
            return
        self.path = [p if isinstance(p, Vector2D) else Vector2D.from_any(p) for p in points]
        self.current_waypoint = 0
        self.goal = self.path[-1]
        self.goal_reached = False
        if self.reset_pid_on_goal:
            self.reset_pid()
        logger.debug("%s following %d waypoints", self.id, len(self.path))

    def clear_goal(self) -> None:
        """Forget the current goal and path."""
        self.goal = None
        self.path = []
        self.current_waypoint = 0
        self.goal_reached = False

    def current_target(self) -> Optional[Vector2D]:
        """Waypoint currently tracked (the goal when there is no path)."""
        if self.path:
            return self.path[min(self.current_waypoint, len(self.path) - 1)]
        return self.goal

    def _update_goal_progress(self) -> None:
        """Advance waypoints reached within `waypoint_threshold`."""
        target = self.current_target()
        if target is None or self.goal_reached:
            return
        position = self.get_position()
        while target is not None and position.distance_to(target) < self.waypoint_threshold:
            if self.path and self.current_waypoint < len(self.path) - 1:
                self.current_waypoint += 1
                target = self.current_target()
                continue
            self.goal_reached = True
            logger.info("%s reached its goal %s", self.id, self.goal)
            break

    # ----- tick phases --------------------------------------------------------

    def perceive(self):
        """Sense phase."""
        try:
            self.sensed = self.detection.sense(self)
        except Exception:
            logger.exception("Agent %s detection failed", self.id)
            self.sensed = None
        return self.sensed

    def communicate(self) -> list:
        """Run handlers for every message delivered since the previous call."""
        messages, self._inbox = self._inbox, []
        for message in messages:
            for handler in list(self.message_handlers):
                try:
                    handler(message)
                except Exception:
                    logger.exception("Agent %s message handler failed", self.id)
        self.messages = messages
        return messages

    def think(self) -> Optional[Intent]:
        """Ask the behaviour for this tick's intent; failures yield no intent."""
        self._update_goal_progress()
        self._refresh_state()
        if self.behavior is None:
            return None
        try:
            intent = self.behavior.decide(self.sensed, self.messages, self.state)
        except Exception:
            logger.exception("Agent %s behavior %s failed", self.id, self.behavior_name)
            return None
        return intent

    def act(self, intent: Optional[Intent]) -> None:
        """Convert the intent into a force and send queued messages."""
        self.last_intent = intent
        if intent is None:
            return
        if intent.stop:
            self.stop()
        elif intent.force is not None:
            self.apply_force(intent.force.x, intent.force.y)
        elif intent.velocity is not None:
            self.set_desired_velocity(intent.velocity.x, intent.velocity.y)
        elif intent.target is not None:
            self.move_toward(intent.target, intent.speed_scale)
        for target_id, payload in intent.messages:
            if target_id is None:
                self.broadcast(payload)
            else:
                self.send(target_id, payload)

    def _refresh_state(self) -> None:
        """Publish the read-only view behaviours rely on."""
        state = self.state
        state["id"] = self.id
        state["team"] = self.team
        state["role"] = self.role
        state["position"] = self.get_position()
        state["velocity"] = self.get_velocity()
        state["max_speed"] = self.max_speed
        state["sensor_radius"] = self.sensor_radius
        state["goal"] = self.current_target()
        state["final_goal"] = self.goal
        state["goal_reached"] = self.goal_reached

    # ----- lifecycle ----------------------------------------------------------

    def get_state(self) -> dict:
        """Snapshot for rendering and telemetry."""
        position = self.get_position()
        velocity = self.get_velocity()
        target = self.current_target()
        return {
            "id": self.id,
            "team": self.team,
            "role": self.role,
            "position": {"x": position.x, "y": position.y},
            "velocity": {"x": velocity.x, "y": velocity.y},
            "speed": velocity.magnitude(),
            "angle": self.get_angle(),
            "goal": None if self.goal is None else {"x": self.goal.x, "y": self.goal.y},
            "target": None if target is None else {"x": target.x, "y": target.y},
            "goal_reached": self.goal_reached,
            "current_waypoint": self.current_waypoint,
            "path_length": len(self.path),
            "behavior": self.behavior_name,
            "sensor_radius": self.sensor_radius,
            "comm_radius": self.comm_radius,
            "slot": self.state.get("slot_index"),
        }

    def destroy(self) -> None:
        """Deregister from the bus and remove the physics body."""
        if self._destroyed:
            return
        if self.bus is not None:
            self.bus.unsubscribe(self.id)
        self.physics.remove_body(self.id)
        self._inbox = []
        self.messages = []
        self._destroyed = True
        logger.info("Destroyed agent %s", self.id)

    def __repr__(self) -> str:
        return f"DroneAgent({self.id!r}, team={self.team!r}, role={self.role!r})"
