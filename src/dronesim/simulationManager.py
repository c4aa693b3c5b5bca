# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""SimulationManager: owns the world, the bus and the agents, and drives ticks."""
import logging
import math
from collections import deque
from random import Random
from typing import Callable, Dict, List, Optional, Tuple

from dronesim.algorithms.formation import (
    FormationPlanner,
    FormationShape,
    assign_slots,
    is_formation_complete,
)
from dronesim.algorithms.path_planner import PathPlanner, obstacles_from_world
from dronesim.bodies.shapes2D import Circle, PolygonShape, Rectangle
from dronesim.config import Config
from dronesim.entity import DroneAgent, EntityFactory, Obstacle, TransportObject
from dronesim.geometry_utils.polygon import polygon_bounds
from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.messagebus import DEFAULT_COMM_RANGE, DEFAULT_HISTORY_SIZE, MessageBusFactory
from dronesim.physics import PhysicsWorld
from dronesim.sensor_system import SensorSystem

logger = logging.getLogger("sim.simulation")

COLLISION_LOG_SIZE = 10
ITEM_SENSE_RANGE = 150
ITEM_COMM_RANGE = 200
AGENT_CONFIG_KEYS = (
    "team", "role", "sensor_radius", "senseRange", "comm_radius", "commRange",
    "max_force", "max_speed", "waypoint_threshold", "reset_pid_on_goal", "pid",
    "state", "behavior", "behavior_options", "detection", "detection_options",
    "radius", "density",
)
FORMATION_LAYOUTS = ("perimeter", "area", "cage")


def _item_placement(item: dict, current_state_id=None) -> Tuple[Vector2D, float]:
    """Position and angle (radians) of an editor item in the given named state; editor rotations are degrees."""
    state_positions = item.get("statePositions") or {}
    if current_state_id is not None and current_state_id in state_positions:
        state = state_positions[current_state_id]
        rotation = state.get("rotation") if isinstance(state, dict) else None
        return Vector2D.from_any(state), math.radians(float(rotation or 0.0))
    rotation = math.radians(float(item.get("rotation") or 0.0))
    if item.get("position") is not None:
        return Vector2D.from_any(item["position"]), rotation
    if "x" in item and "y" in item:
        return Vector2D(item["x"], item["y"]), rotation
    return Vector2D(), rotation


def _item_is_obstacle(item: dict) -> bool:
    return bool(item.get("isObstacle", item.get("obstacle", False)))


class SimulationManager:
    """
    One independent simulation: physics world, sensors, message bus, agents
    and the obstacle/object registries.

    A tick runs the agent phases in lock step (every agent senses, then every
    agent communicates, thinks and acts) and only then advances physics.
    """
    def __init__(
        self,
        width: float = 2000,
        height: float = 2000,
        tick_rate: float = 60,
        comm_range: float = DEFAULT_COMM_RANGE,
        bus: str = "spatial",
        history_size: int = DEFAULT_HISTORY_SIZE,
        physics: Optional[PhysicsWorld] = None,
        bus_instance=None,
        boundary_thickness: float = 50,
        random_seed: Optional[int] = None,
    ) -> None:
        """Initialize the instance."""
        self.width = float(width)
        self.height = float(height)
        self.tick_rate = tick_rate if tick_rate and tick_rate > 0 else 60
        self.default_delta_ms = 1000.0 / self.tick_rate
        self.physics = physics or PhysicsWorld(self.width, self.height, boundary_thickness)
        self.sensors = SensorSystem(self.physics)
        if bus_instance is None:
            bus_instance = MessageBusFactory.create({"bus": bus, "comm_range": comm_range, "history": history_size})
        self.bus = bus_instance
        self.random_seed = random_seed
        self.random = Random(random_seed)
        self.path_planner = PathPlanner(random_generator=self.random)
        self.formation_planner = FormationPlanner(seed=random_seed or 0)
        self.agents: Dict[str, DroneAgent] = {}
        self.obstacles: Dict[str, Obstacle] = {}
        self.objects: Dict[str, TransportObject] = {}
        self.object_shapes: Dict[str, FormationShape] = {}
        self.formation_assignments: Dict[str, object] = {}
        self.collision_log: deque = deque(maxlen=COLLISION_LOG_SIZE)
        self.on_update: Optional[Callable[[dict], None]] = None
        self.on_collision: Optional[Callable[[dict], None]] = None
        self.running = False
        self.tick_count = 0
        self.physics.on_collision(self._handle_collision)
        logger.info("SimulationManager ready (%.0fx%.0f @ %s Hz)", self.width, self.height, self.tick_rate)

    @classmethod
    def from_config(cls, config) -> "SimulationManager":
        """Build a manager from a `Config` (or raw config dict) and load its items."""
        if not isinstance(config, Config):
            config = Config(new_data=config)
        config.validate()
        world = config.world
        messages = config.messages
        manager = cls(
            width=world.get("width", 2000),
            height=world.get("height", 2000),
            tick_rate=config.ticks_per_second,
            comm_range=messages.get("comm_range", DEFAULT_COMM_RANGE),
            bus=messages.get("bus", "spatial"),
            history_size=messages.get("history", DEFAULT_HISTORY_SIZE),
            boundary_thickness=world.get("boundary_thickness", 50),
            random_seed=config.random_seed,
        )
        manager.sync_from_items(config.items)
        return manager

    # ----- agents -------------------------------------------------------------

    def add_agent(self, agent_id, position, config: Optional[dict] = None) -> DroneAgent:
        """Create the drone body and its agent; duplicate ids raise ValueError."""
        agent_id = str(agent_id)
        if agent_id in self.agents:
            raise ValueError(f"Agent '{agent_id}' already exists")
        EntityFactory.create_drone_body(self.physics, agent_id, Vector2D.from_any(position), config)
        try:
            agent = DroneAgent(agent_id, self.physics, self.bus, self.sensors, config)
        except Exception:
            self.physics.remove_body(agent_id)
            raise
        self.agents[agent_id] = agent
        return agent

    def remove_agent(self, agent_id) -> bool:
        """Destroy an agent; unknown ids return False."""
        agent = self.agents.pop(str(agent_id), None)
        if agent is None:
            logger.debug("remove_agent: unknown agent %s", agent_id)
            return False
        agent.destroy()
        self.formation_assignments.pop(agent.id, None)
        return True

    def get_agent(self, agent_id) -> Optional[DroneAgent]:
        """Return the agent or None."""
        return self.agents.get(str(agent_id))

    def set_agent_goal(self, agent_id, goal) -> bool:
        """Give one agent a point goal."""
        agent = self.get_agent(agent_id)
        if agent is None:
            logger.debug("set_agent_goal: unknown agent %s", agent_id)
            return False
        agent.set_goal(goal)
        return True

    def set_agent_path(self, agent_id, path) -> bool:
        """Give one agent a waypoint list."""
        agent = self.get_agent(agent_id)
        if agent is None:
            logger.debug("set_agent_path: unknown agent %s", agent_id)
            return False
        agent.set_path(path)
        return True

    def set_all_goals(self, goals: dict) -> None:
        """Apply an {agent_id: goal} mapping."""
        for agent_id, goal in goals.items():
            self.set_agent_goal(agent_id, goal)

    def all_goals_reached(self) -> bool:
        """True when every agent with a goal has reached it."""
        return all(agent.goal is None or agent.goal_reached for agent in self.agents.values())

    # ----- obstacles and objects ----------------------------------------------

    def add_obstacle(self, obstacle_id, shape_type: str, position, size: Optional[dict] = None,
                     angle: float = 0.0) -> Obstacle:
        """Create a static obstacle rotated by `angle` radians."""
        obstacle = EntityFactory.create_obstacle(self.physics, str(obstacle_id), shape_type, position, size, angle)
        self.obstacles[obstacle.obstacle_id] = obstacle
        return obstacle

    def remove_obstacle(self, obstacle_id) -> bool:
        """Remove an obstacle; unknown ids return False."""
        obstacle = self.obstacles.pop(str(obstacle_id), None)
        if obstacle is None:
            logger.debug("remove_obstacle: unknown obstacle %s", obstacle_id)
            return False
        self.physics.remove_body(obstacle.obstacle_id)
        return True

    def update_obstacle(self, obstacle_id, position) -> bool:
        """Move an obstacle body and its record."""
        obstacle = self.obstacles.get(str(obstacle_id))
        if obstacle is None:
            logger.debug("update_obstacle: unknown obstacle %s", obstacle_id)
            return False
        self.physics.set_position(obstacle.obstacle_id, position)
        obstacle.reposition(position)
        return True

    def add_object(self, object_id, shape_type: str, position, size: Optional[dict] = None,
                   mass: float = 5, is_target: bool = False, angle: float = 0.0) -> TransportObject:
        """Create a dynamic transportable object rotated by `angle` radians."""
        obj = EntityFactory.create_object(self.physics, str(object_id), shape_type, position, size, mass, is_target, angle)
        self.objects[obj.object_id] = obj
        return obj

    def remove_object(self, object_id) -> bool:
        """Remove a transportable object; unknown ids return False."""
        obj = self.objects.pop(str(object_id), None)
        if obj is None:
            logger.debug("remove_object: unknown object %s", object_id)
            return False
        self.object_shapes.pop(obj.object_id, None)
        self.physics.remove_body(obj.object_id)
        return True

    # ----- simulation loop ----------------------------------------------------

    def tick(self, delta_ms: Optional[float] = None) -> dict:
        """Run sense, communicate, think and act for every agent, then step physics."""
        delta = self.default_delta_ms if delta_ms is None else float(delta_ms)
        agents = list(self.agents.values())
        for agent in agents:
            agent.perceive()
        for agent in agents:
            agent.communicate()
        intents = [(agent, agent.think()) for agent in agents]
        for agent, intent in intents:
            agent.act(intent)
        self.physics.step(delta)
        self.tick_count += 1
        states = self.get_agent_states()
        if self.on_update is not None:
            try:
                self.on_update(states)
            except Exception:
                logger.exception("Update listener failed at tick %d", self.tick_count)
        return states

    def step(self) -> dict:
        """One tick at the nominal rate."""
        return self.tick(self.default_delta_ms)

    def start(self) -> None:
        """Mark the loop as running."""
        if not self.running:
            self.running = True
            logger.info("Simulation started at tick %d", self.tick_count)

    def stop(self) -> None:
        """Stop the loop after the current tick."""
        if self.running:
            self.running = False
            logger.info("Simulation stopped at tick %d", self.tick_count)

    def run(self, num_ticks: Optional[int] = None, delta_ms: Optional[float] = None,
            until: Optional[Callable[["SimulationManager"], bool]] = None) -> int:
        """
        Fixed-step loop.

        Runs until `num_ticks` ticks have elapsed, `until(manager)` returns
        True, or `stop()` is called from a callback. Returns the number of
        ticks executed.
        """
        self.start()
        executed = 0
        try:
            while self.running and (num_ticks is None or executed < num_ticks):
                self.tick(delta_ms)
                executed += 1
                if until is not None and until(self):
                    break
        finally:
            self.stop()
        logger.info("Run finished after %d ticks", executed)
        return executed

    # ----- collisions ---------------------------------------------------------

    def _handle_collision(self, contact) -> None:
        """Classify a new contact, log it and forward it."""
        a = contact.body_a
        b = contact.body_b
        if a.kind == "drone" and b.kind == "drone":
            event = {"type": "drone-drone", "agent_a": a.id, "agent_b": b.id}
        elif a.kind == "drone" or b.kind == "drone":
            drone, other = (a, b) if a.kind == "drone" else (b, a)
            event = {"type": f"drone-{other.kind}", "agent": drone.id, "other": other.id, "label": other.label}
        else:
            event = {"type": f"{a.kind}-{b.kind}", "body_a": a.id, "body_b": b.id}
        event["tick"] = self.tick_count
        event["depth"] = contact.depth
        self.collision_log.append(event)
        if self.on_collision is not None:
            try:
                self.on_collision(event)
            except Exception:
                logger.exception("Collision listener failed on %s event", event["type"])

    # ----- state --------------------------------------------------------------

    def get_agent_states(self) -> Dict[str, dict]:
        """Snapshot of every agent keyed by id."""
        return {agent_id: agent.get_state() for agent_id, agent in self.agents.items()}

    def get_object_states(self) -> List[dict]:
        """Snapshot of obstacles and transportable objects."""
        states = []
        for obstacle in self.obstacles.values():
            states.append(self._body_state(obstacle.obstacle_id, "obstacle"))
        for obj in self.objects.values():
            state = self._body_state(obj.object_id, "object")
            state["mass"] = obj.mass
            state["is_target"] = obj.is_target
            states.append(state)
        return states

    def _body_state(self, body_id: str, kind: str) -> dict:
        body = self.physics.get_body(body_id)
        bounds = body.bounds()
        return {
            "id": body_id,
            "kind": kind,
            "position": {"x": body.position.x, "y": body.position.y},
            "angle": body.angle,
            "shape": body.shape.to_dict(),
            "bounds": {"min": {"x": bounds.min_x, "y": bounds.min_y}, "max": {"x": bounds.max_x, "y": bounds.max_y}},
        }

    def get_state(self) -> dict:
        """Full snapshot for telemetry."""
        return {
            "tick": self.tick_count,
            "time_ms": self.physics.time_ms,
            "running": self.running,
            "world": {"width": self.width, "height": self.height},
            "agents": self.get_agent_states(),
            "objects": self.get_object_states(),
            "collisions": list(self.collision_log),
            "messages": [message.to_dict() for message in self.bus.get_message_history(10)],
        }

    # ----- editor items -------------------------------------------------------

    def sync_from_items(self, items, current_state_id=None) -> None:
        """Replace agents, obstacles and objects with the editor `items`."""
        for agent_id in list(self.agents):
            self.remove_agent(agent_id)
        for obstacle_id in list(self.obstacles):
            self.remove_obstacle(obstacle_id)
        for object_id in list(self.objects):
            self.remove_object(object_id)
        self.formation_assignments = {}

        items = list(items or [])
        for item in items:
            if item.get("type") != "drone":
                continue
            config = {key: item[key] for key in AGENT_CONFIG_KEYS if key in item}
            config.setdefault("senseRange", ITEM_SENSE_RANGE)
            config.setdefault("commRange", ITEM_COMM_RANGE)
            position, _ = _item_placement(item, current_state_id)
            agent = self.add_agent(item["id"], position, config)
            if item.get("path"):
                agent.set_path(item["path"])
            elif item.get("goal") is not None:
                agent.set_goal(item["goal"])

        for item in items:
            item_type = item.get("type")
            if item_type == "drone":
                continue
            position, angle = _item_placement(item, current_state_id)
            size = {
                "radius": item.get("radius") or (item["w"] / 2 if item.get("w") else 50),
                "width": item.get("w", item.get("width", 100)),
                "height": item.get("h", item.get("height", 100)),
            }
            if item.get("customPath"):
                size["points"] = item["customPath"]
            if _item_is_obstacle(item):
                self.add_obstacle(item["id"], item_type, position, size, angle)
            else:
                self.add_object(
                    item["id"], item_type, position, size,
                    angle=angle,
                    mass=item.get("mass", item.get("weight", 5)),
                    is_target=bool(item.get("target", item.get("isTarget", False))),
                )
                self.object_shapes[str(item["id"])] = FormationShape.from_item(item)
        logger.info("Synced %d agents, %d obstacles, %d objects", len(self.agents), len(self.obstacles), len(self.objects))

    # ----- planning -----------------------------------------------------------

    def plan_path(self, agent_id, goal, algorithm: str = "astar", **options) -> Optional[list]:
        """Plan around static obstacles and hand the path to the agent."""
        agent = self.get_agent(agent_id)
        if agent is None:
            logger.debug("plan_path: unknown agent %s", agent_id)
            return None
        path = self.path_planner.find_path(
            agent.get_position(),
            goal,
            (self.width, self.height),
            obstacles_from_world(self.physics),
            algorithm,
            options,
        )
        agent.set_path(path)
        return path

    def _shape_for(self, body) -> FormationShape:
        """Formation shape of a body, from its editor item when known."""
        shape = self.object_shapes.get(body.id)
        if shape is not None:
            return shape
        if isinstance(body.shape, Circle):
            return FormationShape("circle", radius=body.shape.radius)
        if isinstance(body.shape, Rectangle):
            return FormationShape("rectangle", width=body.shape.width, height=body.shape.height)
        if isinstance(body.shape, PolygonShape):
            bounds = polygon_bounds(body.shape.points)
            return FormationShape("custom", width=bounds.width, height=bounds.height, path=list(body.shape.points))
        return FormationShape("circle", radius=body.shape.get_radius())

    @staticmethod
    def _formation_anchor(body) -> Vector2D:
        """Point formation offsets are measured from (the outline's bounding-box center)."""
        if isinstance(body.shape, PolygonShape):
            center = polygon_bounds(body.shape.points).center
            return body.position + center.rotate(body.angle)
        return Vector2D(body.position.x, body.position.y)

    def arrange_formation(self, object_id, agent_ids=None, layout: str = "perimeter", **options) -> dict:
        """
        Compute formation slots around an object and send agents to them.

        `layout` is "perimeter" (ground), "area" (air) or "cage" (ring around
        the object). Each agent gets the nearest free slot greedily; its goal
        is set to the slot and `state["slot"]`/`state["slot_index"]` are
        published for formation behaviours. Returns {agent_id: slot}.
        """
        body = self.physics.get_body(object_id)
        if body is None:
            logger.debug("arrange_formation: unknown object %s", object_id)
            return {}
        if layout not in FORMATION_LAYOUTS:
            raise ValueError(f"Unknown formation layout '{layout}'. Available: {', '.join(FORMATION_LAYOUTS)}")
        ids = [str(agent_id) for agent_id in (agent_ids if agent_ids is not None else self.agents.keys())]
        agents = [self.agents[agent_id] for agent_id in ids if agent_id in self.agents]
        count = len(agents)
        if layout == "cage":
            cage = self.formation_planner.caging_positions(
                body.bounds(), body.position, count, options.get("formation_type", "circle"),
                options.get("min_distance", 50), options.get("max_distance", 100),
            )
            slots = self.formation_planner.to_world([entry.position - body.position for entry in cage], body.position)
        else:
            shape = self._shape_for(body)
            if layout == "perimeter":
                offsets = self.formation_planner.perimeter_layout(shape, count)
            else:
                offsets = self.formation_planner.area_layout(shape, count)
            slots = self.formation_planner.to_world(offsets, self._formation_anchor(body), body.angle)
        assignments = assign_slots([(agent.id, agent.get_position()) for agent in agents], slots)
        behavior = options.get("behavior")
        for agent in agents:
            slot = assignments.get(agent.id)
            if slot is None:
                continue
            agent.state["slot"] = slot.target
            agent.state["slot_index"] = slot.index
            if behavior:
                agent.set_behavior(behavior, options.get("behavior_options"))
            agent.set_goal(slot.target)
        self.formation_assignments = dict(assignments)
        logger.info("Formation '%s' around %s with %d agents", layout, object_id, len(assignments))
        return assignments

    def formation_complete(self, tolerance: float = 10.0) -> bool:
        """True when every assigned agent is within `tolerance` of its slot."""
        if not self.formation_assignments:
            return False
        agents = [(agent_id, agent.get_position()) for agent_id, agent in self.agents.items()]
        return is_formation_complete(agents, self.formation_assignments, tolerance)

    # ----- lifecycle ----------------------------------------------------------

    def destroy(self) -> None:
        """Stop and release every component."""
        self.stop()
        for agent_id in list(self.agents):
            self.remove_agent(agent_id)
        self.obstacles.clear()
        self.objects.clear()
        self.object_shapes.clear()
        self.collision_log.clear()
        self.bus.close()
        self.physics.clear()
        logger.info("Simulation destroyed after %d ticks", self.tick_count)

    def __repr__(self) -> str:
        return f"SimulationManager(agents={len(self.agents)}, tick={self.tick_count}, running={self.running})"
