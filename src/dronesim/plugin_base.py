# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Core plugin interfaces used by the simulator.

Behaviours, perception models, message buses and path algorithms are all
resolved by name through `plugin_registry`, so they can be extended from
external modules without touching the core.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Tuple

from dronesim.geometry_utils.vector2D import Vector2D


class Behavior(Protocol):
    """
    Decision logic of an agent.

    `decide` is a pure function of what the agent sensed, the messages it
    received since the previous tick and its private `state` blob. Keeping
    the state outside the behaviour lets many agents share one instance.
    """
    def decide(self, sensed: Any, messages: List[Any], state: dict) -> Any:
        """Return the `Intent` for this tick (or None for no intent)."""


class DetectionModel(Protocol):
    """
    Interface for perception components.

    Detection plugins turn the physical world around an agent into the
    `sensed` value handed to its behaviour.
    """
    def sense(self, agent: Any, radius: Optional[float] = None) -> Any:
        """Return the perception produced for `agent`."""


class MessageBusModel(Protocol):
    """
    Interface for message-bus implementations.

    Delivery is synchronous and range gated at send time.
    """
    def subscribe(self, agent_id: str, on_message: Callable[[Any], None], position_provider: Callable[[], Any]) -> None:
        """Register a participant."""

    def unsubscribe(self, agent_id: str) -> None:
        """Remove a participant."""

    def broadcast(self, sender_id: str, payload: Any, sender_position: Any, comm_range: Optional[float] = None) -> int:
        """Deliver to every other participant in range; return the delivery count."""

    def send(self, sender_id: str, target_id: str, payload: Any, sender_position: Any) -> bool:
        """Deliver to one participant; return whether delivery occurred."""

    def get_drones_in_range(self, position: Any, comm_range: Optional[float] = None) -> List[str]:
        """Return subscriber ids within range of `position`."""

    def close(self) -> None:
        """Release any resources retained by the bus."""


class PathAlgorithm(Protocol):
    """
    Interface for path-finding algorithms.

    Implementations never raise on search exhaustion; they return the
    direct `[start, goal]` segment instead.
    """
    def find_path(self, start: Any, goal: Any, bounds: Any, obstacles: List[Any], options: Optional[dict] = None) -> List[Any]:
        """Return an ordered list of waypoints from `start` to `goal`."""


@dataclass
class Intent:
    """
    Desired motion returned by a behaviour for one tick.

    Exactly one actuation channel is used, in priority order: `stop`,
    `force`, `velocity`, `target`. `messages` holds `(target_id, payload)`
    pairs sent during the act phase; a None target is a broadcast.
    """
    force: Optional[Vector2D] = None
    velocity: Optional[Vector2D] = None
    target: Optional[Vector2D] = None
    speed_scale: float = 1.0
    stop: bool = False
    messages: List[Tuple[Optional[str], Any]] = field(default_factory=list)

    @classmethod
    def none(cls) -> "Intent":
        """No actuation this tick."""
        return cls()

    @classmethod
    def apply_force(cls, fx: float, fy: float) -> "Intent":
        return cls(force=Vector2D(fx, fy))

    @classmethod
    def desired_velocity(cls, vx: float, vy: float) -> "Intent":
        return cls(velocity=Vector2D(vx, vy))

    @classmethod
    def move_toward(cls, target, speed_scale: float = 1.0) -> "Intent":
        return cls(target=Vector2D.from_any(target), speed_scale=speed_scale)

    @classmethod
    def halt(cls) -> "Intent":
        return cls(stop=True)

    def with_broadcast(self, payload: Any) -> "Intent":
        """Queue a broadcast and return self."""
        self.messages.append((None, payload))
        return self

    def with_message(self, target_id, payload: Any) -> "Intent":
        """Queue a direct message and return self."""
        self.messages.append((str(target_id), payload))
        return self

    @property
    def is_empty(self) -> bool:
        return (not self.stop and self.force is None and self.velocity is None
                and self.target is None and not self.messages)

