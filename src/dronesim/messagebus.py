# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Messaging infrastructure between agents (protected core module)."""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.plugin_registry import (
    available_message_buses,
    get_message_bus,
    register_message_bus,
)

logger = logging.getLogger("sim.messagebus")

DEFAULT_COMM_RANGE = 300.0
DEFAULT_HISTORY_SIZE = 100

BROADCAST = "broadcast"
DIRECT = "direct"


@dataclass
class Message:
    """A message routed by the bus; `target` is None for broadcasts."""
    sender: str
    target: Optional[str]
    payload: Any
    timestamp: float
    kind: str = BROADCAST
    delivered: int = 0

    def to_dict(self) -> dict:
        """Serialize for telemetry."""
        return {
            "type": self.kind,
            "from": self.sender,
            "to": self.target,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "delivered": self.delivered,
        }


@dataclass
class _Subscriber:
    on_message: Callable[[Message], None]
    position_provider: Callable[[], Any]


def _parse_range(value, default: float) -> float:
    """Accept numbers, None, 'inf'/'infinity'; implausible values fall back to `default`."""
    if value is None:
        return default
    if isinstance(value, str) and value.strip().lower() in ("inf", "infinity", "global"):
        return math.inf
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or value < 0:
        return default
    return value


class BaseMessageBus:
    """
    Base implementation shared by all buses.

    It keeps the subscriber table and the bounded message history; derived
    classes only decide how the range gate behaves. Receiver positions are
    read through each subscriber's position provider at delivery time.
    """

    def __init__(
        self,
        comm_range: float = DEFAULT_COMM_RANGE,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the instance."""
        self.comm_range = _parse_range(comm_range, DEFAULT_COMM_RANGE)
        self.history_size = max(1, int(history_size or DEFAULT_HISTORY_SIZE))
        self.clock = clock
        self.subscribers: Dict[str, _Subscriber] = {}
        self.history: Deque[Message] = deque(maxlen=self.history_size)

    # ----- subscription -------------------------------------------------------

    def subscribe(self, agent_id, on_message: Callable[[Message], None], position_provider: Callable[[], Any]) -> None:
        """Register (or replace) a participant."""
        self.subscribers[str(agent_id)] = _Subscriber(on_message, position_provider)
        logger.debug("Subscribed %s", agent_id)

    def unsubscribe(self, agent_id) -> None:
        """Remove a participant; unknown ids are ignored."""
        if self.subscribers.pop(str(agent_id), None) is not None:
            logger.debug("Unsubscribed %s", agent_id)

    def is_subscribed(self, agent_id) -> bool:
        """Return True when `agent_id` is a participant."""
        return str(agent_id) in self.subscribers

    def set_comm_range(self, comm_range) -> None:
        """Change the range gate; `math.inf` means global delivery."""
        self.comm_range = _parse_range(comm_range, self.comm_range)

    # ----- delivery -----------------------------------------------------------

    def broadcast(self, sender_id, payload: Any, sender_position, comm_range: Optional[float] = None) -> int:
        """
        Deliver `payload` to every other subscriber within range of `sender_position`.

        `comm_range` overrides the bus range for this call. Returns the
        number of deliveries.
        """
        sender_id = str(sender_id)
        message = Message(sender_id, None, payload, self.clock(), BROADCAST)
        self._record(message)
        gate = self.comm_range if comm_range is None else _parse_range(comm_range, self.comm_range)
        origin = Vector2D.from_any(sender_position)
        for agent_id, subscriber in list(self.subscribers.items()):
            if agent_id == sender_id:
                continue
            if self._in_range(origin, subscriber.position_provider(), gate):
                self._deliver(agent_id, subscriber, message)
        return message.delivered

    def send(self, sender_id, target_id, payload: Any, sender_position, comm_range: Optional[float] = None) -> bool:
        """Deliver to `target_id` only; unknown targets return False and are not recorded."""
        target_id = str(target_id)
        subscriber = self.subscribers.get(target_id)
        if subscriber is None:
            logger.debug("Direct message from %s to unknown %s dropped", sender_id, target_id)
            return False
        message = Message(str(sender_id), target_id, payload, self.clock(), DIRECT)
        self._record(message)
        gate = self.comm_range if comm_range is None else _parse_range(comm_range, self.comm_range)
        if not self._in_range(Vector2D.from_any(sender_position), subscriber.position_provider(), gate):
            logger.debug("Direct message %s -> %s out of range", sender_id, target_id)
            return False
        self._deliver(target_id, subscriber, message)
        return message.delivered > 0

    def get_drones_in_range(self, position, comm_range: Optional[float] = None) -> List[str]:
        """Return subscriber ids within range of `position` (self included); `comm_range` overrides the bus range."""
        origin = Vector2D.from_any(position)
        gate = self.comm_range if comm_range is None else _parse_range(comm_range, self.comm_range)
        return [
            agent_id
            for agent_id, subscriber in self.subscribers.items()
            if self._in_range(origin, subscriber.position_provider(), gate)
        ]

    # ----- diagnostics --------------------------------------------------------

    def get_message_history(self, count: int = 10) -> List[Message]:
        """Return the `count` most recent messages, oldest first."""
        if count <= 0:
            return []
        return list(self.history)[-count:]

    def clear(self) -> None:
        """Drop every subscriber and the history."""
        self.subscribers.clear()
        self.history.clear()

    def close(self) -> None:
        """Close the component resources."""
        self.clear()

    # ----- internal utilities -------------------------------------------------

    def _record(self, message: Message) -> None:
        """Append to the bounded history (oldest evicted first)."""
        self.history.append(message)

    def _in_range(self, origin: Vector2D, other, gate: float) -> bool:
        """Range gate on squared distances."""
        if math.isinf(gate):
            return True
        other = Vector2D.from_any(other)
        dx = origin.x - other.x
        dy = origin.y - other.y
        return dx * dx + dy * dy <= gate * gate

    def _deliver(self, agent_id: str, subscriber: _Subscriber, message: Message) -> None:
        """Invoke the subscriber callback, isolating its failures."""
        try:
            subscriber.on_message(message)
        except Exception:
            logger.exception("Message handler of %s failed on %s message from %s", agent_id, message.kind, message.sender)
            return
        message.delivered += 1


class SpatialMessageBus(BaseMessageBus):
    """
    Default message bus using Euclidean distance between participants.
    """


class GlobalMessageBus(BaseMessageBus):
    """
    Message bus delivering to every participant regardless of distance.
    """

    def __init__(
        self,
        comm_range: float = math.inf,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the instance."""
        super().__init__(math.inf, history_size, clock)

    def set_comm_range(self, comm_range) -> None:
        """Global buses ignore range changes."""
        logger.debug("Ignoring comm range %s on a global bus", comm_range)

    def _in_range(self, origin: Vector2D, other, gate: float) -> bool:
        return True


class MessageBusFactory:
    """Helper responsible for instantiating the appropriate bus."""

    DEFAULT_BUS = "spatial"
    _AUTO_VALUES = {"", "auto"}

    @staticmethod
    def create(config: Optional[dict] = None, context: Optional[dict] = None) -> BaseMessageBus:
        """Create the bus named by `config["bus"]`."""
        config = config or {}
        context = context or {}
        bus_name = MessageBusFactory._resolve_name(config.get("bus", "auto"))
        bus = get_message_bus(bus_name, config, context)
        if bus is None:
            available = ", ".join(sorted(available_message_buses().keys()))
            raise ValueError(f"Message bus '{bus_name}' is not registered. Available: {available}")
        logger.info("Message bus '%s' ready (range=%s)", bus_name, bus.comm_range)
        return bus

    @staticmethod
    def _resolve_name(requested: Optional[str]) -> str:
        """Resolve the name."""
        value = str(requested or "").strip().lower()
        if value in MessageBusFactory._AUTO_VALUES:
            return MessageBusFactory.DEFAULT_BUS
        return value


def _spatial_factory(config: Optional[dict], context: Optional[dict]) -> SpatialMessageBus:
    """Build a spatial bus from config."""
    config = config or {}
    context = context or {}
    return SpatialMessageBus(
        config.get("comm_range", DEFAULT_COMM_RANGE),
        config.get("history", DEFAULT_HISTORY_SIZE),
        context.get("clock", time.monotonic),
    )


def _global_factory(config: Optional[dict], context: Optional[dict]) -> GlobalMessageBus:
    """Build a global bus from config."""
    config = config or {}
    context = context or {}
    return GlobalMessageBus(history_size=config.get("history", DEFAULT_HISTORY_SIZE), clock=context.get("clock", time.monotonic))


def _register_builtin_buses() -> None:
    """Register builtin buses."""
    register_message_bus("spatial", _spatial_factory)
    register_message_bus("default", _spatial_factory)
    register_message_bus("global", _global_factory)


_register_builtin_buses()
