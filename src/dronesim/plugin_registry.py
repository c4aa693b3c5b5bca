# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Simple runtime registry for simulator plugins.

External modules register behaviours, detection models, message buses or
path algorithms by importing this file and calling the matching
`register_*` function. The core only ever calls the `get_*` helpers, so
its logic stays stable when new plugins are added.
"""

import importlib
import logging
from typing import Any, Callable, Dict, Optional

from dronesim.plugin_base import Behavior, DetectionModel, MessageBusModel, PathAlgorithm

logger = logging.getLogger("sim.plugins")

# name -> factory(config) -> Behavior
_behaviors: Dict[str, Callable[[Optional[dict]], Behavior]] = {}
# name -> factory(agent, context) -> DetectionModel
_detection_models: Dict[str, Callable[[Any, Optional[dict]], DetectionModel]] = {}
# name -> factory(config, context) -> MessageBusModel
_message_buses: Dict[str, Callable[[Optional[dict], Optional[dict]], MessageBusModel]] = {}
# name -> factory(planner) -> PathAlgorithm
_path_algorithms: Dict[str, Callable[[Any], PathAlgorithm]] = {}


def _normalize_name(name: str) -> str:
    """Normalize the name."""
    return (name or "").strip().lower()


def register_behavior(name: str, factory: Callable[[Optional[dict]], Behavior]) -> None:
    """
    Register a new behaviour.

    Parameters
    ----------
    name:
        Identifier of the behaviour, the same string used in the config
        under `behavior`.
    factory:
        A callable that receives the behaviour options (or None) and
        returns an object implementing the `Behavior` protocol.
    """
    _behaviors[_normalize_name(name)] = factory


def get_behavior(name: Optional[str], config: Optional[dict] = None) -> Optional[Behavior]:
    """
    Return a behaviour instance.

    If no behaviour is registered under `name`, this returns None and the
    caller decides whether that is an error.
    """
    if not name:
        return None
    factory = _behaviors.get(_normalize_name(name))
    if factory is None:
        return None
    return factory(config)


def available_behaviors() -> Dict[str, Callable[[Optional[dict]], Behavior]]:
    """Return the map of registered behaviour factories."""
    return dict(_behaviors)


def register_detection_model(name: str, factory: Callable[[Any, Optional[dict]], DetectionModel]) -> None:
    """Register a detection/perception model factory."""
    _detection_models[_normalize_name(name)] = factory


def get_detection_model(name: Optional[str], agent: Any, context: Optional[dict] = None) -> Optional[DetectionModel]:
    """Return a detection model instance if registered."""
    if not name:
        return None
    factory = _detection_models.get(_normalize_name(name))
    if factory is None:
        return None
    return factory(agent, context)


def available_detection_models() -> Dict[str, Callable[[Any, Optional[dict]], DetectionModel]]:
    """Return the map of registered detection model factories."""
    return dict(_detection_models)


def register_message_bus(name: str, factory: Callable[[Optional[dict], Optional[dict]], MessageBusModel]) -> None:
    """Register a message-bus implementation."""
    _message_buses[_normalize_name(name)] = factory


def get_message_bus(name: Optional[str], config: Optional[dict] = None, context: Optional[dict] = None) -> Optional[MessageBusModel]:
    """Return an instantiated message bus."""
    if not name:
        return None
    factory = _message_buses.get(_normalize_name(name))
    if factory is None:
        return None
    return factory(config, context)


def available_message_buses() -> Dict[str, Callable[[Optional[dict], Optional[dict]], MessageBusModel]]:
    """Return the map of registered message-bus factories."""
    return dict(_message_buses)


def register_path_algorithm(name: str, factory: Callable[[Any], PathAlgorithm]) -> None:
    """Register a path-finding algorithm; the factory receives the owning planner."""
    _path_algorithms[_normalize_name(name)] = factory


def get_path_algorithm(name: Optional[str], planner: Any) -> Optional[PathAlgorithm]:
    """Return a path algorithm bound to `planner`."""
    if not name:
        return None
    factory = _path_algorithms.get(_normalize_name(name))
    if factory is None:
        return None
    return factory(planner)


def available_path_algorithms() -> Dict[str, Callable[[Any], PathAlgorithm]]:
    """Return the map of registered path algorithms."""
    return dict(_path_algorithms)


def load_plugins_from_config(config: Any) -> None:
    """
    Import plugin modules listed in the config.

    Expected layout (all fields are optional):

    {
      "plugins": ["my_package.my_plugin", ...],
      "environment": {
        "plugins": ["another.plugin.module"]
      }
    }

    Each module is imported for its side effects, typically registration
    of behaviours via `register_behavior`.
    """
    modules = []
    data = getattr(config, "data", config)
    if isinstance(data, dict):
        modules.extend(data.get("plugins", []))
        env = data.get("environment", {})
        modules.extend(env.get("plugins", []))

    for mod in modules:
        try:
            importlib.import_module(mod)
            logger.info("Loaded plugin module '%s'", mod)
        except Exception:
            # A broken plugin must not prevent the simulation from starting.
            logger.exception("Failed to import plugin module '%s'", mod)
