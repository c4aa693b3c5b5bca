# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import json
from typing import Optional

DEFAULT_TICKS_PER_SECOND = 60


class Config:
    """Config."""
    def __init__(self, config_path: str = "", new_data: Optional[dict] = None):
        """Initialize the instance."""
        if config_path:
            self.config_path = config_path
            self.data = self.load_config()
        elif new_data:
            self.config_path = None
            self.data = dict(new_data)
        else:
            raise ValueError("Either config_path or new_data must be provided")

    def load_config(self):
        """Load config."""
        with open(self.config_path, 'r') as file:
            return json.load(file)

    def _check_position(self, item: dict, field: str):
        """Positions are [x, y] arrays or {x, y} mappings."""
        value = item[field]
        if isinstance(value, dict):
            ok = all(isinstance(value.get(k), (int, float)) for k in ("x", "y"))
        else:
            ok = isinstance(value, list) and len(value) == 2 and all(isinstance(v, (int, float)) for v in value)
        if not ok:
            raise ValueError(f"Field '{field}' must be an [x, y] array or an {{x, y}} mapping in {item.get('id', 'item')}")

    def validate(self):
        """Raise ValueError on a structurally invalid configuration."""
        try:
            environment = self.data['environment']
        except KeyError:
            raise ValueError("The 'environment' field is required")
        if not isinstance(environment, dict):
            raise ValueError("The 'environment' field must be a mapping")
        world = environment.get('world')
        if not isinstance(world, dict):
            raise ValueError("The 'world' field must be a mapping with 'width' and 'height'")
        for dim in ('width', 'height'):
            if dim in world and (not isinstance(world[dim], (int, float)) or world[dim] <= 0):
                raise ValueError(f"World '{dim}' must be a positive number")
        items = environment.get('items', [])
        if not isinstance(items, list):
            raise ValueError("The 'items' field must be a list")
        seen = set()
        for item in items:
            for field in ('id', 'type'):
                if field not in item:
                    raise ValueError(f"Missing required field '{field}' in {item.get('id', 'item')}")
            if item['id'] in seen:
                raise ValueError(f"Duplicate item id '{item['id']}'")
            seen.add(item['id'])
            for field in ('position', 'goal'):
                if field in item and item[field] is not None:
                    self._check_position(item, field)
            if 'statePositions' in item:
                if not isinstance(item['statePositions'], dict):
                    raise ValueError(f"Field 'statePositions' must be a mapping in {item['id']}")
                for state_id in item["statePositions"]:
                    self._check_position(item['statePositions'], state_id)
        plugins = environment.get('plugins', self.data.get('plugins', []))
        if not isinstance(plugins, list):
            raise ValueError("The 'plugins' field must be a list of module names")
        return True

    @property
    def environment(self) -> dict:
        """Return the environment configuration."""
        return self.data.get('environment', {})

    @property
    def world(self) -> dict:
        """Return the world configuration."""
        return self.environment.get('world', {})

    @property
    def messages(self) -> dict:
        """Return the message bus configuration."""
        return self.environment.get('messages', {})

    @property
    def items(self) -> list:
        """Return the editor items."""
        return self.environment.get('items', [])

    @property
    def logging(self) -> dict:
        """Return the logging configuration."""
        return self.environment.get('logging', {})

    @property
    def snapshot(self) -> dict:
        """Return the snapshot configuration."""
        return self.environment.get('snapshot', {})

    @property
    def ticks_per_second(self) -> int:
        """Return the tick rate."""
        return int(self.environment.get('ticks_per_second', DEFAULT_TICKS_PER_SECOND))

    @property
    def time_limit(self) -> float:
        """Return the run length in seconds (0 means no limit)."""
        return float(self.environment.get('time_limit', 0))

    @property
    def random_seed(self):
        """Return the seed (None for a random one)."""
        return self.environment.get('random_seed')
