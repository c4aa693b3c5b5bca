# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import logging

from dronesim.models.behavior.common import DEFAULT_SLOW_RADIUS, option, seek_intent
from dronesim.plugin_base import Behavior, Intent
from dronesim.plugin_registry import register_behavior

logger = logging.getLogger("sim.behavior.formation_hold")

SLOT_REACHED = "slot_reached"


class FormationHoldBehavior(Behavior):
    """
    Seek the formation slot stored in `state["slot"]` and keep it.

    On first arrival within `tolerance` the drone broadcasts a
    `slot_reached` message; peers' arrivals are collected in
    `state["peers_in_slot"]`.
    """
    def __init__(self, config=None):
        """Initialize the instance."""
        self.config = config or {}
        self.tolerance = option(self.config, "tolerance", 10.0)
        self.slow_radius = option(self.config, "slow_radius", DEFAULT_SLOW_RADIUS)

    def decide(self, sensed, messages, state):
        """Decide the intent."""
        peers = state.setdefault("peers_in_slot", set())
        for message in messages:
            payload = getattr(message, "payload", None)
            if isinstance(payload, dict) and payload.get("type") == SLOT_REACHED:
                peers.add(payload.get("agent"))
        slot = state.get("slot")
        if slot is None:
            return seek_intent(state, state.get("goal"), self.slow_radius)
        position = state["position"]
        distance = position.distance_to(slot)
        if distance <= self.tolerance:
            intent = Intent.halt()
            if not state.get("slot_announced"):
                state["slot_announced"] = True
                logger.debug("%s holding slot %s", state.get("id"), state.get("slot_index"))
                intent.with_broadcast({"type": SLOT_REACHED, "agent": state.get("id"), "slot": state.get("slot_index")})
            return intent
        state["slot_announced"] = False
        return seek_intent(dict(state, goal_reached=False), slot, self.slow_radius)


register_behavior("formation_hold", lambda config=None: FormationHoldBehavior(config))
