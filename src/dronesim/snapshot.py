# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Headless rendering of a simulation state to an image."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg as FigureCanvas
from matplotlib.figure import Figure
from matplotlib.patches import Circle, Polygon, Rectangle

from dronesim.algorithms.path_utils import smooth_curve
from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.logging_utils import get_logger

logger = get_logger("snapshot")

AGENT_COLOR = "tab:blue"
OBSTACLE_COLOR = "dimgray"
OBJECT_COLOR = "tab:orange"
TARGET_COLOR = "tab:red"
SLOT_COLOR = "tab:green"
DRONE_DRAW_RADIUS = 15


def _xy(value) -> Tuple[float, float]:
    point = Vector2D.from_any(value)
    return point.x, point.y


def _draw_body(ax, state: dict) -> None:
    """Draw an obstacle or object from its `get_object_states` entry."""
    shape = state.get("shape", {})
    cx, cy = _xy(state["position"])
    if state.get("kind") == "obstacle":
        color = OBSTACLE_COLOR
    elif state.get("is_target"):
        color = TARGET_COLOR
    else:
        color = OBJECT_COLOR
    kind = shape.get("type")
    if kind == "circle":
        patch = Circle((cx, cy), shape.get("radius", 50), facecolor=color, alpha=0.6)
    elif kind == "rectangle":
        w = shape.get("width", 100)
        h = shape.get("height", 100)
        patch = Rectangle(
            (cx - w / 2, cy - h / 2), w, h,
            angle=float(np.degrees(state.get("angle", 0.0))),
            rotation_point="center", facecolor=color, alpha=0.6,
        )
    else:
        angle = state.get("angle", 0.0)
        points = [Vector2D.from_any(p).rotate(angle) for p in shape.get("points", [])]
        patch = Polygon([(cx + p.x, cy + p.y) for p in points], closed=True, facecolor=color, alpha=0.6)
    ax.add_patch(patch)


def render_snapshot(
    states: Dict,
    path: Optional[str | Path] = None,
    world: Tuple[float, float] = (2000, 2000),
    slots: Optional[Iterable] = None,
    paths: Optional[Dict[str, Sequence]] = None,
    objects: Optional[Sequence[dict]] = None,
) -> Figure:
    """
    Draw agents, obstacles, objects, formation slots and planned paths.

    `states` is either the agent mapping of `get_agent_states()` or the full
    `get_state()` snapshot (which also carries objects and the world size).
    The figure is saved to `path` when given and returned either way.
    """
    if "agents" in states and isinstance(states["agents"], dict):
        objects = states.get("objects", objects)
        size = states.get("world") or {}
        world = (size.get("width", world[0]), size.get("height", world[1]))
        states = states["agents"]

    fig = Figure(figsize=(6, 6))
    FigureCanvas(fig)
    ax = fig.add_subplot(1, 1, 1)
    ax.set_xlim(0, world[0])
    # Screen coordinates: y grows downward.
    ax.set_ylim(world[1], 0)
    ax.set_aspect("equal")
    ax.grid(True, alpha=0.3)

    for state in objects or []:
        _draw_body(ax, state)

    for agent_id, agent_path in (paths or {}).items():
        points = np.array([_xy(p) for p in smooth_curve(agent_path)])
        if len(points):
            ax.plot(points[:, 0], points[:, 1], "--", linewidth=1, alpha=0.7)

    slot_points = []
    for slot in slots or []:
        target = getattr(slot, "target", getattr(slot, "position", slot))
        slot_points.append(_xy(target))
    if slot_points:
        xs, ys = zip(*slot_points)
        ax.scatter(xs, ys, marker="x", color=SLOT_COLOR, label="slots")

    for agent_id, state in states.items():
        x, y = _xy(state["position"])
        ax.add_patch(Circle((x, y), DRONE_DRAW_RADIUS, facecolor=AGENT_COLOR, edgecolor="black", alpha=0.8))
        ax.annotate(str(agent_id), (x, y), textcoords="offset points", xytext=(0, 10), ha="center", fontsize=7)
        goal = state.get("goal")
        if goal is not None:
            gx, gy = _xy(goal)
            ax.plot([x, gx], [y, gy], ":", color=AGENT_COLOR, linewidth=0.8)

    ax.set_title(f"{len(states)} agents")
    if path is not None:
        fig.savefig(path)
        logger.info("Snapshot written to %s", path)
    return fig
