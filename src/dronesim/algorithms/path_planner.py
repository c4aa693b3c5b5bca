# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Path planning: grid A*, RRT and formation-aware offset paths.

Algorithms are resolved by name through the plugin registry. None of them
raises when no path exists: the direct `[start, goal]` segment is returned
and the degraded result is logged.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import math
from random import Random
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from dronesim.geometry_utils.polygon import Bounds, segment_intersects_rect
from dronesim.geometry_utils.vector2D import Vector2D
from dronesim.plugin_base import PathAlgorithm
from dronesim.plugin_registry import available_path_algorithms, get_path_algorithm, register_path_algorithm

logger = logging.getLogger("sim.path_planner")

SQRT2 = math.sqrt(2.0)
SMOOTHING_THRESHOLD = 0.1
DEFAULT_GOAL_BIAS = 0.1

_NEIGHBORS = (
    (-1, 0), (1, 0), (0, -1), (0, 1),
    (-1, -1), (1, -1), (-1, 1), (1, 1),
)


class Waypoint(Vector2D):
    """Path point, optionally annotated with the formation offset to keep."""
    __slots__ = ("formation_offset",)

    def __init__(self, x: float = 0, y: float = 0, formation_offset: Optional[Vector2D] = None):
        """Initialize the instance."""
        super().__init__(x, y)
        self.formation_offset = formation_offset

    @classmethod
    def of(cls, point, formation_offset: Optional[Vector2D] = None) -> "Waypoint":
        """Build from any point-like value."""
        p = Vector2D.from_any(point)
        return cls(p.x, p.y, formation_offset)

    def __repr__(self) -> str:
        if self.formation_offset is None:
            return f"Waypoint({self.x}, {self.y})"
        return f"Waypoint({self.x}, {self.y}, offset={self.formation_offset!r})"


def _coerce_positive(value, default: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 and math.isfinite(value) else default


def _world_size(bounds) -> Tuple[float, float]:
    """Accept (width, height), {"width", "height"} or anything with width/height."""
    if isinstance(bounds, dict):
        return float(bounds["width"]), float(bounds["height"])
    if hasattr(bounds, "width") and hasattr(bounds, "height"):
        return float(bounds.width), float(bounds.height)
    width, height = bounds
    return float(width), float(height)


def _obstacle_bounds(obstacles) -> List[Bounds]:
    """Normalize obstacles to `Bounds`."""
    result = []
    for obs in obstacles or []:
        if isinstance(obs, Bounds) or isinstance(obs, dict) or hasattr(obs, "min_x"):
            result.append(Bounds.from_any(obs))
        elif hasattr(obs, "min") and hasattr(obs, "max"):
            lo = Vector2D.from_any(obs.min)
            hi = Vector2D.from_any(obs.max)
            result.append(Bounds(lo.x, lo.y, hi.x, hi.y))
        else:
            result.append(Bounds.from_any(obs))
    return result


def _angle_delta(a: float, b: float) -> float:
    """Absolute difference of two headings, wrapped to [0, pi]."""
    diff = (a - b + math.pi) % (2 * math.pi) - math.pi
    return abs(diff)


def smooth_path(path: List[Vector2D], threshold: float = SMOOTHING_THRESHOLD) -> List[Vector2D]:
    """Drop waypoints where the heading changes by no more than `threshold` radians."""
    if len(path) <= 2:
        return list(path)
    smoothed = [path[0]]
    for i in range(1, len(path) - 1):
        prev = smoothed[-1]
        curr = path[i]
        nxt = path[i + 1]
        dir_in = math.atan2(curr.y - prev.y, curr.x - prev.x)
        dir_out = math.atan2(nxt.y - curr.y, nxt.x - curr.x)
        if _angle_delta(dir_in, dir_out) > threshold:
            smoothed.append(curr)
    smoothed.append(path[-1])
    return smoothed


def segment_collides(p1, p2, obstacles: Sequence[Bounds]) -> bool:
    """True when the segment touches any obstacle rectangle."""
    for rect in obstacles:
        if segment_intersects_rect(p1, p2, rect):
            return True
    return False


def shortcut_path(path: List[Vector2D], obstacles: Sequence[Bounds]) -> List[Vector2D]:
    """Line-of-sight simplification: jump to the farthest visible waypoint."""
    if len(path) <= 2:
        return list(path)
    simplified = [path[0]]
    current = 0
    while current < len(path) - 1:
        farthest = current + 1
        for i in range(len(path) - 1, current + 1, -1):
            if not segment_collides(path[current], path[i], obstacles):
                farthest = i
                break
        simplified.append(path[farthest])
        current = farthest
    return simplified


class AStarAlgorithm(PathAlgorithm):
    """
    8-connected grid A* with a Euclidean heuristic.

    The open set is a binary heap keyed by (f, discovery order), which pops
    nodes in the same order as a stable sort of an insertion-ordered list.
    Options: `simplify` (bool) adds a line-of-sight pass after smoothing.
    """
    def __init__(self, planner: "PathPlanner"):
        """Initialize the instance."""
        self.planner = planner

    def find_path(self, start, goal, bounds, obstacles, options=None):
        """Return waypoints from `start` to `goal`."""
        options = options or {}
        start = Vector2D.from_any(start)
        goal = Vector2D.from_any(goal)
        width, height = _world_size(bounds)
        rects = _obstacle_bounds(obstacles)
        cells = self.search(start, goal, width, height, rects)
        if cells is None:
            logger.warning("A* found no path from %s to %s; using the direct segment", start, goal)
            return [Waypoint.of(start), Waypoint.of(goal)]
        size = self.planner.grid_size
        path = [Vector2D(col * size + size / 2, row * size + size / 2) for col, row in cells]
        path = smooth_path(path)
        if options.get("simplify"):
            path = shortcut_path(path, rects)
        return [Waypoint.of(p) for p in path]

    def build_grid(self, cols: int, rows: int, obstacles: Sequence[Bounds]) -> np.ndarray:
        """Blocked-cell mask; every cell from floor(min) to ceil(max) is blocked."""
        size = self.planner.grid_size
        grid = np.zeros((rows, cols), dtype=bool)
        for obs in obstacles:
            min_col = max(0, math.floor(obs.min_x / size))
            max_col = min(cols - 1, math.ceil(obs.max_x / size))
            min_row = max(0, math.floor(obs.min_y / size))
            max_row = min(rows - 1, math.ceil(obs.max_y / size))
            if min_col > max_col or min_row > max_row:
                continue
            grid[min_row:max_row + 1, min_col:max_col + 1] = True
        return grid

    def search(self, start: Vector2D, goal: Vector2D, width: float, height: float,
               obstacles: Sequence[Bounds]) -> Optional[List[Tuple[int, int]]]:
        """Return the cell sequence (col, row) or None when the goal is unreachable."""
        size = self.planner.grid_size
        cols = max(1, math.ceil(width / size))
        rows = max(1, math.ceil(height / size))
        grid = self.build_grid(cols, rows, obstacles)
        start_cell = self._to_cell(start, cols, rows)
        goal_cell = self._to_cell(goal, cols, rows)

        counter = itertools.count()
        discovered: Dict[Tuple[int, int], int] = {start_cell: next(counter)}
        g_score: Dict[Tuple[int, int], float] = {start_cell: 0.0}
        parent: Dict[Tuple[int, int], Optional[Tuple[int, int]]] = {start_cell: None}
        open_heap = [(0.0, discovered[start_cell], start_cell)]
        closed = set()

        while open_heap:
            _, _, current = heapq.heappop(open_heap)
            if current in closed:
                continue
            if current == goal_cell:
                return self._reconstruct(parent, current)
            closed.add(current)
            col, row = current
            for dc, dr in _NEIGHBORS:
                ncol = col + dc
                nrow = row + dr
                if ncol < 0 or ncol >= cols or nrow < 0 or nrow >= rows:
                    continue
                neighbor = (ncol, nrow)
                if neighbor in closed or grid[nrow, ncol]:
                    continue
                g = g_score[current] + (SQRT2 if dc and dr else 1.0)
                f = g + math.hypot(ncol - goal_cell[0], nrow - goal_cell[1])
                if neighbor in g_score:
                    if g >= g_score[neighbor]:
                        continue
                else:
                    discovered[neighbor] = next(counter)
                g_score[neighbor] = g
                parent[neighbor] = current
                heapq.heappush(open_heap, (f, discovered[neighbor], neighbor))
        return None

    def _to_cell(self, point: Vector2D, cols: int, rows: int) -> Tuple[int, int]:
        """World point to clamped grid cell."""
        size = self.planner.grid_size
        col = max(0, min(cols - 1, math.floor(point.x / size)))
        row = max(0, min(rows - 1, math.floor(point.y / size)))
        return col, row

    @staticmethod
    def _reconstruct(parent, node) -> List[Tuple[int, int]]:
        cells = []
        while node is not None:
            cells.append(node)
            node = parent[node]
        cells.reverse()
        return cells


class RRTAlgorithm(PathAlgorithm):
    """
    Goal-biased rapidly-exploring random tree.

    Options: `step_size`, `max_iterations`, `goal_bias` (probability of
    sampling the goal). Randomness comes from the planner's generator.
    """
    def __init__(self, planner: "PathPlanner"):
        """Initialize the instance."""
        self.planner = planner

    def find_path(self, start, goal, bounds, obstacles, options=None):
        """Return waypoints from `start` to `goal`."""
        options = options or {}
        start = Vector2D.from_any(start)
        goal = Vector2D.from_any(goal)
        width, height = _world_size(bounds)
        rects = _obstacle_bounds(obstacles)
        step = _coerce_positive(options.get("step_size"), self.planner.rrt_step_size)
        max_iterations = int(_coerce_positive(options.get("max_iterations"), self.planner.rrt_max_iterations))
        goal_bias = float(options.get("goal_bias", DEFAULT_GOAL_BIAS))
        rng = self.planner.random

        nodes: List[Vector2D] = [start]
        parents: List[int] = [-1]
        for iteration in range(max_iterations):
            if rng.random() < goal_bias:
                sample = goal
            else:
                sample = Vector2D(rng.random() * width, rng.random() * height)
            nearest_index = 0
            nearest_dist = sample.distance_to(nodes[0])
            for index in range(1, len(nodes)):
                dist = sample.distance_to(nodes[index])
                if dist < nearest_dist:
                    nearest_dist = dist
                    nearest_index = index
            if nearest_dist == 0:
                continue
            nearest = nodes[nearest_index]
            new_point = nearest + (sample - nearest) * (min(step, nearest_dist) / nearest_dist)
            if segment_collides(nearest, new_point, rects):
                continue
            nodes.append(new_point)
            parents.append(nearest_index)
            if new_point.distance_to(goal) < step:
                path = [goal]
                index = len(nodes) - 1
                while index >= 0:
                    path.append(nodes[index])
                    index = parents[index]
                path.reverse()
                logger.debug("RRT reached the goal after %d iterations (%d nodes)", iteration + 1, len(nodes))
                return [Waypoint.of(p) for p in smooth_path(path)]
        logger.warning("RRT exhausted %d iterations from %s to %s; using the direct segment", max_iterations, start, goal)
        return [Waypoint.of(start), Waypoint.of(goal)]


class FormationAwareAlgorithm(PathAlgorithm):
    """
    Follower path keeping a constant offset from the leader.

    Plans A* to `goal + offset` and annotates every waypoint after the
    first with the offset; tracking it is left to the follower's controller.
    """
    def __init__(self, planner: "PathPlanner"):
        """Initialize the instance."""
        self.planner = planner

    def find_path(self, start, goal, bounds, obstacles, options=None):
        """Return annotated waypoints."""
        options = options or {}
        offset = Vector2D.from_any(options.get("offset") or (0.0, 0.0))
        formation_goal = Vector2D.from_any(goal) + offset
        base = AStarAlgorithm(self.planner).find_path(start, formation_goal, bounds, obstacles, options)
        annotated = []
        for i, point in enumerate(base):
            if i == 0:
                annotated.append(Waypoint.of(point))
            else:
                annotated.append(Waypoint.of(point, Vector2D(offset.x, offset.y)))
        return annotated


class PathPlanner:
    """
    Entry point for path finding.

    Parameters
    ----------
    grid_size:
        A* cell size in world units.
    rrt_step_size, rrt_max_iterations:
        RRT extension length and iteration budget.
    random_generator:
        Source of randomness for RRT; pass a seeded `random.Random` for
        reproducible paths.
    """
    def __init__(
        self,
        grid_size: float = 20,
        rrt_step_size: float = 30,
        rrt_max_iterations: int = 1000,
        random_generator: Optional[Random] = None,
    ) -> None:
        """Initialize the instance."""
        self.grid_size = _coerce_positive(grid_size, 20.0)
        self.rrt_step_size = _coerce_positive(rrt_step_size, 30.0)
        self.rrt_max_iterations = int(_coerce_positive(rrt_max_iterations, 1000))
        self.random = random_generator if random_generator is not None else Random()

    def find_path(self, start, goal, bounds, obstacles, algorithm: str = "astar", options: Optional[dict] = None) -> List[Waypoint]:
        """Plan a path with the named algorithm; unknown names raise ValueError."""
        impl = get_path_algorithm(algorithm or "astar", self)
        if impl is None:
            available = ", ".join(sorted(available_path_algorithms().keys()))
            raise ValueError(f"Path algorithm '{algorithm}' is not registered. Available: {available}")
        path = impl.find_path(start, goal, bounds, obstacles, options)
        logger.debug("%s path with %d waypoints", algorithm, len(path))
        return path


def obstacles_from_world(physics) -> List[Bounds]:
    """Bounds of every static non-boundary body."""
    return [body.bounds() for body in physics.bodies() if body.static and body.kind != "boundary"]


register_path_algorithm("astar", lambda planner: AStarAlgorithm(planner))
register_path_algorithm("rrt", lambda planner: RRTAlgorithm(planner))
register_path_algorithm("formation", lambda planner: FormationAwareAlgorithm(planner))
