# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Formation layouts around and over transported objects.

Two layout families are provided. Ground agents are spread along the
perimeter of the shape at equal arc-length intervals. Air agents cover the
interior through a capacitated centroidal Voronoi relaxation over a dense
point cloud, which keeps the partitions balanced (sizes differ by at most
one sample). Offsets are expressed relative to the shape center.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from dronesim.geometry_utils.polygon import Bounds, polygon_area, polygon_bounds, polygon_centroid, regular_polygon
from dronesim.geometry_utils.vector2D import Vector2D

logger = logging.getLogger("sim.formation")

DEFAULT_RADIUS = 50.0
DEFAULT_SIZE = 100.0
DEFAULT_WEIGHT = 10.0
AREA_PER_DRONE = 10000.0
DEFAULT_DRONE_CAPACITY = 50.0
CAGE_MIN_DISTANCE = 50.0
CAGE_MAX_DISTANCE = 100.0
MAX_SAMPLE_BATCHES = 50


def _positive(value, default: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 and math.isfinite(value) else default


@dataclass
class FormationShape:
    """
    Outline of the object a formation is built for.

    `path` is only used by custom shapes; `original_width` and
    `original_height` are the bounding-box size the path was drawn with, so
    a resized shape can scale it. Rotation is not part of the shape: slots are
    rotated by the angle of the body the formation is built around.
    """
    kind: str = "circle"
    radius: float = DEFAULT_RADIUS
    width: float = DEFAULT_SIZE
    height: float = DEFAULT_SIZE
    path: Optional[List[Vector2D]] = None
    original_width: Optional[float] = None
    original_height: Optional[float] = None
    weight: float = DEFAULT_WEIGHT

    @classmethod
    def from_item(cls, item: dict) -> "FormationShape":
        """Build from an editor item (`type`, `radius`, `w`, `h`, `customPath`...)."""
        path = item.get("customPath") or item.get("path")
        return cls(
            kind=str(item.get("type", "circle")).lower(),
            radius=_positive(item.get("radius"), DEFAULT_RADIUS),
            width=_positive(item.get("w", item.get("width")), DEFAULT_SIZE),
            height=_positive(item.get("h", item.get("height")), DEFAULT_SIZE),
            path=[Vector2D.from_any(p) for p in path] if path else None,
            original_width=item.get("originalWidth"),
            original_height=item.get("originalHeight"),
            weight=_positive(item.get("weight"), DEFAULT_WEIGHT),
        )

    @property
    def has_custom_path(self) -> bool:
        return self.kind == "custom" and self.path is not None and len(self.path) >= 3

    def scale_factors(self) -> Tuple[float, float]:
        """Ratio of the current size to the size the custom path was drawn with."""
        if not self.has_custom_path:
            return 1.0, 1.0
        bounds = polygon_bounds(self.path)
        base_w = _positive(self.original_width, bounds.width or 1.0)
        base_h = _positive(self.original_height, bounds.height or 1.0)
        return self.width / base_w, self.height / base_h

    def outline(self, circle_sides: int = 48, scaled: bool = True) -> List[Vector2D]:
        """Closed outline relative to the shape center."""
        if self.kind == "rectangle":
            hw = self.width / 2
            hh = self.height / 2
            return [Vector2D(-hw, -hh), Vector2D(hw, -hh), Vector2D(hw, hh), Vector2D(-hw, hh)]
        if self.has_custom_path:
            sx, sy = self.scale_factors() if scaled else (1.0, 1.0)
            origin = self.path[0]
            points = [Vector2D((p.x - origin.x) * sx, (p.y - origin.y) * sy) for p in self.path]
            center = polygon_bounds(points).center
            return [p - center for p in points]
        return regular_polygon(Vector2D(), self.radius, circle_sides)

    def area(self) -> float:
        """Surface of the shape."""
        if self.kind == "rectangle":
            return self.width * self.height
        if self.has_custom_path:
            return polygon_area(self.outline())
        return math.pi * self.radius * self.radius


@dataclass(frozen=True)
class FormationSlot:
    """A formation place: `offset` from the anchor, `position` once placed in the world."""
    index: int
    offset: Vector2D
    position: Optional[Vector2D] = None

    @property
    def target(self) -> Vector2D:
        return self.position if self.position is not None else self.offset

    def world(self, anchor, rotation: float = 0.0) -> "FormationSlot":
        """Return the slot placed around `anchor`, rotated by `rotation` radians."""
        anchor = Vector2D.from_any(anchor)
        return FormationSlot(self.index, self.offset, anchor + self.offset.rotate(rotation))


@dataclass(frozen=True)
class CagePosition:
    """Caging position around an object; `angle` faces the object center."""
    index: int
    position: Vector2D
    angle: float


def _points_in_polygon(points: np.ndarray, polygon: np.ndarray) -> np.ndarray:
    """Vectorized even-odd test of `points` (m x 2) against `polygon` (p x 2)."""
    x = points[:, 0]
    y = points[:, 1]
    inside = np.zeros(len(points), dtype=bool)
    j = len(polygon) - 1
    with np.errstate(divide="ignore", invalid="ignore"):
        for i in range(len(polygon)):
            xi, yi = polygon[i]
            xj, yj = polygon[j]
            crosses = (yi > y) != (yj > y)
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            inside ^= crosses & (x < x_cross)
            j = i
    return inside


def _walk_closed(vertices: Sequence[Vector2D], count: int) -> List[Vector2D]:
    """`count` points at equal arc-length intervals along a closed outline."""
    n = len(vertices)
    edges = []
    for i in range(n):
        p1 = vertices[i]
        p2 = vertices[(i + 1) % n]
        edges.append((p1, p2, p1.distance_to(p2)))
    total = sum(length for _, _, length in edges)
    if total == 0:
        return [Vector2D(vertices[0].x, vertices[0].y) for _ in range(count)]
    spacing = total / count
    positions = []
    for i in range(count):
        target = i * spacing
        accumulated = 0.0
        for p1, p2, length in edges:
            if length > 0 and accumulated + length >= target:
                t = (target - accumulated) / length
                positions.append(p1 + (p2 - p1) * t)
                break
            accumulated += length
        else:
            positions.append(Vector2D(vertices[0].x, vertices[0].y))
    return positions


class FormationPlanner:
    """
    Computes formation offsets for a `FormationShape`.

    Parameters
    ----------
    sample_count:
        Size of the interior point cloud used by the area layout.
    ccvt_iterations:
        Number of relaxation rounds; always run in full.
    circle_sides:
        Sides of the polygon approximating circles.
    random_generator:
        `numpy.random.Generator` used for sampling. When omitted each call
        draws from a fresh generator seeded with `seed`, so layouts are
        reproducible.
    """
    def __init__(
        self,
        sample_count: int = 2000,
        ccvt_iterations: int = 30,
        circle_sides: int = 48,
        random_generator: Optional[np.random.Generator] = None,
        seed: int = 0,
    ) -> None:
        """Initialize the instance."""
        self.sample_count = int(_positive(sample_count, 2000))
        self.ccvt_iterations = int(_positive(ccvt_iterations, 30))
        self.circle_sides = max(3, int(_positive(circle_sides, 48)))
        self.random_generator = random_generator
        self.seed = seed
        self.last_cluster_sizes: List[int] = []

    def _rng(self) -> np.random.Generator:
        if self.random_generator is not None:
            return self.random_generator
        return np.random.default_rng(self.seed)

    # ----- perimeter (ground) -------------------------------------------------

    def perimeter_layout(self, shape: FormationShape, drone_count: int) -> List[Vector2D]:
        """Equal arc-length points along the shape outline."""
        if drone_count <= 0:
            return []
        if shape.kind == "rectangle":
            hw = shape.width / 2
            hh = shape.height / 2
            # Walk starts at the top-edge midpoint so four agents land on the edge midpoints.
            walk = [Vector2D(0.0, -hh), Vector2D(hw, -hh), Vector2D(hw, hh), Vector2D(-hw, hh), Vector2D(-hw, -hh)]
            return _walk_closed(walk, drone_count)
        if shape.has_custom_path:
            return _walk_closed(shape.outline(), drone_count)
        step = 2 * math.pi / drone_count
        return [
            Vector2D(shape.radius * math.cos(i * step), shape.radius * math.sin(i * step))
            for i in range(drone_count)
        ]

    # ----- area (air) ---------------------------------------------------------

    def area_layout(self, shape: FormationShape, drone_count: int) -> List[Vector2D]:
        """Balanced interior covering with exactly `drone_count` points."""
        self.last_cluster_sizes = []
        if drone_count <= 0:
            return []
        outline = shape.outline(self.circle_sides, scaled=False)
        polygon = np.array([(p.x, p.y) for p in outline], dtype=float)
        sx, sy = shape.scale_factors()
        samples = self._sample_interior(polygon)
        if len(samples) < drone_count:
            center = polygon_centroid(outline)
            logger.warning(
                "Only %d interior samples for %d drones; collapsing the formation on the centroid",
                len(samples), drone_count,
            )
            return [Vector2D(center.x * sx, center.y * sy) for _ in range(drone_count)]

        sites = self._seed_sites(samples, drone_count)
        order = np.lexsort((samples[:, 1], samples[:, 0]))
        labels = np.zeros(len(samples), dtype=int)
        for _ in range(self.ccvt_iterations):
            labels = self._capacitated_assign(samples, sites, order)
            sites = self._recenter(samples, labels, sites, polygon)
        self.last_cluster_sizes = np.bincount(labels, minlength=drone_count).tolist()
        logger.debug("Area layout for %d drones, cluster sizes %s", drone_count, self.last_cluster_sizes)
        return [Vector2D(x * sx, y * sy) for x, y in sites]

    def _sample_interior(self, polygon: np.ndarray) -> np.ndarray:
        """Rejection-sample up to `sample_count` points inside `polygon`."""
        rng = self._rng()
        lo = polygon.min(axis=0)
        hi = polygon.max(axis=0)
        if np.any(hi - lo <= 0):
            return np.empty((0, 2))
        kept = []
        total = 0
        for _ in range(MAX_SAMPLE_BATCHES):
            batch = rng.uniform(lo, hi, size=(self.sample_count, 2))
            inside = batch[_points_in_polygon(batch, polygon)]
            kept.append(inside)
            total += len(inside)
            if total >= self.sample_count:
                break
        return np.concatenate(kept)[: self.sample_count]

    @staticmethod
    def _seed_sites(samples: np.ndarray, count: int) -> np.ndarray:
        """Farthest-point seeding starting from the sample nearest the cloud mean."""
        mean = samples.mean(axis=0)
        first = int(np.argmin(np.linalg.norm(samples - mean, axis=1)))
        chosen = [first]
        nearest = np.linalg.norm(samples - samples[first], axis=1)
        for _ in range(count - 1):
            nearest[chosen] = -1.0
            index = int(np.argmax(nearest))
            chosen.append(index)
            nearest = np.minimum(nearest, np.linalg.norm(samples - samples[index], axis=1))
        return samples[chosen].copy()

    @staticmethod
    def _capacitated_assign(samples: np.ndarray, sites: np.ndarray, order: np.ndarray) -> np.ndarray:
        """Nearest site with remaining capacity, visiting samples in x-then-y order."""
        m = len(samples)
        k = len(sites)
        capacity = np.full(k, m // k, dtype=int)
        capacity[: m % k] += 1
        distances = np.linalg.norm(samples[:, None, :] - sites[None, :, :], axis=2)
        labels = np.empty(m, dtype=int)
        full = np.zeros(k, dtype=bool)
        for index in order:
            row = np.where(full, np.inf, distances[index])
            site = int(np.argmin(row))
            labels[index] = site
            capacity[site] -= 1
            if capacity[site] == 0:
                full[site] = True
        return labels

    @staticmethod
    def _recenter(samples: np.ndarray, labels: np.ndarray, sites: np.ndarray, polygon: np.ndarray) -> np.ndarray:
        """Move each site to its cluster centroid, or the nearest member if that falls outside."""
        updated = sites.copy()
        for site in range(len(sites)):
            members = samples[labels == site]
            if len(members) == 0:
                continue
            centroid = members.mean(axis=0)
            if _points_in_polygon(centroid[None, :], polygon)[0]:
                updated[site] = centroid
            else:
                updated[site] = members[int(np.argmin(np.linalg.norm(members - centroid, axis=1)))]
        return updated

    # ----- helpers ------------------------------------------------------------

    def calculate_formation(self, shape: FormationShape, drone_count: int, drone_type: str = "air") -> List[FormationSlot]:
        """Slots for ground (perimeter) or air (area) agents."""
        if drone_type == "ground":
            offsets = self.perimeter_layout(shape, drone_count)
        else:
            offsets = self.area_layout(shape, drone_count)
        return [FormationSlot(i, offset) for i, offset in enumerate(offsets)]

    @staticmethod
    def required_drones(shape: FormationShape, weight: Optional[float] = None,
                        max_capacity: float = DEFAULT_DRONE_CAPACITY) -> int:
        """Agents needed to lift `weight` and cover the shape surface."""
        weight = _positive(weight, shape.weight)
        max_capacity = _positive(max_capacity, DEFAULT_DRONE_CAPACITY)
        for_weight = math.ceil(weight / max_capacity)
        for_area = math.ceil(shape.area() / AREA_PER_DRONE)
        return max(for_weight, for_area, 1)

    @staticmethod
    def caging_positions(bounds, center, drone_count: int, formation_type: str = "circle",
                         min_distance: float = CAGE_MIN_DISTANCE,
                         max_distance: float = CAGE_MAX_DISTANCE) -> List[CagePosition]:
        """
        Evenly spaced positions on a ring around an object.

        The ring radius is the object half-extent plus the middle of the
        [min_distance, max_distance] band. The first position is at the top
        and every position faces inward. A "polygon" cage places agents on
        the vertices of a regular polygon, which is the same ring.
        """
        if drone_count <= 0:
            return []
        bounds = Bounds.from_any(bounds)
        center = Vector2D.from_any(center)
        object_radius = max(bounds.width, bounds.height) / 2
        cage_radius = object_radius + min_distance + (max_distance - min_distance) / 2
        if formation_type not in ("circle", "polygon"):
            logger.debug("Unknown cage type %s, using a circle", formation_type)
        step = 2 * math.pi / drone_count
        positions = []
        for i in range(drone_count):
            angle = step * i - math.pi / 2
            point = Vector2D(center.x + cage_radius * math.cos(angle), center.y + cage_radius * math.sin(angle))
            positions.append(CagePosition(i, point, angle + math.pi))
        return positions

    @staticmethod
    def to_world(slots: Iterable, anchor, rotation: float = 0.0) -> List[FormationSlot]:
        """Place offsets (or slots) around `anchor`."""
        placed = []
        for i, slot in enumerate(slots):
            if not isinstance(slot, FormationSlot):
                slot = FormationSlot(i, Vector2D.from_any(slot))
            placed.append(slot.world(anchor, rotation))
        return placed


def _agent_entries(agents) -> List[Tuple[str, Vector2D]]:
    """Normalize agents to (id, position): a mapping, (id, pos) pairs or agent objects."""
    if isinstance(agents, dict):
        return [(str(agent_id), Vector2D.from_any(pos)) for agent_id, pos in agents.items()]
    entries = []
    for agent in agents:
        if isinstance(agent, tuple):
            agent_id, pos = agent
        elif isinstance(agent, dict):
            agent_id, pos = agent["id"], agent["position"]
        else:
            agent_id = getattr(agent, "id", None)
            pos = agent.get_position() if hasattr(agent, "get_position") else agent.position
        entries.append((str(agent_id), Vector2D.from_any(pos)))
    return entries


def _slot_point(slot) -> Vector2D:
    if isinstance(slot, FormationSlot):
        return slot.target
    if isinstance(slot, CagePosition):
        return slot.position
    return Vector2D.from_any(slot)


def assign_slots(agents, slots: Sequence) -> Dict[str, Any]:
    """
    Greedy nearest-pair assignment.

    Each round picks the globally closest (agent, slot) pair among the
    unassigned ones. Agents are scanned in the given order and slots in
    their remaining order, and only a strictly smaller distance replaces the
    current best, so the first minimum found wins ties.
    """
    entries = _agent_entries(agents)
    available = list(slots)
    assignments: Dict[str, Any] = {}
    while available and len(assignments) < len(entries):
        best_agent = None
        best_index = -1
        best_dist = math.inf
        for agent_id, position in entries:
            if agent_id in assignments:
                continue
            for index, slot in enumerate(available):
                dist = position.distance_to(_slot_point(slot))
                if dist < best_dist:
                    best_dist = dist
                    best_agent = agent_id
                    best_index = index
        if best_agent is None:
            break
        assignments[best_agent] = available.pop(best_index)
    return assignments


def is_formation_complete(agents, assignments: Dict[str, Any], tolerance: float = 10.0) -> bool:
    """True when every assigned agent is within `tolerance` of its slot."""
    for agent_id, position in _agent_entries(agents):
        slot = assignments.get(agent_id)
        if slot is None:
            continue
        if position.distance_to(_slot_point(slot)) > tolerance:
            return False
    return True


def centroid(points: Iterable) -> Vector2D:
    """Mean of the points; the origin for an empty input."""
    points = [Vector2D.from_any(p) for p in points]
    if not points:
        return Vector2D()
    return Vector2D(sum(p.x for p in points) / len(points), sum(p.y for p in points) / len(points))
