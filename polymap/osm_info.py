from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pyproj import Transformer

from polymap.geometry import Point, distance, unit

LOG = logging.getLogger("osm_info")

# Mouth distance along a road: ROAD_WIDTH * MOUTH_WIDTH_FACTOR, clamped to
# MOUTH_LENGTH_FRACTION of the road length.
MOUTH_WIDTH_FACTOR = 1.5
MOUTH_LENGTH_FRACTION = 0.45


@dataclass(frozen=True)
class OSMNode:
    id: int
    x: float
    y: float

    @property
    def coordinates(self) -> Point:
        return (self.x, self.y)


@dataclass
class OSMWay:
    id: int
    node_ids: List[int]


@dataclass
class StreetMap:
    """Parsed street-map input: nodes by id plus road and building ways."""

    nodes: Dict[int, OSMNode] = field(default_factory=dict)
    roads: List[OSMWay] = field(default_factory=list)
    buildings: List[OSMWay] = field(default_factory=list)

    @staticmethod
    def from_dict(payload: Dict[str, Any]) -> "StreetMap":
        nodes = {}
        for item in payload.get("nodes", []):
            node = OSMNode(int(item["id"]), float(item["x"]), float(item["y"]))
            nodes[node.id] = node
        roads = [OSMWay(int(w["id"]), [int(n) for n in w["nodes"]]) for w in payload.get("roads", [])]
        buildings = [OSMWay(int(w["id"]), [int(n) for n in w["nodes"]]) for w in payload.get("buildings", [])]
        return StreetMap(nodes=nodes, roads=roads, buildings=buildings)


def project_street_map(street_map: StreetMap, source_epsg: int, target_epsg: int) -> StreetMap:
    """Reproject node coordinates, e.g. WGS84 lon/lat into a metric CRS."""
    transformer = Transformer.from_crs(f"EPSG:{int(source_epsg)}", f"EPSG:{int(target_epsg)}", always_xy=True)
    ids = list(street_map.nodes.keys())
    xs = [street_map.nodes[i].x for i in ids]
    ys = [street_map.nodes[i].y for i in ids]
    if not ids:
        return StreetMap(nodes={}, roads=list(street_map.roads), buildings=list(street_map.buildings))
    px, py = transformer.transform(xs, ys)
    nodes = {i: OSMNode(i, float(x), float(y)) for i, x, y in zip(ids, px, py)}
    return StreetMap(nodes=nodes, roads=list(street_map.roads), buildings=list(street_map.buildings))


class OSMRoadInfo:
    """A road segment between two OSM nodes plus its four footprint corners.

    Corners are named relative to the direction pointing away from the
    intersection at that end, so ``from_left``/``from_right`` use the
    from->to direction and ``to_left``/``to_right`` use to->from.
    """

    def __init__(self, road_id: int, from_node: OSMNode, to_node: OSMNode):
        self.id = road_id
        self.from_node = from_node
        self.to_node = to_node
        self.from_left: Optional[Point] = None
        self.from_right: Optional[Point] = None
        self.to_left: Optional[Point] = None
        self.to_right: Optional[Point] = None

    @property
    def length(self) -> float:
        return distance(self.from_node.coordinates, self.to_node.coordinates)

    def other_node(self, node: OSMNode) -> OSMNode:
        if node.id == self.from_node.id:
            return self.to_node
        if node.id == self.to_node.id:
            return self.from_node
        raise ValueError(f"node {node.id} is not an end of road {self.id}")

    def joins(self, a: OSMNode, b: OSMNode) -> bool:
        ends = {self.from_node.id, self.to_node.id}
        return ends == {a.id, b.id}

    def set_corners_at(self, node: OSMNode, left: Point, right: Point) -> None:
        if node.id == self.from_node.id:
            self.from_left, self.from_right = left, right
        elif node.id == self.to_node.id:
            self.to_left, self.to_right = left, right
        else:
            raise ValueError(f"node {node.id} is not an end of road {self.id}")

    def has_area(self) -> bool:
        return None not in (self.from_left, self.from_right, self.to_left, self.to_right)

    def footprint(self) -> List[Point]:
        """Counter-clockwise quadrilateral; only valid once ``has_area``."""
        return [self.from_right, self.to_left, self.to_right, self.from_left]  # type: ignore[list-item]

    def __repr__(self) -> str:
        return f"OSMRoadInfo({self.id}: {self.from_node.id}->{self.to_node.id})"


@dataclass
class RoadAspect:
    """One road as seen from an intersection: outward direction and mouth corners."""

    road: OSMRoadInfo
    angle: float
    left: Point
    right: Point


class OSMIntersectionInfo:
    def __init__(self, node: OSMNode):
        self.node = node
        self.roads: List[OSMRoadInfo] = []
        self.area: Optional[List[Point]] = None

    @property
    def coordinates(self) -> Point:
        return self.node.coordinates

    def aspect(self, road: OSMRoadInfo, road_width: float) -> Optional[RoadAspect]:
        cx, cy = self.node.coordinates
        far = road.other_node(self.node)
        ux, uy = unit(far.x - cx, far.y - cy)
        if ux == 0.0 and uy == 0.0:
            return None
        length = road.length
        d = min(MOUTH_WIDTH_FACTOR * road_width, MOUTH_LENGTH_FRACTION * length)
        half = road_width * 0.5
        mx, my = cx + ux * d, cy + uy * d
        nx, ny = -uy, ux
        left = (mx + nx * half, my + ny * half)
        right = (mx - nx * half, my - ny * half)
        return RoadAspect(road, math.atan2(uy, ux), left, right)

    def process(self, road_width: float) -> None:
        """Compute mouth corners for every incident road and the area polygon.

        Roads are ordered counter-clockwise around the centre and the area is
        the ring right0, left0, right1, left1, ... which is counter-clockwise.
        A single road gets its corners on the centre itself and no area is
        produced; neither does an intersection without roads.
        """
        self.area = None
        if not self.roads:
            return
        if len(self.roads) == 1:
            road = self.roads[0]
            cx, cy = self.node.coordinates
            far = road.other_node(self.node)
            ux, uy = unit(far.x - cx, far.y - cy)
            half = road_width * 0.5
            road.set_corners_at(self.node, (cx - uy * half, cy + ux * half), (cx + uy * half, cy - ux * half))
            return

        aspects = []
        for road in self.roads:
            aspect = self.aspect(road, road_width)
            if aspect is None:
                LOG.warning("[INTERSECTION] zero-length road %s at node %s", road.id, self.node.id)
                continue
            road.set_corners_at(self.node, aspect.left, aspect.right)
            aspects.append(aspect)
        if len(aspects) < 2:
            return
        aspects.sort(key=lambda a: a.angle)
        ring: List[Point] = []
        for aspect in aspects:
            ring.append(aspect.right)
            ring.append(aspect.left)
        self.area = ring

    def __repr__(self) -> str:
        return f"OSMIntersectionInfo(node={self.node.id}, roads={len(self.roads)})"


@dataclass
class OSMBuildingInfo:
    id: int
    coordinates: List[Point]


def mean_point(points: List[Tuple[float, float]]) -> Point:
    n = float(len(points))
    return (sum(p[0] for p in points) / n, sum(p[1] for p in points) / n)


__all__ = [
    "MOUTH_LENGTH_FRACTION",
    "MOUTH_WIDTH_FACTOR",
    "OSMBuildingInfo",
    "OSMIntersectionInfo",
    "OSMNode",
    "OSMRoadInfo",
    "OSMWay",
    "RoadAspect",
    "StreetMap",
    "mean_point",
    "project_street_map",
]
