from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from shapely.errors import GEOSException
from shapely.geometry import Polygon

from polymap.convert_tools import overlap_area_tolerance, ring_to_edges, valid_polygon
from polymap.errors import TopologyError
from polymap.geometry import (
    Point,
    angle_between_vectors,
    bounds_intersect,
    closest_point_on_segment,
    distance,
    midpoint,
    position_on_line,
    segment_contains,
    unit,
)
from polymap.graph import Edge, Node
from polymap.shapes import TemporaryBuilding, TemporaryIntersection, TemporaryObject
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.connect_buildings")


@dataclass
class EntrancePlan:
    building: TemporaryBuilding
    wall: Edge
    road_edge: Edge
    road: TemporaryObject
    wall_points: Tuple[Point, Point]
    road_points: Tuple[Point, Point]
    deviation: float
    length: float

    @property
    def ring(self) -> List[Point]:
        (w1, w2), (r1, r2) = self.wall_points, self.road_points
        return [w1, w2, r2, r1]

    def polygon(self) -> Polygon:
        return Polygon(self.ring)


def _bbox_distance(point: Point, bbox) -> float:
    dx = max(bbox[0] - point[0], 0.0, point[0] - bbox[2])
    dy = max(bbox[1] - point[1], 0.0, point[1] - bbox[3])
    return (dx * dx + dy * dy) ** 0.5


class ConnectBuildingsStep(ConvertStep):
    """Add an entrance polygon between each unconnected building and its best road edge.

    Plans are computed for every building against the unmodified store, then
    applied in one go and followed by a single resynchronization.
    """

    name = "connect_buildings"

    def is_connected(self, building: TemporaryBuilding) -> bool:
        for d in building.edges:
            for other in self.store.attached_objects(d.edge):
                if other is not building and other.passable:
                    return True
        return False

    def _road_edges(self) -> List[Tuple[Edge, TemporaryObject]]:
        width = self.config.entrance_width
        found: Dict[int, Tuple[Edge, TemporaryObject]] = {}
        for road in self.store.roads:
            for d in road.edges:
                edge = d.edge
                if edge.length < width or len(self.store.attached_objects(edge)) > 1:
                    continue
                found.setdefault(edge.id, (edge, road))
        return list(found.values())

    def _candidate(self, building: TemporaryBuilding, wall: Edge, wall_line, road_edge: Edge, road: TemporaryObject) -> Optional[EntrancePlan]:
        cfg = self.config
        half = cfg.entrance_width * 0.5
        wa, wb = wall_line
        wm = midpoint(wa, wb)
        wall_u = unit(wb[0] - wa[0], wb[1] - wa[1])
        # Exterior side of a counter-clockwise ring is to the right.
        outward = (wall_u[1], -wall_u[0])

        ra, rb = road_edge.start.coordinates, road_edge.end.coordinates
        p = closest_point_on_segment(ra, rb, wm)
        cx, cy = p[0] - wm[0], p[1] - wm[1]
        length = distance(wm, p)
        if length > cfg.max_connect_distance or length <= self.store.threshold:
            return None
        if cx * outward[0] + cy * outward[1] <= 0:
            return None
        road_u = unit(rb[0] - ra[0], rb[1] - ra[1])
        dev_wall = abs(90.0 - angle_between_vectors((cx, cy), wall_u))
        dev_road = abs(90.0 - angle_between_vectors((cx, cy), road_u))
        deviation = max(dev_wall, dev_road)
        if deviation > cfg.max_angle_deviation_deg:
            return None

        w1 = (wm[0] - wall_u[0] * half, wm[1] - wall_u[1] * half)
        w2 = (wm[0] + wall_u[0] * half, wm[1] + wall_u[1] * half)
        # Slide along the road so both road-side corners stay on the segment.
        road_len = road_edge.length
        s = min(max(position_on_line(ra, rb, p) * road_len, half), road_len - half)
        pc = (ra[0] + road_u[0] * s, ra[1] + road_u[1] * s)
        r_lo = (pc[0] - road_u[0] * half, pc[1] - road_u[1] * half)
        r_hi = (pc[0] + road_u[0] * half, pc[1] + road_u[1] * half)
        if distance(w1, r_lo) + distance(w2, r_hi) <= distance(w1, r_hi) + distance(w2, r_lo):
            r1, r2 = r_lo, r_hi
        else:
            r1, r2 = r_hi, r_lo
        return EntrancePlan(building, wall, road_edge, road, (w1, w2), (r1, r2), deviation, length)

    def _collides(self, plan: EntrancePlan, quad: Polygon, tol: float) -> bool:
        qb = quad.bounds
        for obj in self.store.all_objects():
            if obj is plan.building or obj is plan.road:
                continue
            if not bounds_intersect(obj.bounds(), qb):
                continue
            region = valid_polygon(obj)
            if region is None:
                continue
            try:
                if region.intersection(quad).area > tol:
                    return True
            except GEOSException as exc:
                LOG.warning("[CONNECT] overlap test failed against %r: %s", obj, exc)
                return True
        return False

    def plan(self, building: TemporaryBuilding, road_edges: List[Tuple[Edge, TemporaryObject]]) -> Optional[EntrancePlan]:
        cfg = self.config
        tol = overlap_area_tolerance(self.store.threshold)
        candidates: List[EntrancePlan] = []
        for d in building.edges:
            if d.edge.length < cfg.entrance_width:
                continue
            wm = midpoint(*d.line)
            for road_edge, road in road_edges:
                if _bbox_distance(wm, road_edge.bounds) > cfg.max_connect_distance:
                    continue
                plan = self._candidate(building, d.edge, d.line, road_edge, road)
                if plan is None:
                    continue
                candidates.append(plan)
        candidates.sort(key=lambda c: (c.deviation, c.length))
        for plan in candidates:
            quad = plan.polygon()
            if not quad.is_valid or quad.area <= tol:
                continue
            if self._collides(plan, quad, tol):
                continue
            return plan
        return None

    def _split_tracked(self, lineage: Dict[Edge, List[Edge]], original: Edge, node: Node) -> None:
        store = self.store
        pieces = lineage.setdefault(original, [original])
        for i, piece in enumerate(pieces):
            if piece.has_node(node):
                return
            if segment_contains(piece.start.coordinates, piece.end.coordinates, node.coordinates, store.threshold):
                pieces[i : i + 1] = store.split_edge(piece, [node])
                return
        raise TopologyError(f"no piece of {original!r} contains {node!r}")

    def apply(self, plan: EntrancePlan, lineage: Dict[Edge, List[Edge]]) -> TemporaryIntersection:
        store = self.store
        w1, w2 = (store.node_at(p) for p in plan.wall_points)
        r1, r2 = (store.node_at(p) for p in plan.road_points)
        if len({w1, w2, r1, r2}) < 4:
            raise TopologyError("entrance corners collapsed onto each other")
        for original, nodes in ((plan.wall, (w1, w2)), (plan.road_edge, (r1, r2))):
            a, b = original.start.coordinates, original.end.coordinates
            for node in nodes:
                if not segment_contains(a, b, node.coordinates, store.threshold):
                    raise TopologyError(f"{node!r} is not on {original!r}")
        for node in (w1, w2):
            self._split_tracked(lineage, plan.wall, node)
        for node in (r1, r2):
            self._split_tracked(lineage, plan.road_edge, node)
        edges = ring_to_edges(store, [w1.coordinates, w2.coordinates, r2.coordinates, r1.coordinates])
        if edges is None:
            raise TopologyError("entrance ring collapsed")
        entrance = TemporaryIntersection(edges)
        store.add_object(entrance)
        return entrance

    def _step(self) -> StepResult:
        store = self.store
        unconnected = [b for b in store.buildings if not self.is_connected(b)]
        if not unconnected:
            return self.result("All buildings are already connected")
        road_edges = self._road_edges()
        plans = []
        for building in unconnected:
            plan = self.plan(building, road_edges)
            if plan is None:
                LOG.debug("[CONNECT] no entrance found for building %s", building.building_id)
                continue
            plans.append(plan)

        tol = overlap_area_tolerance(store.threshold)
        lineage: Dict[Edge, List[Edge]] = {}
        accepted: List[Polygon] = []
        added: List[TemporaryObject] = []
        for plan in plans:
            quad = plan.polygon()
            if any(quad.intersection(other).area > tol for other in accepted):
                LOG.debug("[CONNECT] entrance for building %s overlaps another entrance", plan.building.building_id)
                continue
            try:
                added.append(self.apply(plan, lineage))
            except TopologyError as exc:
                LOG.warning("[CONNECT] abandoned entrance for building %s: %s", plan.building.building_id, exc)
                continue
            accepted.append(quad)
        if added:
            store.resynchronize()
        self.show("Connect buildings", [], added, store.buildings)
        status = f"Connected {len(added)} of {len(unconnected)} unconnected buildings"
        return self.result(status, changed=bool(added), unconnected=len(unconnected), planned=len(plans), connected=len(added))


__all__ = ["ConnectBuildingsStep", "EntrancePlan"]
