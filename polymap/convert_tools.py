from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.validation import make_valid

from polymap.geometry import Point, is_counter_clockwise, signed_turn
from polymap.graph import DirectedEdge, Node

if TYPE_CHECKING:
    from polymap.shapes import TemporaryObject
    from polymap.temp_map import TemporaryMap

LOG = logging.getLogger("convert_tools")


def _make_valid(geom: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    if geom is None or geom.is_empty:
        return geom
    if geom.is_valid:
        return geom
    try:
        return make_valid(geom)
    except GEOSException:
        return geom.buffer(0)


def _iter_polygons(geom: Optional[BaseGeometry]) -> Iterable[Polygon]:
    if geom is None or geom.is_empty:
        return
    if isinstance(geom, Polygon):
        yield geom
        return
    if isinstance(geom, MultiPolygon):
        for part in geom.geoms:
            yield part
        return
    if hasattr(geom, "geoms"):
        for part in geom.geoms:
            yield from _iter_polygons(part)


def valid_polygon(obj: "TemporaryObject") -> Optional[BaseGeometry]:
    """The object's region as valid areal geometry, or None when it has no area."""
    raw = obj.polygon()
    if raw is None:
        return None
    geom = _make_valid(raw)
    polys = list(_iter_polygons(geom))
    if not polys:
        return None
    if len(polys) == 1:
        return polys[0]
    return MultiPolygon(polys)


def overlap_area_tolerance(threshold: float) -> float:
    """Areas at or below this are treated as touching, not overlapping."""
    return threshold * threshold * 0.01


def ring_to_edges(store: "TemporaryMap", coords: Sequence[Point]) -> Optional[List[DirectedEdge]]:
    """Snap an open or closed ring through ``node_at`` into a counter-clockwise edge loop.

    Consecutive repeats after snapping are collapsed. Returns None when fewer
    than three distinct nodes remain.
    """
    points = list(coords)
    if len(points) >= 2 and points[0] == points[-1]:
        points = points[:-1]
    if len(points) >= 3 and not is_counter_clockwise(points):
        points.reverse()
    nodes: List[Node] = []
    for p in points:
        node = store.node_at((float(p[0]), float(p[1])))
        if nodes and nodes[-1] is node:
            continue
        nodes.append(node)
    while len(nodes) > 1 and nodes[0] is nodes[-1]:
        nodes.pop()
    if len(set(nodes)) < 3:
        return None
    return [store.directed_edge(nodes[i], nodes[(i + 1) % len(nodes)]) for i in range(len(nodes))]


def region_to_edge_loops(store: "TemporaryMap", geom: Optional[BaseGeometry]) -> List[List[DirectedEdge]]:
    """Exterior rings of every polygon in ``geom`` as edge loops; holes are ignored."""
    loops = []
    for poly in _iter_polygons(geom):
        edges = ring_to_edges(store, list(poly.exterior.coords))
        if edges is None:
            LOG.debug("[REGION] ring collapsed below three nodes")
            continue
        if len({d.start_node for d in edges}) == len(edges):
            loops.append(edges)
            continue
        # Snapping pinched the ring; pull it apart into simple loops.
        for loop in trace_loops(edges):
            loops.append(orient_counter_clockwise(loop))
    return loops


def find_left_turn(incoming: DirectedEdge, candidates: Iterable[DirectedEdge]) -> Optional[DirectedEdge]:
    """The candidate leaving ``incoming.end_node`` that turns most sharply left.

    Going straight back along ``incoming`` is only taken when nothing else
    is available.
    """
    best: Optional[DirectedEdge] = None
    best_turn = float("-inf")
    back: Optional[DirectedEdge] = None
    for candidate in candidates:
        if candidate.start_node is not incoming.end_node:
            continue
        if candidate.edge is incoming.edge:
            back = candidate
            continue
        turn = signed_turn(incoming.direction, candidate.direction)
        if turn > best_turn:
            best, best_turn = candidate, turn
    return best if best is not None else back


def trace_loops(edges: Sequence[DirectedEdge]) -> List[List[DirectedEdge]]:
    """Split a directed edge set into closed loops by leftmost-turn face tracing.

    Walks that dead-end are logged and abandoned; loops of fewer than three
    edges are dropped.
    """
    remaining = list(edges)
    loops: List[List[DirectedEdge]] = []
    while remaining:
        first = remaining.pop(0)
        walk = [first]
        start = first.start_node
        current = first
        closed = False
        for _ in range(len(edges)):
            if current.end_node is start:
                closed = True
                break
            step = find_left_turn(current, remaining)
            if step is None:
                break
            remaining.remove(step)
            walk.append(step)
            current = step
        if not closed:
            LOG.warning("[TRACE] walk from node %s did not close after %d edges; abandoned", start.id, len(walk))
            continue
        if len(walk) < 3:
            LOG.debug("[TRACE] dropping degenerate loop of %d edges", len(walk))
            continue
        loops.append(walk)
    return loops


def orient_counter_clockwise(loop: List[DirectedEdge]) -> List[DirectedEdge]:
    coords = [d.start_coordinates for d in loop]
    if is_counter_clockwise(coords):
        return loop
    return [d.reverse() for d in reversed(loop)]


__all__ = [
    "find_left_turn",
    "orient_counter_clockwise",
    "overlap_area_tolerance",
    "region_to_edge_loops",
    "ring_to_edges",
    "trace_loops",
    "valid_polygon",
]
