from __future__ import annotations

import itertools
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from shapely.geometry import Polygon

from polymap.errors import TopologyError
from polymap.geometry import BBox, Point, polygon_area, polygon_centroid
from polymap.graph import DirectedEdge, Edge, Node

_object_ids = itertools.count()


def _walk_chain(start: Node, end: Node, replacements: Sequence[Edge]) -> List[DirectedEdge]:
    """Directed walk from ``start`` to ``end`` through every edge of ``replacements``."""
    remaining = list(replacements)
    walk: List[DirectedEdge] = []
    current = start
    while current is not end:
        step = None
        for candidate in remaining:
            if candidate.has_node(current):
                step = candidate
                break
        if step is None:
            raise TopologyError(f"replacement chain does not connect {start} to {end}")
        remaining.remove(step)
        directed = DirectedEdge.starting_at(step, current)
        walk.append(directed)
        current = directed.end_node
    return walk


class TemporaryObject:
    """A simple polygon bounded by a closed walk of directed edges.

    Derived geometry (bounds, shapely polygon, centroid) is cached and dropped
    whenever the edge list changes. The per-edge neighbour map is filled in by
    the pipeline, not maintained here.
    """

    kind = "object"
    passable = False

    def __init__(self, edges: Iterable[DirectedEdge]):
        self.id = next(_object_ids)
        self._edges: List[DirectedEdge] = list(edges)
        self._neighbours: Dict[DirectedEdge, Optional["TemporaryObject"]] = {}
        self._invalidate()

    def rebuild(self, edges: Iterable[DirectedEdge]) -> "TemporaryObject":
        """A new object of the same variant over ``edges``."""
        raise NotImplementedError

    def _invalidate(self) -> None:
        self._bounds: Optional[BBox] = None
        self._polygon: Optional[Polygon] = None
        self._centroid: Optional[Point] = None

    @property
    def edges(self) -> Tuple[DirectedEdge, ...]:
        return tuple(self._edges)

    def nodes(self) -> List[Node]:
        return [d.start_node for d in self._edges]

    def coordinates(self) -> List[Point]:
        """Open coordinate ring, one entry per boundary edge start."""
        return [d.start_coordinates for d in self._edges]

    def vertices(self) -> List[Point]:
        """Closed coordinate ring (first point repeated at the end)."""
        if not self._edges:
            return []
        ring = self.coordinates()
        ring.append(self._edges[-1].end_coordinates)
        return ring

    def lines(self) -> List[Tuple[Point, Point]]:
        return [d.line for d in self._edges]

    def is_closed(self) -> bool:
        n = len(self._edges)
        if n == 0:
            return False
        return all(self._edges[i].end_node is self._edges[(i + 1) % n].start_node for i in range(n))

    def bounds(self) -> Optional[BBox]:
        if self._bounds is None and self._edges:
            xs = [p[0] for p in self.coordinates()]
            ys = [p[1] for p in self.coordinates()]
            self._bounds = (min(xs), min(ys), max(xs), max(ys))
        return self._bounds

    def polygon(self) -> Optional[Polygon]:
        """The renderable boundary as a shapely polygon (not validated)."""
        if self._polygon is None and len(self._edges) >= 3:
            self._polygon = Polygon(self.coordinates())
        return self._polygon

    def centroid(self) -> Point:
        if self._centroid is None:
            self._centroid = polygon_centroid(self.coordinates())
        return self._centroid

    def area(self) -> float:
        return polygon_area(self.coordinates())

    def neighbour(self, edge: DirectedEdge) -> Optional["TemporaryObject"]:
        return self._neighbours.get(edge)

    def set_neighbour(self, edge: Union[Edge, DirectedEdge], neighbour: Optional["TemporaryObject"]) -> None:
        if isinstance(edge, Edge):
            edge = self.find_directed_edge(edge)
        self._neighbours[edge] = neighbour

    def clear_neighbours(self) -> None:
        self._neighbours.clear()

    def find_directed_edge(self, edge: Edge) -> DirectedEdge:
        for d in self._edges:
            if d.edge is edge:
                return d
        raise TopologyError(f"{edge!r} not found in {self!r}")

    def replaced_edges(self, edge: Edge, replacements: Sequence[Edge]) -> List[DirectedEdge]:
        """The edge list with every use of ``edge`` swapped for the ``replacements`` chain.

        Each use is walked in its own direction, so a polygon that crosses the
        same edge twice gets both uses rewritten. With no replacements the
        edge is simply dropped. Nothing is assigned here.
        """
        if not replacements:
            return [d for d in self._edges if d.edge is not edge]
        result: List[DirectedEdge] = []
        for d in self._edges:
            if d.edge is not edge:
                result.append(d)
                continue
            result.extend(_walk_chain(d.start_node, d.end_node, replacements))
        return result

    def set_edges(self, edges: Iterable[DirectedEdge]) -> None:
        self._edges = list(edges)
        live = {d.edge for d in self._edges}
        self._neighbours = {k: v for k, v in self._neighbours.items() if k.edge in live}
        self._invalidate()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, edges={len(self._edges)})"


class TemporaryRoad(TemporaryObject):
    kind = "road"
    passable = True

    def rebuild(self, edges: Iterable[DirectedEdge]) -> "TemporaryRoad":
        return TemporaryRoad(edges)


class TemporaryIntersection(TemporaryObject):
    kind = "intersection"
    passable = True

    def rebuild(self, edges: Iterable[DirectedEdge]) -> "TemporaryIntersection":
        return TemporaryIntersection(edges)


class TemporaryBuilding(TemporaryObject):
    kind = "building"

    def __init__(self, edges: Iterable[DirectedEdge], building_id: int):
        super().__init__(edges)
        self.building_id = building_id

    def rebuild(self, edges: Iterable[DirectedEdge]) -> "TemporaryBuilding":
        return TemporaryBuilding(edges, self.building_id)

    def __repr__(self) -> str:
        return f"TemporaryBuilding(id={self.id}, building_id={self.building_id}, edges={len(self._edges)})"


__all__ = [
    "TemporaryBuilding",
    "TemporaryIntersection",
    "TemporaryObject",
    "TemporaryRoad",
]
