from __future__ import annotations

import itertools
import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from polymap.errors import TopologyError
from polymap.geometry import BBox, Point, distance, position_on_line
from polymap.graph import DirectedEdge, Edge, Node
from polymap.osm_info import OSMBuildingInfo, OSMIntersectionInfo, OSMNode, OSMRoadInfo
from polymap.shapes import TemporaryBuilding, TemporaryIntersection, TemporaryObject, TemporaryRoad
from polymap.utils.config_resolve import ConvertConfig

LOG = logging.getLogger("temp_map")


class TemporaryMap:
    """Mutable graph/polygon store shared by every conversion step.

    Nodes are snapped to ``config.nearby_threshold``; edges are canonical per
    unordered node pair. ``edges_at_node`` and ``objects_at_edge`` are kept in
    step by ``add_object``/``remove_object``/``replace_edge`` and rebuilt in
    full by ``resynchronize``.
    """

    def __init__(self, config: Optional[ConvertConfig] = None):
        self.config = config or ConvertConfig()
        self.threshold = float(self.config.nearby_threshold)
        self._node_ids = itertools.count(1)
        self._edge_ids = itertools.count(1)
        self._osm_node_ids = itertools.count(-1, -1)

        self.nodes: Dict[int, Node] = {}
        self.edges: Dict[int, Edge] = {}
        self._edge_by_pair: Dict[Tuple[int, int], Edge] = {}
        self._node_buckets: Dict[Tuple[int, int], List[Node]] = {}
        self._edges_at_node: Dict[Node, Set[Edge]] = {}
        self._objects_at_edge: Dict[Edge, Set[TemporaryObject]] = {}
        self._bounds: Optional[BBox] = None

        self._roads: Dict[int, TemporaryRoad] = {}
        self._intersections: Dict[int, TemporaryIntersection] = {}
        self._buildings: Dict[int, TemporaryBuilding] = {}

        self.osm_intersections: List[OSMIntersectionInfo] = []
        self.osm_roads: List[OSMRoadInfo] = []
        self.osm_buildings: List[OSMBuildingInfo] = []
        self._road_start: Dict[int, OSMIntersectionInfo] = {}
        self._road_end: Dict[int, OSMIntersectionInfo] = {}

    # ---- nodes and edges ----

    def _bucket(self, x: float, y: float) -> Tuple[int, int]:
        return int(math.floor(x / self.threshold)), int(math.floor(y / self.threshold))

    def _register_node(self, node: Node) -> None:
        self.nodes[node.id] = node
        self._node_buckets.setdefault(self._bucket(node.x, node.y), []).append(node)
        self._edges_at_node.setdefault(node, set())
        self._bounds = None

    def find_node(self, point: Point) -> Optional[Node]:
        """The closest registered node within the nearby threshold, if any."""
        bx, by = self._bucket(point[0], point[1])
        best: Optional[Node] = None
        best_d = self.threshold
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for node in self._node_buckets.get((bx + dx, by + dy), ()):
                    d = distance(node.coordinates, point)
                    if d <= best_d:
                        best, best_d = node, d
        return best

    def node_at(self, point: Point) -> Node:
        node = self.find_node(point)
        if node is None:
            node = Node(next(self._node_ids), point[0], point[1])
            self._register_node(node)
        return node

    def _register_edge(self, edge: Edge) -> None:
        self.edges[edge.id] = edge
        self._edge_by_pair[_pair_key(edge.start, edge.end)] = edge
        self._edges_at_node.setdefault(edge.start, set()).add(edge)
        self._edges_at_node.setdefault(edge.end, set()).add(edge)
        self._objects_at_edge.setdefault(edge, set())
        self._bounds = None

    def _retire_edge(self, edge: Edge) -> None:
        self.edges.pop(edge.id, None)
        if self._edge_by_pair.get(_pair_key(edge.start, edge.end)) is edge:
            del self._edge_by_pair[_pair_key(edge.start, edge.end)]
        for node in (edge.start, edge.end):
            self._edges_at_node.get(node, set()).discard(edge)
        self._objects_at_edge.pop(edge, None)
        self._bounds = None

    def edge_between(self, a: Node, b: Node) -> Edge:
        if a is b:
            raise TopologyError(f"cannot build an edge from {a} to itself")
        edge = self._edge_by_pair.get(_pair_key(a, b))
        if edge is None:
            edge = Edge(next(self._edge_ids), a, b)
            self._register_edge(edge)
        return edge

    def directed_edge(self, a: Node, b: Node) -> DirectedEdge:
        return DirectedEdge.starting_at(self.edge_between(a, b), a)

    def attached_objects(self, edge: Edge) -> Set[TemporaryObject]:
        return set(self._objects_at_edge.get(edge, ()))

    def attached_edges(self, node: Node) -> Set[Edge]:
        return set(self._edges_at_node.get(node, ()))

    def all_edges(self) -> List[Edge]:
        return list(self.edges.values())

    def bounds(self) -> Optional[BBox]:
        if self._bounds is None and self.nodes:
            xs = [n.x for n in self.nodes.values()]
            ys = [n.y for n in self.nodes.values()]
            self._bounds = (min(xs), min(ys), max(xs), max(ys))
        return self._bounds

    # ---- topology edits ----

    def replace_edge(self, edge: Edge, replacements: Sequence[Edge]) -> None:
        """Substitute ``edge`` by ``replacements`` in every polygon that uses it.

        All affected polygons are rewritten up front; if any of them cannot
        walk the replacement chain a ``TopologyError`` is raised and nothing
        is changed.
        """
        affected = list(self._objects_at_edge.get(edge, ()))
        rewritten = [(obj, obj.replaced_edges(edge, replacements)) for obj in affected]
        for obj, new_edges in rewritten:
            obj.set_edges(new_edges)
        for new_edge in replacements:
            if new_edge.id not in self.edges:
                self._register_edge(new_edge)
            self._objects_at_edge.setdefault(new_edge, set()).update(affected)
        if edge not in replacements:
            self._retire_edge(edge)

    def split_edge(self, edge: Edge, nodes: Iterable[Node]) -> List[Edge]:
        """Split ``edge`` through ``nodes``; endpoints and repeats are skipped.

        Interior nodes are ordered along the edge from ``edge.start``. Returns
        the replacement chain (``[edge]`` when there was nothing to split).
        """
        interior: List[Node] = []
        for node in nodes:
            if edge.has_node(node) or node in interior:
                continue
            interior.append(node)
        if not interior:
            return [edge]
        a, b = edge.start.coordinates, edge.end.coordinates
        interior.sort(key=lambda n: position_on_line(a, b, n.coordinates))
        chain = [edge.start] + interior + [edge.end]
        replacements = [self.edge_between(chain[i], chain[i + 1]) for i in range(len(chain) - 1)]
        self.replace_edge(edge, replacements)
        return replacements

    def resynchronize(self) -> None:
        """Rebuild node/edge sets and both adjacency indices from the polygon set."""
        self.nodes = {}
        self.edges = {}
        self._edge_by_pair = {}
        self._node_buckets = {}
        self._edges_at_node = {}
        self._objects_at_edge = {}
        for obj in self.all_objects():
            if not obj.is_closed():
                LOG.warning("[RESYNC] %r is not a closed walk", obj)
            for d in obj.edges:
                edge = d.edge
                for node in (edge.start, edge.end):
                    if node.id not in self.nodes:
                        self._register_node(node)
                if edge.id not in self.edges:
                    self._register_edge(edge)
                self._objects_at_edge[edge].add(obj)
        self._bounds = None

    # ---- polygons ----

    def _collection(self, obj: TemporaryObject) -> Dict[int, TemporaryObject]:
        if isinstance(obj, TemporaryRoad):
            return self._roads  # type: ignore[return-value]
        if isinstance(obj, TemporaryIntersection):
            return self._intersections  # type: ignore[return-value]
        if isinstance(obj, TemporaryBuilding):
            return self._buildings  # type: ignore[return-value]
        raise TypeError(f"unsupported object {obj!r}")

    def add_object(self, obj: TemporaryObject) -> None:
        self._collection(obj)[obj.id] = obj
        for d in obj.edges:
            if d.edge.id not in self.edges:
                for node in (d.edge.start, d.edge.end):
                    if node.id not in self.nodes:
                        self._register_node(node)
                self._register_edge(d.edge)
            self._objects_at_edge[d.edge].add(obj)

    def add_objects(self, objects: Iterable[TemporaryObject]) -> None:
        for obj in objects:
            self.add_object(obj)

    def remove_object(self, obj: TemporaryObject) -> None:
        self._collection(obj).pop(obj.id, None)
        for d in obj.edges:
            self._objects_at_edge.get(d.edge, set()).discard(obj)

    def remove_objects(self, objects: Iterable[TemporaryObject]) -> None:
        for obj in list(objects):
            self.remove_object(obj)

    def contains(self, obj: TemporaryObject) -> bool:
        return obj.id in self._collection(obj)

    @property
    def roads(self) -> List[TemporaryRoad]:
        return list(self._roads.values())

    @property
    def intersections(self) -> List[TemporaryIntersection]:
        return list(self._intersections.values())

    @property
    def buildings(self) -> List[TemporaryBuilding]:
        return list(self._buildings.values())

    def passable_shapes(self) -> List[TemporaryObject]:
        return [*self._roads.values(), *self._intersections.values()]

    def all_objects(self) -> List[TemporaryObject]:
        return [*self._roads.values(), *self._intersections.values(), *self._buildings.values()]

    # ---- OSM-level graph ----

    def new_osm_node(self, x: float, y: float) -> OSMNode:
        """A synthetic node (negative id) for merged intersections."""
        return OSMNode(next(self._osm_node_ids), x, y)

    def set_osm_info(
        self,
        intersections: Iterable[OSMIntersectionInfo],
        roads: Iterable[OSMRoadInfo],
        buildings: Optional[Iterable[OSMBuildingInfo]] = None,
    ) -> None:
        """Replace the OSM-level graph and rebuild road/intersection adjacency."""
        self.osm_intersections = list(intersections)
        if buildings is not None:
            self.osm_buildings = list(buildings)
        by_node = {i.node.id: i for i in self.osm_intersections}
        for info in self.osm_intersections:
            info.roads = []
        self.osm_roads = []
        self._road_start = {}
        self._road_end = {}
        for road in roads:
            start = by_node.get(road.from_node.id)
            end = by_node.get(road.to_node.id)
            if start is None or end is None:
                LOG.warning("[OSM] road %s has no intersection at one end; dropped", road.id)
                continue
            self.osm_roads.append(road)
            self._road_start[road.id] = start
            self._road_end[road.id] = end
            start.roads.append(road)
            end.roads.append(road)

    def road_start_intersection(self, road: OSMRoadInfo) -> OSMIntersectionInfo:
        return self._road_start[road.id]

    def road_end_intersection(self, road: OSMRoadInfo) -> OSMIntersectionInfo:
        return self._road_end[road.id]


def _pair_key(a: Node, b: Node) -> Tuple[int, int]:
    return (a.id, b.id) if a.id <= b.id else (b.id, a.id)


__all__ = ["TemporaryMap"]
