from __future__ import annotations

from typing import Tuple

from polymap.geometry import BBox, Point, distance, midpoint, segment_bounds


class Node:
    """A canonical point in the store. Created only through ``TemporaryMap.node_at``."""

    __slots__ = ("id", "x", "y")

    def __init__(self, node_id: int, x: float, y: float):
        self.id = int(node_id)
        self.x = float(x)
        self.y = float(y)

    @property
    def coordinates(self) -> Point:
        return (self.x, self.y)

    def __hash__(self) -> int:
        return self.id

    def __repr__(self) -> str:
        return f"Node({self.id}, {self.x:.3f}, {self.y:.3f})"


class Edge:
    """An undirected segment between two nodes. Never mutated after creation."""

    __slots__ = ("id", "start", "end")

    def __init__(self, edge_id: int, start: Node, end: Node):
        self.id = int(edge_id)
        self.start = start
        self.end = end

    @property
    def line(self) -> Tuple[Point, Point]:
        return self.start.coordinates, self.end.coordinates

    @property
    def length(self) -> float:
        return distance(self.start.coordinates, self.end.coordinates)

    @property
    def midpoint(self) -> Point:
        return midpoint(self.start.coordinates, self.end.coordinates)

    @property
    def bounds(self) -> BBox:
        return segment_bounds(self.start.coordinates, self.end.coordinates)

    def other(self, node: Node) -> Node:
        if node is self.start:
            return self.end
        if node is self.end:
            return self.start
        raise ValueError(f"{node} is not an endpoint of {self}")

    def has_node(self, node: Node) -> bool:
        return node is self.start or node is self.end

    def __hash__(self) -> int:
        return self.id

    def __repr__(self) -> str:
        return f"Edge({self.id}: {self.start.id}->{self.end.id})"


class DirectedEdge:
    """An edge traversed in one orientation. Value object, built on demand."""

    __slots__ = ("edge", "forward")

    def __init__(self, edge: Edge, forward: bool = True):
        self.edge = edge
        self.forward = bool(forward)

    @staticmethod
    def starting_at(edge: Edge, start: Node) -> "DirectedEdge":
        return DirectedEdge(edge, start is edge.start)

    @property
    def start_node(self) -> Node:
        return self.edge.start if self.forward else self.edge.end

    @property
    def end_node(self) -> Node:
        return self.edge.end if self.forward else self.edge.start

    @property
    def start_coordinates(self) -> Point:
        return self.start_node.coordinates

    @property
    def end_coordinates(self) -> Point:
        return self.end_node.coordinates

    @property
    def line(self) -> Tuple[Point, Point]:
        return self.start_coordinates, self.end_coordinates

    @property
    def direction(self) -> Tuple[float, float]:
        (x0, y0), (x1, y1) = self.line
        return x1 - x0, y1 - y0

    def reverse(self) -> "DirectedEdge":
        return DirectedEdge(self.edge, not self.forward)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DirectedEdge):
            return NotImplemented
        return self.forward == other.forward and self.edge is other.edge

    def __hash__(self) -> int:
        return hash((self.edge.id, self.forward))

    def __repr__(self) -> str:
        arrow = "" if self.forward else " backwards"
        return f"DirectedEdge{arrow} along {self.edge!r}"


__all__ = ["DirectedEdge", "Edge", "Node"]
