from __future__ import annotations

import logging
from typing import Optional

from polymap.errors import TopologyError
from polymap.geometry import (
    Point,
    closest_point_on_segment,
    distance,
    is_parallel,
    line_intersection_params,
    point_at,
    position_on_line,
    segment_contains,
)
from polymap.graph import Edge, Node
from polymap.spatial_grid import SpatialGrid, cell_size_for
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.split_edges")


class SplitIntersectingEdgesStep(ConvertStep):
    """Split crossing and overlapping edges until no pass finds anything to split."""

    name = "split_edges"

    def _interior_node(self, edge: Edge, point: Point) -> bool:
        """``point`` lies on ``edge`` and clear of both endpoints."""
        thr = self.store.threshold
        a, b = edge.start.coordinates, edge.end.coordinates
        if distance(a, point) <= thr or distance(b, point) <= thr:
            return False
        return segment_contains(a, b, point, thr)

    def _split(self, edge: Edge, node: Node) -> bool:
        if edge.has_node(node):
            return False
        try:
            self.store.split_edge(edge, [node])
        except TopologyError as exc:
            LOG.warning("[SPLIT] abandoned split of %r at %r: %s", edge, node, exc)
            return False
        return True

    def _collinear(self, e: Edge, f: Edge) -> bool:
        thr = self.store.threshold
        a, b = e.start.coordinates, e.end.coordinates
        return all(_on_line(a, b, p, thr) for p in (f.start.coordinates, f.end.coordinates))

    def _split_parallel(self, e: Edge, f: Edge) -> int:
        """Containment, partial overlap and shared-endpoint overlap of collinear edges."""
        if not self._collinear(e, f):
            return 0
        e_nodes = [n for n in (f.start, f.end) if self._interior_node(e, n.coordinates)]
        f_nodes = [n for n in (e.start, e.end) if self._interior_node(f, n.coordinates)]
        splits = 0
        if e_nodes:
            try:
                self.store.split_edge(e, e_nodes)
                splits += 1
            except TopologyError as exc:
                LOG.warning("[SPLIT] abandoned overlap split of %r: %s", e, exc)
        if f_nodes:
            try:
                self.store.split_edge(f, f_nodes)
                splits += 1
            except TopologyError as exc:
                LOG.warning("[SPLIT] abandoned overlap split of %r: %s", f, exc)
        return splits

    def _crossing_point(self, e: Edge, f: Edge) -> Optional[Point]:
        a, b = e.start.coordinates, e.end.coordinates
        c, d = f.start.coordinates, f.end.coordinates
        params = line_intersection_params(a, b, c, d)
        if params is None:
            return None
        t, u = params
        p = point_at(a, b, t)
        if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
            return p
        # Near miss: accept the line intersection only within the nearby threshold of both segments.
        thr = self.store.threshold
        if distance(closest_point_on_segment(a, b, p), p) > thr:
            return None
        if distance(closest_point_on_segment(c, d, p), p) > thr:
            return None
        return p

    def _splits_at(self, edge: Edge, node: Node) -> bool:
        """``node`` is not an endpoint of ``edge`` and lies strictly between them."""
        if edge.has_node(node):
            return False
        a, b = edge.start.coordinates, edge.end.coordinates
        t = position_on_line(a, b, node.coordinates)
        return 0.0 < t < 1.0 and segment_contains(a, b, node.coordinates, self.store.threshold)

    def _split_crossing(self, e: Edge, f: Edge) -> int:
        p = self._crossing_point(e, f)
        if p is None:
            return 0
        thr = self.store.threshold
        snapped = self.store.node_at(p)
        # Endpoints near the crossing turn it into a T-junction when the snapped node cannot.
        near = sorted(
            (n for n in (e.start, e.end, f.start, f.end) if n is not snapped and distance(n.coordinates, p) <= thr),
            key=lambda n: distance(n.coordinates, p),
        )
        for node in [snapped] + near:
            split_e = self._splits_at(e, node)
            split_f = self._splits_at(f, node)
            if not split_e and not split_f:
                continue
            splits = 0
            if split_e and self._split(e, node):
                splits += 1
            if split_f and self._split(f, node):
                splits += 1
            return splits
        return 0

    def _pass(self) -> int:
        store = self.store
        edges = store.all_edges()
        grid: SpatialGrid[Edge] = SpatialGrid(store.bounds(), cell_size_for(store.bounds(), self.config.grid_divisions), lambda e: e.bounds)
        grid.add_all(edges)
        splits = 0
        for e in edges:
            if e.id not in store.edges:
                continue
            for f in sorted(grid.nearby(e), key=lambda x: x.id):
                if f is e or f.id not in store.edges:
                    continue
                if {e.start, e.end} == {f.start, f.end}:
                    continue
                a, b = e.start.coordinates, e.end.coordinates
                if is_parallel(a, b, f.start.coordinates, f.end.coordinates):
                    done = self._split_parallel(e, f)
                else:
                    done = self._split_crossing(e, f)
                if done:
                    splits += done
                    if e.id not in store.edges:
                        break
        return splits

    def _step(self) -> StepResult:
        before = self.store.all_objects()
        cap = max(1, self.config.split_edges_max_passes)
        total = 0
        passes = 0
        converged = False
        while passes < cap:
            passes += 1
            splits = self._pass()
            LOG.debug("[SPLIT] pass %d made %d splits", passes, splits)
            total += splits
            if splits == 0:
                converged = True
                break
        self.store.resynchronize()
        self.show("Split intersecting edges", before, self.store.all_objects())
        result = self.result(f"Split {total} edges in {passes} passes", changed=total > 0, splits=total)
        result.passes = passes
        result.converged = converged
        return result


def _on_line(a: Point, b: Point, p: Point, tol: float) -> bool:
    length = distance(a, b)
    if length == 0:
        return distance(a, p) <= tol
    (ax, ay), (bx, by) = a, b
    return abs((bx - ax) * (p[1] - ay) - (by - ay) * (p[0] - ax)) / length <= tol


__all__ = ["SplitIntersectingEdgesStep"]
