from __future__ import annotations

import logging
from collections import deque
from typing import Dict, List, Optional, Sequence, Tuple

from polymap.geometry import concave_vertices, is_counter_clockwise, polygon_signed_area, segments_cross
from polymap.graph import DirectedEdge
from polymap.shapes import TemporaryObject
from polymap.steps.base import ConvertStep, StepResult
from polymap.temp_map import TemporaryMap

LOG = logging.getLogger("steps.traversability")


def _cyclic(seq: Sequence, start: int, stop: int) -> list:
    """seq[start:stop] wrapping past the end."""
    if start < stop:
        return list(seq[start:stop])
    return list(seq[start:]) + list(seq[:stop])


def passable_edges(store: TemporaryMap, obj: TemporaryObject) -> Tuple[List[DirectedEdge], List[DirectedEdge]]:
    """(passable, impassable): an edge is passable when another polygon is attached to it."""
    passable, impassable = [], []
    for d in obj.edges:
        if any(other is not obj for other in store.attached_objects(d.edge)):
            passable.append(d)
        else:
            impassable.append(d)
    return passable, impassable


def is_traversable(store: TemporaryMap, obj: TemporaryObject) -> bool:
    """Every centroid-to-passable-midpoint line stays clear of impassable edges."""
    if len(obj.edges) < 4:
        return True
    passable, impassable = passable_edges(store, obj)
    c = obj.centroid()
    for d in passable:
        m = d.edge.midpoint
        for wall in impassable:
            a, b = wall.line
            if segments_cross(c, m, a, b):
                return False
    return True


def best_split(obj: TemporaryObject, tol: float) -> Optional[Tuple[int, int]]:
    """Concave vertex i and vertex j whose diagonal leaves the fewest concave vertices.

    A diagonal is valid when both halves keep the ring's orientation and
    their areas sum to the original area within ``tol``.
    """
    coords = obj.coordinates()
    n = len(coords)
    if n < 4:
        return None
    sign = 1.0 if is_counter_clockwise(coords) else -1.0
    total = abs(polygon_signed_area(coords))
    lines = obj.lines()
    best: Optional[Tuple[int, int]] = None
    best_score = None
    for i in concave_vertices(coords, tol):
        for j in range(n):
            if j in (i, (i - 1) % n, (i + 1) % n):
                continue
            half1 = _cyclic(coords, i, j) + [coords[j]]
            half2 = _cyclic(coords, j, i) + [coords[i]]
            a1 = sign * polygon_signed_area(half1)
            a2 = sign * polygon_signed_area(half2)
            if a1 <= 0 or a2 <= 0 or abs(a1 + a2 - total) > tol:
                continue
            if any(segments_cross(coords[i], coords[j], a, b) for a, b in lines):
                continue
            score = len(concave_vertices(half1, tol)) + len(concave_vertices(half2, tol))
            if best_score is None or score < best_score:
                best, best_score = (i, j), score
    return best


def split_along(store: TemporaryMap, obj: TemporaryObject, i: int, j: int) -> List[TemporaryObject]:
    edges = obj.edges
    nodes = obj.nodes()
    diagonal = store.edge_between(nodes[i], nodes[j])
    first = _cyclic(edges, i, j) + [DirectedEdge.starting_at(diagonal, nodes[j])]
    second = _cyclic(edges, j, i) + [DirectedEdge.starting_at(diagonal, nodes[i])]
    return [obj.rebuild(first), obj.rebuild(second)]


class EnsureTraversabilityStep(ConvertStep):
    """Split polygons whose centroid cannot see every passable edge."""

    name = "traversability"

    def _step(self) -> StepResult:
        store = self.store
        tol = store.threshold * store.threshold
        cap = max(0, self.config.traversability_max_splits)
        # Pieces carry the index of the polygon they came from; the cap counts splits per original.
        queue = deque((obj, root) for root, obj in enumerate(store.all_objects()) if len(obj.edges) >= 4)
        splits_per_root: Dict[int, int] = {}
        removed: List[TemporaryObject] = []
        added: List[TemporaryObject] = []
        unsplittable = 0
        capped = 0
        while queue:
            obj, root = queue.popleft()
            if not store.contains(obj) or is_traversable(store, obj):
                continue
            done = splits_per_root.get(root, 0)
            if done >= cap:
                LOG.warning("[TRAVERSE] %r still not traversable after %d splits", obj, done)
                capped += 1
                continue
            choice = best_split(obj, tol)
            if choice is None:
                LOG.warning("[TRAVERSE] no valid diagonal for %r; kept unchanged", obj)
                unsplittable += 1
                continue
            halves = split_along(store, obj, *choice)
            store.remove_object(obj)
            store.add_objects(halves)
            removed.append(obj)
            added.extend(halves)
            splits_per_root[root] = done + 1
            for half in halves:
                queue.append((half, root))
        if removed:
            store.resynchronize()
        self.show("Ensure traversability", removed, added)
        status = f"Made {len(removed)} splits ({unsplittable} unsplittable, {capped} capped)"
        return self.result(status, changed=bool(removed), splits=len(removed), unsplittable=unsplittable, capped=capped)


__all__ = ["EnsureTraversabilityStep", "best_split", "is_traversable", "passable_edges", "split_along"]
