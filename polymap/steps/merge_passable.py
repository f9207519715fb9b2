from __future__ import annotations

import logging
from collections import deque
from typing import List

from shapely.errors import GEOSException
from shapely.ops import unary_union

from polymap.convert_tools import overlap_area_tolerance, region_to_edge_loops, valid_polygon
from polymap.geometry import bounds_intersect
from polymap.shapes import TemporaryObject
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.merge_passable")


class MergePassableShapesStep(ConvertStep):
    """Union roads and intersections whose regions overlap, group by group."""

    name = "merge_passable"

    def _groups(self, shapes: List[TemporaryObject], tol: float) -> List[List[TemporaryObject]]:
        regions = {s.id: valid_polygon(s) for s in shapes}
        visited = set()
        groups = []
        for start in shapes:
            if start.id in visited:
                continue
            visited.add(start.id)
            group = []
            queue = deque([start])
            while queue:
                current = queue.popleft()
                group.append(current)
                a = regions[current.id]
                if a is None:
                    continue
                for other in shapes:
                    if other.id in visited or not bounds_intersect(current.bounds(), other.bounds()):
                        continue
                    b = regions[other.id]
                    if b is None:
                        continue
                    try:
                        overlap = a.intersection(b).area
                    except GEOSException as exc:
                        LOG.warning("[MERGE] overlap test failed for %r and %r: %s", current, other, exc)
                        continue
                    if overlap > tol:
                        visited.add(other.id)
                        queue.append(other)
            groups.append(group)
        return groups

    def _step(self) -> StepResult:
        store = self.store
        tol = overlap_area_tolerance(store.threshold)
        shapes = store.passable_shapes()
        removed: List[TemporaryObject] = []
        added: List[TemporaryObject] = []
        for group in self._groups(shapes, tol):
            if len(group) < 2:
                continue
            regions = [r for r in (valid_polygon(s) for s in group) if r is not None]
            try:
                combined = unary_union(regions)
            except GEOSException as exc:
                LOG.warning("[MERGE] union of %d shapes failed: %s", len(group), exc)
                continue
            merged = [group[0].rebuild(loop) for loop in region_to_edge_loops(store, combined)]
            if not merged:
                continue
            removed.extend(group)
            added.extend(merged)
        if not removed:
            return self.result("No overlapping passable shapes found to merge")
        store.remove_objects(removed)
        store.add_objects(added)
        store.resynchronize()
        self.show("Merge passable shapes", removed, added)
        status = f"Merged {len(removed)} old passable shapes into {len(added)} new passable shapes"
        return self.result(status, changed=True, removed=len(removed), created=len(added))


__all__ = ["MergePassableShapesStep"]
