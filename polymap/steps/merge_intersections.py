from __future__ import annotations

import logging
from collections import deque
from typing import Dict, List, Set, Tuple

from polymap.geometry import distance
from polymap.osm_info import OSMIntersectionInfo, OSMNode, OSMRoadInfo, mean_point
from polymap.spatial_grid import SpatialGrid
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.merge_intersections")


def _proximity_components(intersections: List[OSMIntersectionInfo], merge_distance: float) -> List[List[OSMIntersectionInfo]]:
    """Connected components of the "within merge distance" relation (BFS)."""
    if not intersections:
        return []
    xs = [i.node.x for i in intersections]
    ys = [i.node.y for i in intersections]
    bounds = (min(xs), min(ys), max(xs), max(ys))
    grid: SpatialGrid[OSMIntersectionInfo] = SpatialGrid(
        bounds, max(merge_distance, 1e-9), lambda i: (i.node.x, i.node.y, i.node.x, i.node.y)
    )
    grid.add_all(intersections)

    seen: Set[int] = set()
    components = []
    for start in intersections:
        if id(start) in seen:
            continue
        seen.add(id(start))
        group = []
        queue = deque([start])
        while queue:
            current = queue.popleft()
            group.append(current)
            for other in grid.nearby(current):
                if id(other) in seen:
                    continue
                if distance(current.coordinates, other.coordinates) <= merge_distance:
                    seen.add(id(other))
                    queue.append(other)
        components.append(group)
    return components


class MergeIntersectionsStep(ConvertStep):
    """Collapse clusters of intersections within the merge distance into one centroid intersection."""

    name = "merge_intersections"

    def _merge_once(self) -> Tuple[int, int]:
        store = self.store
        components = _proximity_components(store.osm_intersections, self.config.merge_distance)
        mapping: Dict[int, OSMNode] = {}
        intersections: List[OSMIntersectionInfo] = []
        merged_groups = 0
        for group in components:
            if len(group) == 1:
                mapping[group[0].node.id] = group[0].node
                intersections.append(group[0])
                continue
            x, y = mean_point([i.coordinates for i in group])
            node = store.new_osm_node(x, y)
            for info in group:
                mapping[info.node.id] = node
            intersections.append(OSMIntersectionInfo(node))
            merged_groups += 1
        if not merged_groups:
            return 0, 0

        roads: List[OSMRoadInfo] = []
        seen_pairs: Set[Tuple[int, int]] = set()
        dropped = 0
        for road in store.osm_roads:
            a = mapping.get(road.from_node.id)
            b = mapping.get(road.to_node.id)
            if a is None or b is None or a.id == b.id:
                dropped += 1
                continue
            pair = (min(a.id, b.id), max(a.id, b.id))
            if pair in seen_pairs:
                LOG.debug("[MERGE] duplicate road %s between %s and %s dropped", road.id, a.id, b.id)
                dropped += 1
                continue
            seen_pairs.add(pair)
            if a is road.from_node and b is road.to_node:
                roads.append(road)
            else:
                roads.append(OSMRoadInfo(road.id, a, b))
        store.set_osm_info(intersections, roads)
        return merged_groups, dropped

    def _step(self) -> StepResult:
        before = len(self.store.osm_intersections)
        cap = max(1, self.config.merge_max_passes)
        groups = dropped = 0
        passes = 0
        converged = False
        while passes < cap:
            passes += 1
            merged, removed = self._merge_once()
            groups += merged
            dropped += removed
            if not merged:
                converged = True
                break
        after = len(self.store.osm_intersections)
        status = f"Merged {before - after} intersections in {groups} groups; dropped {dropped} roads"
        result = self.result(status, changed=groups > 0, merged_groups=groups, dropped_roads=dropped)
        result.passes = passes
        result.converged = converged
        return result


__all__ = ["MergeIntersectionsStep"]
