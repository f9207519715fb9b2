from __future__ import annotations

import logging
from typing import Dict, List, Set, Tuple

from polymap.geometry import angle_between_vectors
from polymap.osm_info import OSMIntersectionInfo, OSMNode, OSMRoadInfo
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.remove_pseudo_nodes")


def is_pseudo_node(info: OSMIntersectionInfo, straight_angle_deg: float) -> bool:
    """Exactly two roads whose far ends are near-collinear through this node."""
    if len(info.roads) != 2:
        return False
    r1, r2 = info.roads
    far1 = r1.other_node(info.node)
    far2 = r2.other_node(info.node)
    if far1.id == far2.id:
        return False
    cx, cy = info.coordinates
    angle = angle_between_vectors((far1.x - cx, far1.y - cy), (far2.x - cx, far2.y - cy))
    return angle >= 180.0 - straight_angle_deg


class RemovePseudoNodesStep(ConvertStep):
    """Collapse straight degree-2 nodes; each pass edits adjacency in place and rebuilds the store once."""

    name = "remove_pseudo_nodes"

    def _pass(self, tol: float) -> int:
        store = self.store
        by_node: Dict[int, OSMIntersectionInfo] = {i.node.id: i for i in store.osm_intersections}
        roads: List[OSMRoadInfo] = list(store.osm_roads)
        by_pair: Dict[Tuple[int, int], List[OSMRoadInfo]] = {}
        for road in roads:
            by_pair.setdefault(_pair(road.from_node, road.to_node), []).append(road)
        dropped: Set[int] = set()
        removed: Set[int] = set()
        for info in store.osm_intersections:
            # Earlier removals in this pass may have changed the roads here.
            if not is_pseudo_node(info, tol):
                continue
            r1, r2 = info.roads
            far1 = r1.other_node(info.node)
            far2 = r2.other_node(info.node)
            for road, far in ((r1, far1), (r2, far2)):
                by_node[far.id].roads.remove(road)
                by_pair[_pair(road.from_node, road.to_node)].remove(road)
                dropped.add(id(road))
            existing = by_pair.get(_pair(far1, far2))
            if existing:
                LOG.debug("[PSEUDO] road %s already joins %s and %s", existing[0].id, far1.id, far2.id)
            else:
                joined = OSMRoadInfo(r1.id, far1, far2)
                roads.append(joined)
                by_pair.setdefault(_pair(far1, far2), []).append(joined)
                by_node[far1.id].roads.append(joined)
                by_node[far2.id].roads.append(joined)
            info.roads = []
            removed.add(info.node.id)
        if removed:
            store.set_osm_info(
                [i for i in store.osm_intersections if i.node.id not in removed],
                [r for r in roads if id(r) not in dropped],
            )
        return len(removed)

    def _step(self) -> StepResult:
        tol = self.config.straight_angle_deg
        cap = max(1, self.config.pseudo_node_max_passes)
        removed_total = 0
        passes = 0
        converged = False
        while passes < cap:
            passes += 1
            removed = self._pass(tol)
            LOG.debug("[PSEUDO] pass %d removed %d nodes", passes, removed)
            removed_total += removed
            if removed == 0:
                converged = True
                break
        result = self.result(f"Removed {removed_total} pseudo nodes", changed=removed_total > 0, removed=removed_total)
        result.passes = passes
        result.converged = converged
        return result


def _pair(a: OSMNode, b: OSMNode) -> Tuple[int, int]:
    return (a.id, b.id) if a.id <= b.id else (b.id, a.id)


__all__ = ["RemovePseudoNodesStep", "is_pseudo_node"]
