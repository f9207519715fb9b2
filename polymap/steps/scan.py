from __future__ import annotations

import logging
from typing import Dict, List, Optional

from polymap.debug_layers import DebugObserver
from polymap.osm_info import OSMBuildingInfo, OSMIntersectionInfo, OSMRoadInfo, StreetMap
from polymap.steps.base import ConvertStep, StepResult
from polymap.temp_map import TemporaryMap
from polymap.utils.config_resolve import ConvertConfig

LOG = logging.getLogger("steps.scan")


class ScanStep(ConvertStep):
    """Build the OSM-level graph: one intersection per node used by a road, one road per node pair."""

    name = "scan"

    def __init__(
        self,
        store: TemporaryMap,
        street_map: StreetMap,
        config: Optional[ConvertConfig] = None,
        observer: Optional[DebugObserver] = None,
    ):
        super().__init__(store, config, observer)
        self.street_map = street_map

    def _step(self) -> StepResult:
        nodes = self.street_map.nodes
        intersections: Dict[int, OSMIntersectionInfo] = {}
        roads: List[OSMRoadInfo] = []
        skipped = 0
        next_road_id = 0

        for way in self.street_map.roads:
            for a_id, b_id in zip(way.node_ids, way.node_ids[1:]):
                a = nodes.get(a_id)
                b = nodes.get(b_id)
                if a is None or b is None:
                    LOG.warning("[SCAN] way %s references unknown node %s", way.id, a_id if a is None else b_id)
                    skipped += 1
                    continue
                if a.id == b.id or a.coordinates == b.coordinates:
                    LOG.warning("[SCAN] way %s has a zero-length segment at node %s", way.id, a.id)
                    skipped += 1
                    continue
                for node in (a, b):
                    if node.id not in intersections:
                        intersections[node.id] = OSMIntersectionInfo(node)
                next_road_id += 1
                roads.append(OSMRoadInfo(next_road_id, a, b))

        buildings: List[OSMBuildingInfo] = []
        for way in self.street_map.buildings:
            ring = []
            for node_id in way.node_ids:
                node = nodes.get(node_id)
                if node is None:
                    LOG.warning("[SCAN] building %s references unknown node %s", way.id, node_id)
                    continue
                if ring and ring[-1] == node.coordinates:
                    continue
                ring.append(node.coordinates)
            if len(ring) > 1 and ring[0] == ring[-1]:
                ring.pop()
            if len(set(ring)) < 3:
                LOG.warning("[SCAN] building %s has fewer than 3 distinct points; skipped", way.id)
                skipped += 1
                continue
            buildings.append(OSMBuildingInfo(way.id, ring))

        self.store.set_osm_info(intersections.values(), roads, buildings)
        status = f"Found {len(intersections)} intersections, {len(roads)} roads and {len(buildings)} buildings"
        return self.result(
            status,
            changed=bool(intersections or buildings),
            intersections=len(intersections),
            roads=len(roads),
            buildings=len(buildings),
            skipped=skipped,
        )


__all__ = ["ScanStep"]
