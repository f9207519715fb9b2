from __future__ import annotations

import logging

from polymap.convert_tools import ring_to_edges
from polymap.shapes import TemporaryBuilding, TemporaryIntersection, TemporaryRoad
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.make_objects")


class MakeTemporaryObjectsStep(ConvertStep):
    """Turn road footprints, intersection areas and building rings into store polygons."""

    name = "make_objects"

    def _step(self) -> StepResult:
        store = self.store
        roads = intersections = buildings = skipped = 0
        for road in store.osm_roads:
            if not road.has_area():
                continue
            edges = ring_to_edges(store, road.footprint())
            if edges is None:
                LOG.warning("[OBJECTS] road %s footprint collapsed; skipped", road.id)
                skipped += 1
                continue
            store.add_object(TemporaryRoad(edges))
            roads += 1
        for info in store.osm_intersections:
            if info.area is None:
                continue
            edges = ring_to_edges(store, info.area)
            if edges is None:
                LOG.warning("[OBJECTS] intersection at node %s collapsed; skipped", info.node.id)
                skipped += 1
                continue
            store.add_object(TemporaryIntersection(edges))
            intersections += 1
        for building in store.osm_buildings:
            edges = ring_to_edges(store, building.coordinates)
            if edges is None:
                LOG.warning("[OBJECTS] building %s collapsed; skipped", building.id)
                skipped += 1
                continue
            store.add_object(TemporaryBuilding(edges, building.id))
            buildings += 1
        self.show("Temporary objects", [], store.all_objects())
        status = f"Created {roads} roads, {intersections} intersections and {buildings} buildings"
        return self.result(
            status,
            changed=bool(roads or intersections or buildings),
            roads=roads,
            intersections=intersections,
            buildings=buildings,
            skipped=skipped,
        )


__all__ = ["MakeTemporaryObjectsStep"]
