from __future__ import annotations

import logging
from typing import List

from shapely.errors import GEOSException
from shapely.ops import unary_union

from polymap.convert_tools import overlap_area_tolerance, region_to_edge_loops, valid_polygon
from polymap.geometry import bounds_intersect
from polymap.shapes import TemporaryObject
from polymap.spatial_grid import SpatialGrid, cell_size_for
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.clean_overlaps")


class CleanBuildingOverlapsStep(ConvertStep):
    """Subtract building footprints from every road and intersection that overlaps them."""

    name = "clean_overlaps"

    def _step(self) -> StepResult:
        store = self.store
        buildings = store.buildings
        passable = store.passable_shapes()
        if not buildings or not passable:
            return self.result("No buildings or passable shapes to process")

        tol = overlap_area_tolerance(store.threshold)
        grid: SpatialGrid[TemporaryObject] = SpatialGrid(
            store.bounds(), cell_size_for(store.bounds(), self.config.grid_divisions), lambda o: o.bounds()
        )
        grid.add_all(buildings)

        removed: List[TemporaryObject] = []
        added: List[TemporaryObject] = []
        for shape in passable:
            region = valid_polygon(shape)
            if region is None:
                continue
            hits = []
            for building in grid.nearby(shape):
                if not bounds_intersect(shape.bounds(), building.bounds()):
                    continue
                footprint = valid_polygon(building)
                if footprint is not None:
                    hits.append(footprint)
            if not hits:
                continue
            try:
                remaining = region.difference(unary_union(hits))
            except GEOSException as exc:
                LOG.warning("[OVERLAP] boolean difference failed for %r: %s", shape, exc)
                continue
            if region.area - remaining.area <= tol:
                continue
            pieces = [shape.rebuild(loop) for loop in region_to_edge_loops(store, remaining)]
            store.remove_object(shape)
            store.add_objects(pieces)
            removed.append(shape)
            added.extend(pieces)

        if removed:
            store.resynchronize()
        self.show("Clean building overlaps", removed, added, buildings)
        status = f"Cleaned {len(removed)} passable shapes that overlapped buildings"
        return self.result(status, changed=bool(removed), cleaned=len(removed), created=len(added))


__all__ = ["CleanBuildingOverlapsStep"]
