from __future__ import annotations

import logging
from collections import deque
from typing import Set

from polymap.shapes import TemporaryBuilding
from polymap.steps.base import ConvertStep, StepResult
from polymap.temp_map import TemporaryMap

LOG = logging.getLogger("steps.prune_orphans")


def reachable_buildings(store: TemporaryMap) -> Set[TemporaryBuilding]:
    """Buildings that touch the passable network through shared edges, directly or via other buildings."""
    reached: Set[TemporaryBuilding] = set()
    queue: deque = deque()
    for building in store.buildings:
        for d in building.edges:
            if any(o.passable for o in store.attached_objects(d.edge)):
                reached.add(building)
                queue.append(building)
                break
    while queue:
        current = queue.popleft()
        for d in current.edges:
            for other in store.attached_objects(d.edge):
                if isinstance(other, TemporaryBuilding) and other not in reached:
                    reached.add(other)
                    queue.append(other)
    return reached


class PruneOrphanBuildingsStep(ConvertStep):
    name = "prune_orphans"

    def _step(self) -> StepResult:
        store = self.store
        reached = reachable_buildings(store)
        orphans = [b for b in store.buildings if b not in reached]
        for building in orphans:
            LOG.debug("[PRUNE] building %s has no path to a road", building.building_id)
        store.remove_objects(orphans)
        if orphans:
            store.resynchronize()
        self.show("Prune orphan buildings", orphans, [], store.passable_shapes())
        return self.result(f"Removed {len(orphans)} orphan buildings", changed=bool(orphans), removed=len(orphans))


__all__ = ["PruneOrphanBuildingsStep", "reachable_buildings"]
