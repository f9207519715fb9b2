from __future__ import annotations

import logging

from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.intersection_area")


class GenerateIntersectionAreaStep(ConvertStep):
    """Compute road mouths and each intersection's area polygon."""

    name = "intersection_area"

    def _step(self) -> StepResult:
        width = self.config.road_width
        with_area = 0
        dead_ends = 0
        for info in self.store.osm_intersections:
            info.process(width)
            if info.area is not None:
                with_area += 1
            elif len(info.roads) == 1:
                dead_ends += 1
        incomplete = sum(1 for r in self.store.osm_roads if not r.has_area())
        if incomplete:
            LOG.warning("[INTERSECTION] %d roads are missing corner points", incomplete)
        status = f"Generated {with_area} intersection areas ({dead_ends} dead ends)"
        return self.result(status, changed=with_area > 0, areas=with_area, dead_ends=dead_ends, incomplete_roads=incomplete)


__all__ = ["GenerateIntersectionAreaStep"]
