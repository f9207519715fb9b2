from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from polymap.debug_layers import DebugObserver, GeoJsonDebugObserver, NoopObserver
from polymap.geometry import Point
from polymap.osm_info import StreetMap, project_street_map
from polymap.steps import (
    CleanBuildingOverlapsStep,
    ComputeNeighboursStep,
    ConnectBuildingsStep,
    ConvertStep,
    EnsureTraversabilityStep,
    GenerateIntersectionAreaStep,
    MakeTemporaryObjectsStep,
    MergeIntersectionsStep,
    MergePassableShapesStep,
    PruneOrphanBuildingsStep,
    RemovePseudoNodesStep,
    ScanStep,
    SplitIntersectingEdgesStep,
    SplitShapesStep,
    StepResult,
)
from polymap.temp_map import TemporaryMap
from polymap.utils.config_resolve import ConvertConfig

LOG = logging.getLogger("convert")


@dataclass
class ConversionResult:
    store: TemporaryMap
    step_results: List[StepResult] = field(default_factory=list)

    def polygons(self) -> Iterator[Tuple[str, int, List[Point]]]:
        """(kind, id, open coordinate ring) rows for a map writer."""
        for obj in self.store.all_objects():
            ident = getattr(obj, "building_id", obj.id)
            yield obj.kind, ident, obj.coordinates()

    def step(self, name: str) -> Optional[StepResult]:
        for result in self.step_results:
            if result.name == name:
                return result
        return None


def build_steps(
    store: TemporaryMap,
    street_map: StreetMap,
    config: Optional[ConvertConfig] = None,
    observer: Optional[DebugObserver] = None,
) -> List[ConvertStep]:
    config = config or store.config
    args = (store, config, observer)
    return [
        ScanStep(store, street_map, config, observer),
        MergeIntersectionsStep(*args),
        RemovePseudoNodesStep(*args),
        GenerateIntersectionAreaStep(*args),
        MakeTemporaryObjectsStep(*args),
        SplitIntersectingEdgesStep(*args),
        SplitShapesStep(*args),
        CleanBuildingOverlapsStep(*args),
        ConnectBuildingsStep(*args),
        EnsureTraversabilityStep(*args),
        PruneOrphanBuildingsStep(*args),
        MergePassableShapesStep(*args),
        ComputeNeighboursStep(*args),
    ]


def convert_street_map(
    street_map: StreetMap,
    config: Optional[ConvertConfig] = None,
    observer: Optional[DebugObserver] = None,
) -> ConversionResult:
    config = config or ConvertConfig()
    if config.source_epsg is not None and config.target_epsg is not None:
        street_map = project_street_map(street_map, config.source_epsg, config.target_epsg)
    if observer is None:
        observer = GeoJsonDebugObserver(config.debug_dir) if config.debug_dir else NoopObserver()

    store = TemporaryMap(config)
    result = ConversionResult(store)
    for step in build_steps(store, street_map, config, observer):
        result.step_results.append(step.run())
    LOG.info(
        "[CONVERT] %d roads, %d intersections, %d buildings",
        len(store.roads),
        len(store.intersections),
        len(store.buildings),
    )
    return result


__all__ = ["ConversionResult", "build_steps", "convert_street_map"]
