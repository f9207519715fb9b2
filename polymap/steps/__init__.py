from polymap.steps.base import ConvertStep, StepResult
from polymap.steps.clean_overlaps import CleanBuildingOverlapsStep
from polymap.steps.compute_neighbours import ComputeNeighboursStep
from polymap.steps.connect_buildings import ConnectBuildingsStep
from polymap.steps.intersection_area import GenerateIntersectionAreaStep
from polymap.steps.make_objects import MakeTemporaryObjectsStep
from polymap.steps.merge_intersections import MergeIntersectionsStep
from polymap.steps.merge_passable import MergePassableShapesStep
from polymap.steps.prune_orphans import PruneOrphanBuildingsStep
from polymap.steps.remove_pseudo_nodes import RemovePseudoNodesStep
from polymap.steps.scan import ScanStep
from polymap.steps.split_edges import SplitIntersectingEdgesStep
from polymap.steps.split_shapes import SplitShapesStep
from polymap.steps.traversability import EnsureTraversabilityStep

__all__ = [
    "CleanBuildingOverlapsStep",
    "ComputeNeighboursStep",
    "ConnectBuildingsStep",
    "ConvertStep",
    "EnsureTraversabilityStep",
    "GenerateIntersectionAreaStep",
    "MakeTemporaryObjectsStep",
    "MergeIntersectionsStep",
    "MergePassableShapesStep",
    "PruneOrphanBuildingsStep",
    "RemovePseudoNodesStep",
    "ScanStep",
    "SplitIntersectingEdgesStep",
    "SplitShapesStep",
    "StepResult",
]
