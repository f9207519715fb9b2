from __future__ import annotations

import logging
from typing import List

from polymap.convert_tools import orient_counter_clockwise, trace_loops
from polymap.shapes import TemporaryObject
from polymap.steps.base import ConvertStep, StepResult

LOG = logging.getLogger("steps.split_shapes")


def is_simple_walk(obj: TemporaryObject) -> bool:
    """Closed walk that visits every node once."""
    if not obj.is_closed():
        return False
    nodes = obj.nodes()
    return len(set(nodes)) == len(nodes)


def split_shape(obj: TemporaryObject) -> List[TemporaryObject]:
    """Face-trace ``obj``'s own directed edges into simple loops of the same variant."""
    return [obj.rebuild(orient_counter_clockwise(loop)) for loop in trace_loops(obj.edges)]


class SplitShapesStep(ConvertStep):
    name = "split_shapes"

    def _step(self) -> StepResult:
        store = self.store
        removed: List[TemporaryObject] = []
        added: List[TemporaryObject] = []
        for obj in store.all_objects():
            if is_simple_walk(obj):
                continue
            pieces = split_shape(obj)
            LOG.debug("[SHAPES] %r split into %d loops", obj, len(pieces))
            store.remove_object(obj)
            store.add_objects(pieces)
            removed.append(obj)
            added.extend(pieces)
        if removed:
            store.resynchronize()
        self.show("Split shapes", removed, added)
        status = f"Split {len(removed)} shapes into {len(added)} new shapes"
        return self.result(status, changed=bool(removed), split=len(removed), created=len(added))


__all__ = ["SplitShapesStep", "is_simple_walk", "split_shape"]
