from __future__ import annotations

from polymap.steps.base import ConvertStep, StepResult


class ComputeNeighboursStep(ConvertStep):
    """Record, for every boundary edge, the polygon on the other side (or None)."""

    name = "compute_neighbours"

    def _step(self) -> StepResult:
        store = self.store
        linked = 0
        for obj in store.all_objects():
            obj.clear_neighbours()
            for d in obj.edges:
                others = sorted((o for o in store.attached_objects(d.edge) if o is not obj), key=lambda o: o.id)
                neighbour = others[0] if others else None
                obj.set_neighbour(d, neighbour)
                if neighbour is not None:
                    linked += 1
        return self.result(f"Linked {linked} shared edges", changed=False, linked=linked)


__all__ = ["ComputeNeighboursStep"]
