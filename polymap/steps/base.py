from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from polymap.debug_layers import DebugObserver, NoopObserver
from polymap.shapes import TemporaryObject
from polymap.temp_map import TemporaryMap
from polymap.utils.config_resolve import ConvertConfig

LOG = logging.getLogger("steps")


@dataclass
class StepResult:
    name: str
    changed: bool = False
    passes: int = 1
    converged: bool = True
    status: str = ""
    counts: Dict[str, int] = field(default_factory=dict)


class ConvertStep:
    """One pass over the shared store.

    Subclasses implement ``_step`` and return a ``StepResult``; ``run`` adds
    the status log line. Steps hold no state between runs.
    """

    name = "step"

    def __init__(self, store: TemporaryMap, config: Optional[ConvertConfig] = None, observer: Optional[DebugObserver] = None):
        self.store = store
        self.config = config or store.config
        self.observer = observer or NoopObserver()

    def _step(self) -> StepResult:
        raise NotImplementedError

    def run(self) -> StepResult:
        result = self._step()
        if not result.converged:
            LOG.warning("[%s] stopped after %d passes without converging", self.name, result.passes)
        LOG.info("[%s] %s", self.name, result.status or ("changed" if result.changed else "no change"))
        return result

    def result(self, status: str, changed: bool = False, **counts: int) -> StepResult:
        return StepResult(name=self.name, changed=changed, status=status, counts=dict(counts))

    def show(
        self,
        title: str,
        before: Iterable[TemporaryObject],
        after: Iterable[TemporaryObject],
        context: Iterable[TemporaryObject] = (),
    ) -> None:
        self.observer.show(title, list(before), list(after), list(context))


__all__ = ["ConvertStep", "StepResult"]
