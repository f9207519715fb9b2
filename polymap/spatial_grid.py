from __future__ import annotations

import math
from typing import Callable, Dict, Generic, Hashable, Iterable, Optional, Set, Tuple, TypeVar

from polymap.geometry import BBox

T = TypeVar("T", bound=Hashable)

# Floor for the cell size on tiny maps.
MIN_CELL_SIZE = 1e-9


def cell_size_for(bounds: Optional[BBox], divisions: int = 100) -> float:
    """Average map dimension / ``divisions``, never below ``MIN_CELL_SIZE``."""
    if bounds is None:
        return 1.0
    minx, miny, maxx, maxy = bounds
    average = ((maxx - minx) + (maxy - miny)) / 2.0
    return max(average / max(1, int(divisions)), MIN_CELL_SIZE)


class SpatialGrid(Generic[T]):
    """Uniform bucket grid over item bounding boxes.

    ``nearby`` is a broad-phase filter: it returns everything registered in the
    query's cell range grown by one cell in each direction.
    """

    def __init__(self, bounds: Optional[BBox], cell_size: float, bounds_of: Callable[[T], Optional[BBox]]):
        if bounds is None or cell_size <= 0 or not math.isfinite(cell_size):
            self.minx, self.miny, self.cell = 0.0, 0.0, 1.0
        else:
            self.minx, self.miny, self.cell = float(bounds[0]), float(bounds[1]), float(cell_size)
        self.bounds_of = bounds_of
        self.cells: Dict[Tuple[int, int], Set[T]] = {}

    def _cell(self, x: float, y: float) -> Tuple[int, int]:
        return int(math.floor((x - self.minx) / self.cell)), int(math.floor((y - self.miny) / self.cell))

    def _range(self, bbox: BBox, pad: int) -> Iterable[Tuple[int, int]]:
        cx0, cy0 = self._cell(bbox[0], bbox[1])
        cx1, cy1 = self._cell(bbox[2], bbox[3])
        for cx in range(cx0 - pad, cx1 + pad + 1):
            for cy in range(cy0 - pad, cy1 + pad + 1):
                yield cx, cy

    def add(self, item: T) -> None:
        # Zero-width or zero-height boxes (axis-aligned segments) are indexed too.
        bbox = self.bounds_of(item)
        if bbox is None:
            return
        for key in self._range(bbox, 0):
            self.cells.setdefault(key, set()).add(item)

    def add_all(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def nearby(self, item: T) -> Set[T]:
        bbox = self.bounds_of(item)
        found: Set[T] = set()
        if bbox is None:
            return found
        for key in self._range(bbox, 1):
            bucket = self.cells.get(key)
            if bucket:
                found.update(bucket)
        return found

    def __len__(self) -> int:
        return len(self.cells)


__all__ = ["MIN_CELL_SIZE", "SpatialGrid", "cell_size_for"]
