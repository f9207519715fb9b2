from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from shapely.geometry import mapping

from polymap._io import ensure_dir, write_json
from polymap.shapes import TemporaryObject

LOG = logging.getLogger("debug_layers")


class DebugObserver:
    """Receives before/after snapshots of each step. Must not touch pipeline state."""

    def show(
        self,
        title: str,
        before: Iterable[TemporaryObject],
        after: Iterable[TemporaryObject],
        context: Iterable[TemporaryObject] = (),
    ) -> None:
        raise NotImplementedError


class NoopObserver(DebugObserver):
    def show(self, title, before, after, context=()) -> None:
        return None


def _slug(title: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", title).strip("_").lower() or "step"


def _feature(obj: TemporaryObject, category: str) -> Optional[Dict[str, Any]]:
    poly = obj.polygon()
    if poly is None:
        return None
    props = {"category": category, "kind": obj.kind, "id": obj.id, "edges": len(obj.edges)}
    building_id = getattr(obj, "building_id", None)
    if building_id is not None:
        props["building_id"] = building_id
    return {"type": "Feature", "geometry": mapping(poly), "properties": props}


def snapshot_features(
    before: Iterable[TemporaryObject],
    after: Iterable[TemporaryObject],
    context: Iterable[TemporaryObject] = (),
) -> List[Dict[str, Any]]:
    """Tag each polygon kept / added / removed / context by object identity."""
    before = list(before)
    after = list(after)
    before_ids = {o.id for o in before}
    after_ids = {o.id for o in after}
    tagged = []
    for obj in after:
        tagged.append((obj, "kept" if obj.id in before_ids else "added"))
    for obj in before:
        if obj.id not in after_ids:
            tagged.append((obj, "removed"))
    for obj in context:
        if obj.id not in before_ids and obj.id not in after_ids:
            tagged.append((obj, "context"))
    features = []
    for obj, category in tagged:
        feat = _feature(obj, category)
        if feat is not None:
            features.append(feat)
    return features


class GeoJsonDebugObserver(DebugObserver):
    """Writes one FeatureCollection per ``show`` call into ``out_dir``."""

    def __init__(self, out_dir: Path):
        self.out_dir = ensure_dir(Path(out_dir))
        self.count = 0

    def show(self, title, before, after, context=()) -> None:
        self.count += 1
        path = self.out_dir / f"{self.count:02d}_{_slug(title)}.geojson"
        features = snapshot_features(before, after, context)
        write_json(path, {"type": "FeatureCollection", "name": title, "features": features})
        LOG.debug("[DEBUG] wrote %d features to %s", len(features), path)


__all__ = ["DebugObserver", "GeoJsonDebugObserver", "NoopObserver", "snapshot_features"]
