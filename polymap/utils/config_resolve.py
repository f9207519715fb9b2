from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

from polymap.errors import ConfigError


REQUIRED_KEYS = [
    "SIZE_OF_1M",
    "NEARBY_THRESHOLD_M",
    "ROAD_WIDTH_M",
    "MERGE_DISTANCE_M",
    "STRAIGHT_ANGLE_DEG",
    "PSEUDO_NODE_MAX_PASSES",
    "MERGE_MAX_PASSES",
    "SPLIT_EDGES_MAX_PASSES",
    "ENTRANCE_WIDTH_M",
    "MAX_CONNECT_DISTANCE_M",
    "MAX_ANGLE_DEVIATION_DEG",
    "TRAVERSABILITY_MAX_SPLITS",
    "GRID_DIVISIONS",
]

DEFAULTS: Dict[str, Any] = {
    "SIZE_OF_1M": 1.0,
    "NEARBY_THRESHOLD_M": 1.0,
    "ROAD_WIDTH_M": 7.0,
    "MERGE_DISTANCE_M": 10.0,
    "STRAIGHT_ANGLE_DEG": 10.0,
    "PSEUDO_NODE_MAX_PASSES": 20,
    "MERGE_MAX_PASSES": 20,
    "SPLIT_EDGES_MAX_PASSES": 1000,
    "ENTRANCE_WIDTH_M": None,
    "MAX_CONNECT_DISTANCE_M": 20.0,
    "MAX_ANGLE_DEVIATION_DEG": 45.0,
    "TRAVERSABILITY_MAX_SPLITS": 5,
    "GRID_DIVISIONS": 100,
    "SOURCE_EPSG": None,
    "TARGET_EPSG": None,
    "DEBUG_DIR": None,
}


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return dict(data)


def _normalize(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _normalize(obj[k]) for k in sorted(obj.keys())}
    if isinstance(obj, list):
        return [_normalize(v) for v in obj]
    return obj


def get_params_hash(cfg: Dict[str, Any]) -> str:
    payload = _normalize(dict(cfg))
    raw = json.dumps(payload, sort_keys=True, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha1(raw).hexdigest()


def _write_resolved(run_dir: Path, cfg: Dict[str, Any]) -> None:
    run_dir.mkdir(parents=True, exist_ok=True)
    out_path = run_dir / "resolved_config.yaml"
    with out_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, sort_keys=False, allow_unicode=False)
    params_hash = get_params_hash(cfg)
    (run_dir / "params_hash.txt").write_text(params_hash + "\n", encoding="utf-8")


def _assert_required(cfg: Dict[str, Any], required: Iterable[str]) -> None:
    missing = [k for k in required if k not in cfg]
    if missing:
        raise ConfigError(f"Missing required keys: {missing}")


def _assert_positive(cfg: Dict[str, Any]) -> None:
    for key in ("SIZE_OF_1M", "NEARBY_THRESHOLD_M", "ROAD_WIDTH_M", "ENTRANCE_WIDTH_M", "GRID_DIVISIONS"):
        try:
            value = float(cfg[key])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key} must be numeric, got {cfg[key]!r}") from exc
        if value <= 0:
            raise ConfigError(f"{key} must be positive, got {value}")


def resolve_config(base_cfg: Optional[Dict[str, Any]] = None, run_dir: Optional[Path] = None) -> Dict[str, Any]:
    cfg = {str(k).upper(): v for k, v in dict(base_cfg or {}).items()}
    for k, v in DEFAULTS.items():
        if k not in cfg:
            cfg[k] = v

    # Entrances default to one road width.
    if cfg.get("ENTRANCE_WIDTH_M") is None:
        cfg["ENTRANCE_WIDTH_M"] = cfg["ROAD_WIDTH_M"]

    _assert_required(cfg, REQUIRED_KEYS)
    _assert_positive(cfg)
    if run_dir is not None:
        _write_resolved(run_dir, cfg)
    return cfg


@dataclass(frozen=True)
class ConvertConfig:
    """Resolved conversion parameters; distances are in map units."""

    size_of_1m: float = 1.0
    nearby_threshold: float = 1.0
    road_width: float = 7.0
    merge_distance: float = 10.0
    straight_angle_deg: float = 10.0
    pseudo_node_max_passes: int = 20
    merge_max_passes: int = 20
    split_edges_max_passes: int = 1000
    entrance_width: float = 7.0
    max_connect_distance: float = 20.0
    max_angle_deviation_deg: float = 45.0
    traversability_max_splits: int = 5
    grid_divisions: int = 100
    source_epsg: Optional[int] = None
    target_epsg: Optional[int] = None
    debug_dir: Optional[str] = None

    @staticmethod
    def from_dict(cfg: Optional[Dict[str, Any]] = None) -> "ConvertConfig":
        resolved = resolve_config(cfg)
        scale = float(resolved["SIZE_OF_1M"])
        return ConvertConfig(
            size_of_1m=scale,
            nearby_threshold=float(resolved["NEARBY_THRESHOLD_M"]) * scale,
            road_width=float(resolved["ROAD_WIDTH_M"]) * scale,
            merge_distance=float(resolved["MERGE_DISTANCE_M"]) * scale,
            straight_angle_deg=float(resolved["STRAIGHT_ANGLE_DEG"]),
            pseudo_node_max_passes=int(resolved["PSEUDO_NODE_MAX_PASSES"]),
            merge_max_passes=int(resolved["MERGE_MAX_PASSES"]),
            split_edges_max_passes=int(resolved["SPLIT_EDGES_MAX_PASSES"]),
            entrance_width=float(resolved["ENTRANCE_WIDTH_M"]) * scale,
            max_connect_distance=float(resolved["MAX_CONNECT_DISTANCE_M"]) * scale,
            max_angle_deviation_deg=float(resolved["MAX_ANGLE_DEVIATION_DEG"]),
            traversability_max_splits=int(resolved["TRAVERSABILITY_MAX_SPLITS"]),
            grid_divisions=int(resolved["GRID_DIVISIONS"]),
            source_epsg=resolved.get("SOURCE_EPSG"),
            target_epsg=resolved.get("TARGET_EPSG"),
            debug_dir=resolved.get("DEBUG_DIR"),
        )

    @staticmethod
    def from_yaml(path: Path) -> "ConvertConfig":
        return ConvertConfig.from_dict(load_yaml(path))


__all__ = [
    "ConvertConfig",
    "DEFAULTS",
    "REQUIRED_KEYS",
    "get_params_hash",
    "load_yaml",
    "resolve_config",
]
