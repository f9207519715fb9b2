"""Tests for polymap/utils/config_resolve.py."""

import pytest
import yaml

from polymap.errors import ConfigError
from polymap.utils.config_resolve import ConvertConfig, get_params_hash, resolve_config


class TestResolveConfig:
    def test_defaults_and_upper_case_keys(self):
        cfg = resolve_config({"nearby_threshold_m": 2})
        assert cfg["NEARBY_THRESHOLD_M"] == 2
        assert cfg["ROAD_WIDTH_M"] == 7.0
        assert cfg["ENTRANCE_WIDTH_M"] == cfg["ROAD_WIDTH_M"]

    def test_non_positive_width_is_rejected(self):
        with pytest.raises(ConfigError):
            resolve_config({"ROAD_WIDTH_M": -1})

    def test_run_dir_gets_resolved_config_and_hash(self, tmp_path):
        cfg = resolve_config({"MERGE_DISTANCE_M": 5}, run_dir=tmp_path)
        written = yaml.safe_load((tmp_path / "resolved_config.yaml").read_text(encoding="utf-8"))
        assert written["MERGE_DISTANCE_M"] == 5
        assert (tmp_path / "params_hash.txt").read_text(encoding="utf-8").strip() == get_params_hash(cfg)

    def test_params_hash_ignores_key_order(self):
        assert get_params_hash({"A": 1, "B": 2}) == get_params_hash({"B": 2, "A": 1})


class TestConvertConfig:
    def test_distances_scale_with_units_per_metre(self):
        cfg = ConvertConfig.from_dict({"SIZE_OF_1M": 2.0})
        assert cfg.nearby_threshold == pytest.approx(2.0)
        assert cfg.road_width == pytest.approx(14.0)
        assert cfg.entrance_width == pytest.approx(14.0)
        assert cfg.straight_angle_deg == pytest.approx(10.0)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "convert.yaml"
        path.write_text("ROAD_WIDTH_M: 5\nENTRANCE_WIDTH_M: 3\n", encoding="utf-8")
        cfg = ConvertConfig.from_yaml(path)
        assert cfg.road_width == pytest.approx(5.0)
        assert cfg.entrance_width == pytest.approx(3.0)

    def test_missing_yaml_gives_defaults(self, tmp_path):
        assert ConvertConfig.from_yaml(tmp_path / "absent.yaml") == ConvertConfig.from_dict({})


class TestSetupLogging:
    def test_log_file_receives_step_lines(self, tmp_path):
        import logging

        from polymap import setup_logging

        log_path = tmp_path / "logs" / "convert.log"
        setup_logging(log_path, level="info")
        logging.getLogger("steps").info("[scan] done")
        for handler in logging.getLogger().handlers:
            handler.flush()
        text = log_path.read_text(encoding="utf-8")
        assert "| INFO | [scan] done" in text
        for handler in list(logging.getLogger().handlers):
            logging.getLogger().removeHandler(handler)
            handler.close()
