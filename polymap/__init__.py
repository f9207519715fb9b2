from polymap._io import setup_logging
from polymap.convert import ConversionResult, build_steps, convert_street_map
from polymap.osm_info import StreetMap
from polymap.temp_map import TemporaryMap
from polymap.utils.config_resolve import ConvertConfig

__all__ = [
    "ConversionResult",
    "ConvertConfig",
    "StreetMap",
    "TemporaryMap",
    "build_steps",
    "convert_street_map",
    "setup_logging",
]
