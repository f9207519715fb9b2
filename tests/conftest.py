"""
Shared pytest fixtures for polymap tests. Coordinates are metres.
"""

import pytest

from polymap.convert_tools import ring_to_edges
from polymap.geometry import segments_cross
from polymap.shapes import TemporaryBuilding
from polymap.temp_map import TemporaryMap
from polymap.utils.config_resolve import ConvertConfig


@pytest.fixture
def config():
    return ConvertConfig()


@pytest.fixture
def store(config):
    return TemporaryMap(config)


def square(x0, y0, size):
    return [(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)]


def add_polygon(store, cls, coords, **kwargs):
    """Snap ``coords`` into the store and register a new ``cls`` polygon."""
    edges = ring_to_edges(store, coords)
    assert edges is not None
    obj = cls(edges, **kwargs)
    store.add_object(obj)
    return obj


def add_building(store, coords, building_id=1):
    return add_polygon(store, TemporaryBuilding, coords, building_id=building_id)


def proper_crossings(store):
    edges = store.all_edges()
    found = []
    for i, e in enumerate(edges):
        for f in edges[i + 1 :]:
            if e.start in (f.start, f.end) or e.end in (f.start, f.end):
                continue
            if segments_cross(e.start.coordinates, e.end.coordinates, f.start.coordinates, f.end.coordinates):
                found.append((e, f))
    return found
