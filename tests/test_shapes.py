"""Tests for polymap/shapes.py - the polygon model."""

import pytest

from conftest import add_building, add_polygon, square
from polymap.shapes import TemporaryBuilding, TemporaryRoad


class TestDerivedGeometry:
    def test_rings_and_area(self, store):
        building = add_building(store, square(0, 0, 10))
        assert len(building.coordinates()) == 4
        vertices = building.vertices()
        assert vertices[0] == vertices[-1]
        assert building.area() == pytest.approx(100.0)
        assert building.centroid() == pytest.approx((5.0, 5.0))
        assert building.bounds() == (0, 0, 10, 10)
        assert building.polygon().area == pytest.approx(100.0)

    def test_cache_dropped_after_edit(self, store):
        building = add_building(store, square(0, 0, 10))
        assert building.bounds() == (0, 0, 10, 10)
        edge = store.edge_between(store.node_at((10, 0)), store.node_at((10, 10)))
        corner = store.node_at((20, 5))
        store.replace_edge(
            edge,
            [store.edge_between(store.node_at((10, 0)), corner), store.edge_between(corner, store.node_at((10, 10)))],
        )
        assert building.bounds() == (0, 0, 20, 10)
        assert building.area() == pytest.approx(150.0)


class TestIdentity:
    def test_rebuild_keeps_variant_and_building_id(self, store):
        building = add_building(store, square(0, 0, 10), building_id=42)
        copy = building.rebuild(building.edges)
        assert isinstance(copy, TemporaryBuilding)
        assert copy.building_id == 42
        assert copy.id != building.id


class TestNeighbours:
    def test_set_neighbour_by_edge(self, store):
        building = add_building(store, square(0, 0, 10))
        road = add_polygon(store, TemporaryRoad, square(0, -10, 10))
        shared = store.edge_between(store.node_at((0, 0)), store.node_at((10, 0)))
        building.set_neighbour(shared, road)
        assert building.neighbour(building.find_directed_edge(shared)) is road
