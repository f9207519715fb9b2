"""Tests for the OSM-level passes: scan, merge intersections, pseudo nodes, intersection areas."""

import itertools

import pytest

from polymap.geometry import distance
from polymap.osm_info import StreetMap
from polymap.steps import (
    GenerateIntersectionAreaStep,
    MakeTemporaryObjectsStep,
    MergeIntersectionsStep,
    RemovePseudoNodesStep,
    ScanStep,
)
from polymap.steps.remove_pseudo_nodes import is_pseudo_node
from polymap.temp_map import TemporaryMap
from polymap.utils.config_resolve import ConvertConfig


def _street_map(points, roads, buildings=()):
    return StreetMap.from_dict(
        {
            "nodes": [{"id": i, "x": x, "y": y} for i, (x, y) in points.items()],
            "roads": [{"id": k, "nodes": ids} for k, ids in enumerate(roads, start=1)],
            "buildings": [{"id": k, "nodes": ids} for k, ids in enumerate(buildings, start=100)],
        }
    )


def _scanned(points, roads, buildings=(), **cfg):
    config = ConvertConfig.from_dict(cfg)
    store = TemporaryMap(config)
    ScanStep(store, _street_map(points, roads, buildings)).run()
    return store


class TestScan:
    def test_one_road_per_node_pair(self):
        store = _scanned({1: (0, 0), 2: (50, 0), 3: (100, 0)}, [[1, 2, 3]])
        assert len(store.osm_intersections) == 3
        assert len(store.osm_roads) == 2
        middle = next(i for i in store.osm_intersections if i.node.id == 2)
        assert len(middle.roads) == 2

    def test_degenerate_segments_are_skipped(self):
        store = _scanned({1: (0, 0), 2: (50, 0), 3: (50, 0)}, [[1, 1, 2, 3]])
        assert len(store.osm_roads) == 1

    def test_buildings_drop_closing_node_and_short_rings(self):
        points = {1: (0, 0), 2: (10, 0), 3: (10, 10), 4: (0, 10), 5: (20, 20)}
        store = _scanned(points, [], buildings=[[1, 2, 3, 4, 1], [5, 5, 1]])
        assert len(store.osm_buildings) == 1
        assert len(store.osm_buildings[0].coordinates) == 4


class TestMergeIntersections:
    def test_two_close_intersections_merge_at_midpoint(self):
        store = _scanned({1: (0, 0), 2: (5, 0)}, [[1, 2]], MERGE_DISTANCE_M=10)
        result = MergeIntersectionsStep(store).run()
        assert result.changed
        assert len(store.osm_intersections) == 1
        assert store.osm_intersections[0].coordinates == pytest.approx((2.5, 0.0))
        assert store.osm_roads == []

    def test_chains_merge_transitively(self):
        points = {1: (0, 0), 2: (8, 0), 3: (16, 0), 4: (100, 0)}
        store = _scanned(points, [[1, 2, 3, 4]], MERGE_DISTANCE_M=10)
        MergeIntersectionsStep(store).run()
        coords = sorted(i.coordinates for i in store.osm_intersections)
        assert coords[0] == pytest.approx((8.0, 0.0))
        assert len(store.osm_roads) == 1
        merged = store.road_start_intersection(store.osm_roads[0])
        assert len(merged.roads) == 1

    def test_no_intersections_left_within_merge_distance(self):
        points = {i: (i * 6.0, (i % 2) * 6.0) for i in range(1, 8)}
        points[20] = (200, 0)
        store = _scanned(points, [list(range(1, 8)) + [20]], MERGE_DISTANCE_M=10)
        result = MergeIntersectionsStep(store).run()
        assert result.converged
        for a, b in itertools.combinations(store.osm_intersections, 2):
            assert distance(a.coordinates, b.coordinates) > 10

    def test_nothing_to_merge_is_a_no_op(self):
        store = _scanned({1: (0, 0), 2: (50, 0)}, [[1, 2]])
        before = list(store.osm_intersections)
        result = MergeIntersectionsStep(store).run()
        assert not result.changed
        assert result.passes == 1
        assert store.osm_intersections == before


class TestRemovePseudoNodes:
    def test_collinear_middle_node_removed(self):
        store = _scanned({1: (0, 0), 2: (5, 0), 3: (10, 0)}, [[1, 2], [2, 3]])
        result = RemovePseudoNodesStep(store).run()
        assert result.converged
        assert {i.node.id for i in store.osm_intersections} == {1, 3}
        assert len(store.osm_roads) == 1
        road = store.osm_roads[0]
        assert {road.from_node.id, road.to_node.id} == {1, 3}
        ends = {store.road_start_intersection(road).node.id, store.road_end_intersection(road).node.id}
        assert ends == {1, 3}

    def test_bent_node_is_kept(self):
        store = _scanned({1: (0, 0), 2: (50, 0), 3: (100, 30)}, [[1, 2, 3]])
        RemovePseudoNodesStep(store).run()
        assert len(store.osm_intersections) == 3

    def test_long_chain_collapses_and_adjacency_is_fresh(self):
        points = {i: (i * 20.0, 0.5 * (i % 2)) for i in range(1, 9)}
        store = _scanned(points, [list(range(1, 9))])
        RemovePseudoNodesStep(store).run()
        assert len(store.osm_roads) == 1
        for info in store.osm_intersections:
            assert not is_pseudo_node(info, 10.0)
            assert len(info.roads) == 1

    def test_one_store_rebuild_per_pass(self, monkeypatch):
        points = {i: (i * 20.0, 0.0) for i in range(1, 9)}
        store = _scanned(points, [list(range(1, 9))])
        calls = []
        rebuild = store.set_osm_info

        def counting(*args, **kwargs):
            calls.append(1)
            rebuild(*args, **kwargs)

        monkeypatch.setattr(store, "set_osm_info", counting)

        result = RemovePseudoNodesStep(store).run()

        assert result.counts["removed"] == 6
        assert len(calls) == result.passes - 1
        assert len(store.osm_roads) == 1

    def test_cap_reports_non_convergence(self):
        points = {i: (i * 20.0, 0.0) for i in range(1, 9)}
        store = _scanned(points, [list(range(1, 9))], PSEUDO_NODE_MAX_PASSES=1)
        result = RemovePseudoNodesStep(store).run()
        assert result.passes == 1
        assert not result.converged


class TestIntersectionAreasAndObjects:
    def test_cross_junction_builds_polygons(self):
        points = {1: (0, 0), 2: (100, 0), 3: (-100, 0), 4: (0, 100), 5: (0, -100)}
        store = _scanned(points, [[2, 1, 3], [4, 1, 5]])
        GenerateIntersectionAreaStep(store).run()
        centre = next(i for i in store.osm_intersections if i.node.id == 1)
        assert centre.area is not None
        assert len(centre.area) == 8
        assert all(r.has_area() for r in store.osm_roads)

        MakeTemporaryObjectsStep(store).run()
        assert len(store.roads) == 4
        assert len(store.intersections) == 1
        hub = store.intersections[0]
        for road in store.roads:
            shared = [d for d in road.edges if hub in store.attached_objects(d.edge)]
            assert len(shared) == 1
