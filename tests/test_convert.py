"""End-to-end tests for polymap/convert.py."""

import json

import pytest

from conftest import proper_crossings
from polymap import ConvertConfig, StreetMap, convert_street_map
from polymap.debug_layers import GeoJsonDebugObserver, NoopObserver
from polymap.steps.prune_orphans import reachable_buildings
from polymap.steps.traversability import is_traversable


def _street_map():
    """One straight road, a building beside it and a building far away."""
    return StreetMap.from_dict(
        {
            "nodes": [
                {"id": 1, "x": 0, "y": 0},
                {"id": 2, "x": 100, "y": 0},
                {"id": 10, "x": 40, "y": 10},
                {"id": 11, "x": 50, "y": 10},
                {"id": 12, "x": 50, "y": 20},
                {"id": 13, "x": 40, "y": 20},
                {"id": 20, "x": 400, "y": 400},
                {"id": 21, "x": 410, "y": 400},
                {"id": 22, "x": 410, "y": 410},
                {"id": 23, "x": 400, "y": 410},
            ],
            "roads": [{"id": 1, "nodes": [1, 2]}],
            "buildings": [
                {"id": 501, "nodes": [10, 11, 12, 13, 10]},
                {"id": 502, "nodes": [20, 21, 22, 23, 20]},
            ],
        }
    )


class TestConvertStreetMap:
    def test_pipeline_connects_or_prunes_every_building(self):
        result = convert_street_map(_street_map(), observer=NoopObserver())
        store = result.store

        assert [b.building_id for b in store.buildings] == [501]
        assert len(store.roads) == 1
        assert len(store.intersections) == 1
        assert set(store.buildings) == reachable_buildings(store)

        for obj in store.all_objects():
            assert obj.is_closed()
            assert is_traversable(store, obj)
        assert proper_crossings(store) == []

    def test_step_order_and_results(self):
        result = convert_street_map(_street_map())
        names = [r.name for r in result.step_results]
        assert names == [
            "scan",
            "merge_intersections",
            "remove_pseudo_nodes",
            "intersection_area",
            "make_objects",
            "split_edges",
            "split_shapes",
            "clean_overlaps",
            "connect_buildings",
            "traversability",
            "prune_orphans",
            "merge_passable",
            "compute_neighbours",
        ]
        assert result.step("prune_orphans").counts["removed"] == 1
        assert result.step("connect_buildings").counts["connected"] == 1

    def test_polygons_for_writer(self):
        rows = list(convert_street_map(_street_map()).polygons())
        kinds = sorted(kind for kind, _, _ in rows)
        assert kinds == ["building", "intersection", "road"]
        building = next(row for row in rows if row[0] == "building")
        assert building[1] == 501
        assert len(building[2]) >= 4

    def test_neighbours_are_linked(self):
        store = convert_street_map(_street_map()).store
        entrance = store.intersections[0]
        neighbours = {entrance.neighbour(d) for d in entrance.edges} - {None}
        assert neighbours == {store.roads[0], store.buildings[0]}

    def test_empty_map(self):
        result = convert_street_map(StreetMap())
        assert result.store.all_objects() == []
        assert all(r.converged for r in result.step_results)


class TestDebugObserver:
    def test_geojson_snapshots_written(self, tmp_path):
        convert_street_map(_street_map(), observer=GeoJsonDebugObserver(tmp_path))
        files = sorted(tmp_path.glob("*.geojson"))
        assert files
        payload = json.loads(files[0].read_text(encoding="utf-8"))
        assert payload["type"] == "FeatureCollection"
        categories = set()
        for path in files:
            for feature in json.loads(path.read_text(encoding="utf-8"))["features"]:
                categories.add(feature["properties"]["category"])
        assert "added" in categories

    def test_debug_dir_from_config(self, tmp_path):
        config = ConvertConfig.from_dict({"DEBUG_DIR": str(tmp_path / "debug")})
        convert_street_map(_street_map(), config=config)
        assert list((tmp_path / "debug").glob("*.geojson"))


@pytest.mark.parametrize("gap", [3.0, 15.0])
def test_nearby_building_always_connected(gap):
    sm = _street_map()
    for node_id, dy in ((10, 0), (11, 0), (12, 10), (13, 10)):
        node = sm.nodes[node_id]
        sm.nodes[node_id] = type(node)(node_id, node.x, 3.5 + gap + dy)
    store = convert_street_map(sm).store
    assert [b.building_id for b in store.buildings] == [501]
