"""Tests for polymap/temp_map.py - canonical nodes/edges and topology edits."""

import pytest

from conftest import add_building, add_polygon, square
from polymap.errors import TopologyError
from polymap.shapes import TemporaryRoad


class TestCanonicalIdentity:
    def test_nearby_points_share_a_node(self, store):
        a = store.node_at((0.0, 0.0))
        assert store.node_at((0.5, 0.5)) is a
        assert store.node_at((2.0, 0.0)) is not a

    def test_snapping_across_bucket_boundary(self, store):
        a = store.node_at((0.99, 0.0))
        assert store.node_at((1.01, 0.0)) is a

    def test_edge_between_is_direction_free(self, store):
        a = store.node_at((0, 0))
        b = store.node_at((10, 0))
        assert store.edge_between(a, b) is store.edge_between(b, a)
        assert store.attached_edges(a) == {store.edge_between(a, b)}

    def test_edge_to_self_is_rejected(self, store):
        a = store.node_at((0, 0))
        with pytest.raises(TopologyError):
            store.edge_between(a, a)

    def test_bounds_follow_new_nodes(self, store):
        store.node_at((0, 0))
        assert store.bounds() == (0, 0, 0, 0)
        store.node_at((10, 5))
        assert store.bounds() == (0, 0, 10, 5)


class TestSplitAndReplace:
    def test_split_edge_rewrites_every_polygon(self, store):
        building = add_building(store, square(0, 0, 10))
        road = add_polygon(store, TemporaryRoad, square(0, -10, 10))
        bottom = store.edge_between(store.node_at((0, 0)), store.node_at((10, 0)))
        assert store.attached_objects(bottom) == {building, road}

        mid = store.node_at((5, 0))
        pieces = store.split_edge(bottom, [mid])

        assert len(pieces) == 2
        assert bottom.id not in store.edges
        for obj in (building, road):
            assert obj.is_closed()
            assert len(obj.edges) == 5
            assert mid in obj.nodes()
        for piece in pieces:
            assert store.attached_objects(piece) == {building, road}

    def test_split_at_endpoint_is_a_no_op(self, store):
        add_building(store, square(0, 0, 10))
        a = store.node_at((0, 0))
        edge = store.edge_between(a, store.node_at((10, 0)))
        assert store.split_edge(edge, [a]) == [edge]

    def test_failed_replace_leaves_polygons_untouched(self, store):
        building = add_building(store, square(0, 0, 10))
        before = building.edges
        edge = before[0].edge
        stray = store.edge_between(store.node_at((50, 50)), store.node_at((60, 50)))
        with pytest.raises(TopologyError):
            store.replace_edge(edge, [stray])
        assert building.edges == before
        assert edge.id in store.edges


class TestResynchronize:
    def test_indices_rebuilt_from_polygons(self, store):
        building = add_building(store, square(0, 0, 10))
        orphan = store.edge_between(store.node_at((50, 50)), store.node_at((60, 50)))
        store.resynchronize()
        assert orphan.id not in store.edges
        for d in building.edges:
            assert d.edge.id in store.edges
            assert building in store.attached_objects(d.edge)

    def test_removed_polygon_drops_out(self, store):
        building = add_building(store, square(0, 0, 10))
        store.remove_object(building)
        store.resynchronize()
        assert store.all_edges() == []
        assert not store.contains(building)
