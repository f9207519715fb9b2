"""Tests for polymap/osm_info.py - input model and road mouths."""

import pytest

from polymap.geometry import is_counter_clockwise, polygon_area
from polymap.osm_info import OSMIntersectionInfo, OSMNode, OSMRoadInfo, StreetMap, project_street_map


def _junction(centre, fars, width=7.0):
    info = OSMIntersectionInfo(centre)
    roads = []
    for i, far in enumerate(fars, start=1):
        road = OSMRoadInfo(i, centre, far)
        roads.append(road)
        info.roads.append(road)
    info.process(width)
    return info, roads


class TestStreetMap:
    def test_from_dict(self):
        sm = StreetMap.from_dict(
            {
                "nodes": [{"id": 1, "x": 0, "y": 0}, {"id": 2, "x": 10, "y": 0}],
                "roads": [{"id": 7, "nodes": [1, 2]}],
                "buildings": [],
            }
        )
        assert sm.nodes[2].coordinates == (10.0, 0.0)
        assert sm.roads[0].node_ids == [1, 2]

    def test_project_lon_lat_to_web_mercator(self):
        sm = StreetMap(nodes={1: OSMNode(1, 0.0, 0.0), 2: OSMNode(2, 1.0, 0.0)})
        projected = project_street_map(sm, 4326, 3857)
        assert projected.nodes[1].x == pytest.approx(0.0, abs=1e-6)
        assert projected.nodes[2].x == pytest.approx(111319.49, rel=1e-6)
        assert projected.nodes[2].y == pytest.approx(0.0, abs=1e-6)


class TestIntersectionArea:
    def test_straight_through_gives_rectangle(self):
        centre = OSMNode(1, 0.0, 0.0)
        info, roads = _junction(centre, [OSMNode(2, 100.0, 0.0), OSMNode(3, -100.0, 0.0)])
        assert info.area is not None
        assert len(info.area) == 4
        assert is_counter_clockwise(info.area)
        # Mouths at 1.5 * width along each road, width 7 across.
        assert polygon_area(info.area) == pytest.approx(2 * 10.5 * 7.0)

    def test_mouth_clamped_on_short_roads(self):
        centre = OSMNode(1, 0.0, 0.0)
        info, roads = _junction(centre, [OSMNode(2, 10.0, 0.0), OSMNode(3, 0.0, 10.0)])
        # 0.45 * 10 < 1.5 * 7
        assert roads[0].from_left == pytest.approx((4.5, 3.5))
        assert roads[0].from_right == pytest.approx((4.5, -3.5))

    def test_single_road_corners_on_centre(self):
        centre = OSMNode(1, 0.0, 0.0)
        info, roads = _junction(centre, [OSMNode(2, 50.0, 0.0)])
        assert info.area is None
        assert roads[0].from_left == pytest.approx((0.0, 3.5))
        assert roads[0].from_right == pytest.approx((0.0, -3.5))

    def test_no_roads_no_area(self):
        info = OSMIntersectionInfo(OSMNode(1, 0.0, 0.0))
        info.process(7.0)
        assert info.area is None

    def test_road_footprint_is_counter_clockwise(self):
        a = OSMNode(1, 0.0, 0.0)
        b = OSMNode(2, 100.0, 0.0)
        road = OSMRoadInfo(1, a, b)
        for node in (a, b):
            info = OSMIntersectionInfo(node)
            info.roads.append(road)
            info.process(7.0)
        assert road.has_area()
        footprint = road.footprint()
        assert is_counter_clockwise(footprint)
        assert polygon_area(footprint) == pytest.approx(700.0)
