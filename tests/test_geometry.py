"""Tests for polymap/geometry.py - 2D helpers used by every pass."""

import math

import pytest

from polymap.geometry import (
    angle_between_vectors,
    concave_vertices,
    is_counter_clockwise,
    line_intersection_params,
    polygon_area,
    polygon_centroid,
    segment_contains,
    segments_cross,
    signed_turn,
)


class TestIntersections:
    def test_parallel_lines_have_no_intersection(self):
        assert line_intersection_params((0, 0), (10, 0), (0, 1), (10, 1)) is None

    def test_line_intersection_params(self):
        assert line_intersection_params((0, 0), (10, 10), (0, 10), (10, 0)) == pytest.approx((0.5, 0.5))
        # Beyond both segments: parameters fall outside [0, 1].
        t, u = line_intersection_params((0, 0), (1, 0), (5, 1), (5, 2))
        assert t == pytest.approx(5.0)
        assert u == pytest.approx(-1.0)

    def test_proper_crossing(self):
        assert segments_cross((0, 0), (10, 10), (0, 10), (10, 0))

    def test_touching_at_endpoint_is_not_a_crossing(self):
        assert not segments_cross((0, 0), (10, 0), (10, 0), (10, 10))
        assert not segments_cross((0, 0), (10, 0), (5, 0), (5, 10))

    def test_segment_contains_with_tolerance(self):
        assert segment_contains((0, 0), (10, 0), (5, 0.5), 1.0)
        assert not segment_contains((0, 0), (10, 0), (5, 2.0), 1.0)
        assert not segment_contains((0, 0), (10, 0), (12, 0), 1.0)


class TestAngles:
    def test_angle_between_vectors(self):
        assert angle_between_vectors((1, 0), (0, 1)) == pytest.approx(90.0)
        assert angle_between_vectors((1, 0), (-1, 0)) == pytest.approx(180.0)

    def test_signed_turn_left_is_positive(self):
        assert signed_turn((1, 0), (0, 1)) == pytest.approx(math.pi / 2)
        assert signed_turn((1, 0), (0, -1)) == pytest.approx(-math.pi / 2)


class TestPolygons:
    U_SHAPE = [(0, 0), (30, 0), (30, 30), (20, 30), (20, 10), (10, 10), (10, 30), (0, 30)]

    def test_area_and_orientation(self):
        ring = [(0, 0), (10, 0), (10, 10), (0, 10)]
        assert polygon_area(ring) == pytest.approx(100.0)
        assert is_counter_clockwise(ring)
        assert not is_counter_clockwise(list(reversed(ring)))

    def test_centroid_of_square(self):
        assert polygon_centroid([(0, 0), (10, 0), (10, 10), (0, 10)]) == pytest.approx((5.0, 5.0))

    def test_centroid_of_degenerate_ring_is_vertex_mean(self):
        assert polygon_centroid([(0, 0), (5, 0), (10, 0)]) == pytest.approx((5.0, 0.0))

    def test_concave_vertices_of_u_shape(self):
        assert concave_vertices(self.U_SHAPE) == [4, 5]
        assert concave_vertices(list(reversed(self.U_SHAPE))) == [2, 3]

    def test_collinear_vertex_is_not_concave(self):
        ring = [(0, 0), (5, 0), (10, 0), (10, 10), (0, 10)]
        assert concave_vertices(ring, tol=1.0) == []
