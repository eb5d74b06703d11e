"""Tests for NURBS curve and surface evaluation."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from fluxgeom.errors import GeometryError
from fluxgeom.nurbs import (
    NurbsCurve,
    basis_functions,
    evaluate_curve,
    evaluate_surface,
    find_span,
    parametric_geometry,
)

CUBIC_KNOTS = [0, 0, 0, 0, 1, 1, 1, 1]
CUBIC_POINTS = [[0, 0, 0], [1, 2, 0], [3, 2, 0], [4, 0, 0]]


class TestBasis:
    def test_find_span_interior(self):
        assert find_span(2, 2.5, [0, 0, 0, 1, 2, 3, 4, 4, 4]) == 4

    def test_find_span_end(self):
        assert find_span(3, 1.0, CUBIC_KNOTS) == 3

    def test_partition_of_unity(self):
        knots = [0, 0, 0, 1, 2, 3, 3, 3]
        for u in (0.0, 0.5, 1.7, 2.999):
            span = find_span(2, u, knots)
            assert basis_functions(span, u, 2, knots).sum() == pytest.approx(1.0)


class TestNurbsCurve:
    def test_knot_count_checked(self):
        with pytest.raises(GeometryError, match="degree \\+ N \\+ 1"):
            NurbsCurve(3, [0, 0, 1, 1], CUBIC_POINTS)

    def test_weight_count_checked(self):
        with pytest.raises(GeometryError, match="one weight per control point"):
            NurbsCurve(3, CUBIC_KNOTS, CUBIC_POINTS, weights=[1, 1])

    def test_degree_needs_enough_points(self):
        with pytest.raises(GeometryError, match="at least 4 control points, got 2"):
            NurbsCurve(3, [0, 0, 0, 1, 1, 1], [[0, 0, 0], [1, 0, 0]])

    def test_no_control_points(self):
        with pytest.raises(GeometryError, match="no control points"):
            NurbsCurve(1, [0, 1], [])

    def test_decreasing_knots(self):
        with pytest.raises(GeometryError, match="non-decreasing"):
            NurbsCurve(3, [0, 0, 0, 0, 1, 1, 0.5, 1], CUBIC_POINTS)

    def test_empty_domain(self):
        with pytest.raises(GeometryError, match="empty domain"):
            NurbsCurve(3, [0] * 8, CUBIC_POINTS)

    def test_bezier_endpoints(self):
        curve = NurbsCurve(3, CUBIC_KNOTS, CUBIC_POINTS)
        assert_allclose(curve.get_point(0.0), [0, 0, 0], atol=1e-12)
        assert_allclose(curve.get_point(1.0), [4, 0, 0], atol=1e-12)

    def test_bezier_midpoint(self):
        curve = NurbsCurve(3, CUBIC_KNOTS, CUBIC_POINTS)
        # B(0.5) = (P0 + 3 P1 + 3 P2 + P3) / 8
        assert_allclose(curve.get_point(0.5), [2.0, 1.5, 0.0], atol=1e-12)

    def test_rational_quarter_circle(self):
        w = math.sqrt(0.5)
        curve = NurbsCurve(2, [0, 0, 0, 1, 1, 1], [[1, 0, 0], [1, 1, 0], [0, 1, 0]], [1, w, 1])
        samples = curve.get_points(16)
        assert_allclose(np.linalg.norm(samples, axis=1), 1.0, atol=1e-12)

    def test_unit_weights_match_plain_bspline(self):
        plain = NurbsCurve(3, CUBIC_KNOTS, CUBIC_POINTS)
        weighted = NurbsCurve(3, CUBIC_KNOTS, CUBIC_POINTS, [1, 1, 1, 1])
        assert_allclose(plain.get_points(8), weighted.get_points(8))

    def test_closed_curve_detected(self):
        points = [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 0, 0]]
        assert NurbsCurve(3, CUBIC_KNOTS, points).is_closed()
        assert not NurbsCurve(3, CUBIC_KNOTS, CUBIC_POINTS).is_closed()


class TestEvaluateCurve:
    def test_sample_count(self):
        points = evaluate_curve(3, CUBIC_KNOTS, CUBIC_POINTS)
        assert points.shape == (4 * 3 * 4 + 1, 3)

    def test_linear_curve_is_control_polygon(self):
        points = evaluate_curve(1, [0, 0, 1, 2, 2], [[0, 0, 0], [1, 0, 0], [1, 1, 0]])
        assert_allclose(points, [[0, 0, 0], [1, 0, 0], [1, 1, 0]])

    def test_bad_knots_raise(self):
        with pytest.raises(GeometryError):
            evaluate_curve(3, [0, 1, 2], CUBIC_POINTS)


class TestEvaluateSurface:
    def _flat(self):
        return evaluate_surface(
            1,
            1,
            [0, 0, 1, 1],
            [0, 0, 1, 1],
            [[[-8, 8, 0], [8, 8, 0]], [[-8, -8, 0], [8, -8, 0]]],
        )

    def test_density(self):
        _, slices, stacks = self._flat()
        assert slices == 1 * 2 * 4
        assert stacks == 1 * 2 * 4

    def test_corners(self):
        func, _, _ = self._flat()
        assert_allclose(func(0, 0), [-8, 8, 0])
        assert_allclose(func(0, 1), [8, 8, 0])
        assert_allclose(func(1, 0), [-8, -8, 0])
        assert_allclose(func(1, 1), [8, -8, 0])

    def test_u_knot_count_checked(self):
        with pytest.raises(GeometryError, match="uKnots"):
            evaluate_surface(1, 1, [0, 1], [0, 0, 1, 1], [[[0, 0, 0], [1, 0, 0]], [[0, 1, 0], [1, 1, 0]]])

    def test_v_knot_count_checked(self):
        with pytest.raises(GeometryError, match="vKnots"):
            evaluate_surface(1, 1, [0, 0, 1, 1], [0, 1], [[[0, 0, 0], [1, 0, 0]], [[0, 1, 0], [1, 1, 0]]])

    def test_ragged_grid(self):
        with pytest.raises(GeometryError, match="rectangular"):
            evaluate_surface(1, 1, [0, 0, 1, 1], [0, 0, 1, 1], [[[0, 0, 0], [1, 0, 0]], [[0, 1, 0]]])

    def test_weights_length(self):
        with pytest.raises(GeometryError, match="one weight"):
            evaluate_surface(
                1, 1, [0, 0, 1, 1], [0, 0, 1, 1], [[[0, 0, 0], [1, 0, 0]], [[0, 1, 0], [1, 1, 0]]], [1, 1]
            )

    def test_u_degree_too_high_for_grid(self):
        grid = [[[0, 0, 0], [1, 0, 0]], [[0, 1, 0], [1, 1, 0]]]
        with pytest.raises(GeometryError, match="U direction of degree 3"):
            evaluate_surface(3, 1, [0, 0, 0, 1, 1, 1], [0, 0, 1, 1], grid)

    def test_v_degree_too_high_for_grid(self):
        grid = [[[0, 0, 0], [1, 0, 0]], [[0, 1, 0], [1, 1, 0]]]
        with pytest.raises(GeometryError, match="V direction of degree 2"):
            evaluate_surface(1, 2, [0, 0, 1, 1], [0, 0, 0, 1, 1], grid)


class TestParametricGeometry:
    def test_grid_size(self):
        geometry = parametric_geometry(lambda s, t: np.array([s, t, 0.0]), 3, 2)
        assert geometry.vertex_count == 4 * 3
        assert geometry.face_count == 3 * 2 * 2

    def test_covers_unit_square(self):
        geometry = parametric_geometry(lambda s, t: np.array([s, t, 0.0]), 4, 4)
        lo, hi = geometry.bounding_box()
        assert_allclose(lo, [0, 0, 0])
        assert_allclose(hi, [1, 1, 0])
