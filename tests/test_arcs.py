"""Tests for three-point arc tessellation."""

from __future__ import annotations

import math
import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose

from fluxgeom.arcs import intersect_lines, is_degenerate, tessellate_arc
from fluxgeom.errors import GeometryError
from fluxgeom.primitives import BuildContext, create_primitive
from fluxgeom.vectors import VectorPool
from fluxgeom.warning_policy import FluxGeomWarning, WarningPolicy


class TestTessellateArc:
    def test_semicircle_has_curvature(self):
        points = tessellate_arc([1, 0, 0], [0, 1, 0], [-1, 0, 0], pool=VectorPool())
        assert len(points) > 3
        assert_allclose(np.linalg.norm(points, axis=1), 1.0, atol=1e-9)

    def test_endpoints_preserved(self):
        points = tessellate_arc([1, 0, 0], [0, 1, 0], [-1, 0, 0], pool=VectorPool())
        assert_allclose(points[0], [1, 0, 0], atol=1e-9)
        assert_allclose(points[-1], [-1, 0, 0], atol=1e-9)

    def test_passes_through_middle_side(self):
        points = tessellate_arc([1, 0, 0], [0, 1, 0], [-1, 0, 0], pool=VectorPool())
        assert points[:, 1].max() == pytest.approx(1.0, abs=1e-3)
        assert points[:, 1].min() >= -1e-9

    def test_segment_count_follows_angle(self):
        points = tessellate_arc([1, 0, 0], [0, 1, 0], [-1, 0, 0], pool=VectorPool())
        # half a turn at 42 segments per circle
        assert 21 <= len(points) - 1 <= 22

    def test_major_arc(self):
        # middle point on the far side makes the arc sweep more than half a turn
        s = math.sqrt(0.5)
        points = tessellate_arc([s, s, 0], [-1, 0, 0], [s, -s, 0], pool=VectorPool())
        assert len(points) > 22
        assert points[:, 0].min() == pytest.approx(-1.0, abs=1e-2)

    def test_offset_circle(self):
        points = tessellate_arc([3, 2, 5], [2, 3, 5], [1, 2, 5], pool=VectorPool())
        assert_allclose(np.linalg.norm(points - [2, 2, 5], axis=1), 1.0, atol=1e-9)

    def test_degenerate_returns_three_points(self):
        points = tessellate_arc([0, 0, 0], [1, 1, 0], [0, 0, 0], pool=VectorPool())
        assert points.shape == (3, 3)

    def test_collinear_returns_three_points(self):
        points = tessellate_arc([0, 0, 0], [1, 0, 0], [2, 0, 0], pool=VectorPool())
        assert_allclose(points, [[0, 0, 0], [1, 0, 0], [2, 0, 0]])

    def test_pool_cleared(self):
        pool = VectorPool()
        tessellate_arc([1, 0, 0], [0, 1, 0], [-1, 0, 0], pool=pool)
        assert pool.cursor == 0
        assert len(pool) > 0


class TestHelpers:
    def test_degenerate_short_chord(self):
        assert is_degenerate(np.zeros(3), np.array([1.0, 0, 0]))

    def test_not_degenerate(self):
        assert not is_degenerate(np.array([1.0, 1, 0]), np.array([1.0, -1, 0]))

    def test_intersect_lines(self):
        t0 = intersect_lines(
            np.array([0.0, 0, 0]), np.array([2.0, -1, 0]), np.array([1.0, 0, 0]), np.array([0.0, 1, 0])
        )
        assert t0 == pytest.approx(2.0)

    def test_parallel_lines(self):
        d = np.array([1.0, 0, 0])
        assert intersect_lines(np.zeros(3), np.array([0.0, 1, 0]), d, d) is None


class TestArcPrimitive:
    def test_degenerate_arc_warns(self):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            node = create_primitive(
                {"primitive": "arc", "start": [0, 0, 0], "middle": [1, 1, 0], "end": [0, 0, 0]},
                BuildContext(pool=VectorPool()),
            )
        assert node.geometry.vertex_count == 3
        assert any(issubclass(x.category, FluxGeomWarning) and "[W01]" in str(x.message) for x in w)

    def test_degenerate_arc_as_error(self):
        ctx = BuildContext(policy=WarningPolicy(warn_as_error=frozenset({"W01"})), pool=VectorPool())
        with pytest.raises(GeometryError, match=r"\[W01\]"):
            create_primitive({"primitive": "arc", "start": [0, 0, 0], "middle": [1, 1, 0], "end": [0, 0, 0]}, ctx)
