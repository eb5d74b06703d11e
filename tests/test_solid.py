"""Tests for solid builders and the mesh-like primitives."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from fluxgeom.constants import CIRCLE_RES
from fluxgeom.errors import GeometryError
from fluxgeom.geometry import BufferGeometry, Geometry
from fluxgeom.primitives import create_primitive
from fluxgeom.transforms import quat_to_matrix


def _world_bounds(node):
    """Bounding box of a node's geometry with its own transform applied."""
    geometry = node.geometry
    points = geometry.vertices if isinstance(geometry, Geometry) else geometry.position
    homogeneous = np.column_stack([points, np.ones(len(points))])
    world = (node.matrix @ homogeneous.T).T[:, :3]
    return world.min(axis=0), world.max(axis=0)


class TestBlock:
    def test_indexed_box(self, ctx):
        node = create_primitive({"primitive": "block", "dimensions": [1, 2, 3]}, ctx)
        assert isinstance(node.geometry, Geometry)
        assert node.geometry.vertex_count == 24
        assert node.geometry.face_count == 12

    def test_dimensions_centred(self, ctx):
        node = create_primitive({"primitive": "block", "dimensions": [1, 2, 3]}, ctx)
        lo, hi = node.geometry.bounding_box()
        assert_allclose(lo, [-0.5, -1, -1.5])
        assert_allclose(hi, [0.5, 1, 1.5])

    def test_face_normals_point_outward(self, ctx):
        node = create_primitive({"primitive": "block", "dimensions": [2, 2, 2]}, ctx)
        geometry = node.geometry
        centres = geometry.vertices[geometry.faces].mean(axis=1)
        dots = np.einsum("ij,ij->i", geometry.face_normals(), centres)
        assert np.all(dots > 0)

    def test_wrong_dimension_count(self, ctx):
        with pytest.raises(GeometryError):
            create_primitive({"primitive": "block", "dimensions": [1, 2]}, ctx)


class TestRevolved:
    def test_cylinder_runs_along_z(self, ctx):
        node = create_primitive({"primitive": "cylinder", "radius": 2, "height": 5}, ctx)
        lo, hi = node.geometry.bounding_box()
        assert lo[2] == pytest.approx(0.0, abs=1e-9)
        assert hi[2] == pytest.approx(5.0)
        assert hi[0] == pytest.approx(2.0, abs=1e-6)

    def test_cylinder_axis(self, ctx):
        node = create_primitive(
            {"primitive": "cylinder", "origin": [1, 1, 1], "axis": [1, 0, 0], "radius": 1, "height": 4}, ctx
        )
        lo, hi = _world_bounds(node)
        assert lo[0] == pytest.approx(1.0, abs=1e-6)
        assert hi[0] == pytest.approx(5.0, abs=1e-6)

    def test_cone_widens_with_semi_angle(self, ctx):
        node = create_primitive(
            {"primitive": "cone", "radius": 1, "height": 1, "semiAngle": 45}, ctx
        )
        vertices = node.geometry.vertices
        top = vertices[np.isclose(vertices[:, 2], 1.0)]
        assert np.linalg.norm(top[:, :2], axis=1).max() == pytest.approx(2.0, abs=1e-6)

    @pytest.mark.parametrize("angle", [0, 90, -5])
    def test_cone_semi_angle_range(self, ctx, angle):
        with pytest.raises(GeometryError, match="semiAngle"):
            create_primitive({"primitive": "cone", "radius": 1, "height": 2, "semiAngle": angle}, ctx)


class TestRoundSolids:
    def test_sphere_radius(self, ctx):
        node = create_primitive({"primitive": "sphere", "radius": 3}, ctx)
        assert isinstance(node.geometry, BufferGeometry)
        assert_allclose(np.linalg.norm(node.geometry.position, axis=1), 3.0, rtol=1e-5)

    def test_sphere_normals_unit(self, ctx):
        node = create_primitive({"primitive": "sphere", "radius": 3}, ctx)
        assert_allclose(np.linalg.norm(node.geometry.attributes["normal"], axis=1), 1.0, rtol=1e-5)

    def test_torus_in_xy_plane(self, ctx):
        node = create_primitive({"primitive": "torus", "majorRadius": 5, "minorRadius": 1}, ctx)
        lo, hi = node.geometry.bounding_box()
        assert_allclose(hi, [6, 6, 1], atol=1e-6)
        assert_allclose(lo, [-6, -6, -1], atol=1e-6)

    def test_plane_is_large_flat_buffer(self, ctx):
        node = create_primitive({"primitive": "plane", "origin": [5, 5, 0], "normal": [0, 0, 1]}, ctx)
        assert isinstance(node.geometry, BufferGeometry)
        lo, hi = node.geometry.bounding_box()
        assert lo[2] == hi[2] == 0.0
        assert hi[0] - lo[0] == pytest.approx(10000.0)

    def test_plane_normal_orients(self, ctx):
        node = create_primitive({"primitive": "plane", "normal": [0, 1, 0]}, ctx)
        rot = quat_to_matrix(*node.quaternion)
        assert_allclose(rot @ np.array([0.0, 0.0, 1.0]), [0, 1, 0], atol=1e-9)


class TestMesh:
    def test_triangles_kept(self, ctx):
        node = create_primitive(
            {"primitive": "mesh", "vertices": [[0, 0, 0], [1, 0, 0], [0, 1, 0]], "faces": [[0, 1, 2]]}, ctx
        )
        assert node.geometry.face_count == 1

    def test_quad_fanned(self, ctx):
        node = create_primitive(
            {
                "primitive": "mesh",
                "vertices": [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]],
                "faces": [[0, 1, 2, 3]],
            },
            ctx,
        )
        assert node.geometry.face_count == 2
        assert_allclose(node.geometry.faces, [[0, 1, 2], [0, 2, 3]])

    def test_index_out_of_range(self, ctx):
        with pytest.raises(GeometryError, match="out of range"):
            create_primitive(
                {"primitive": "mesh", "vertices": [[0, 0, 0], [1, 0, 0], [0, 1, 0]], "faces": [[0, 1, 5]]}, ctx
            )

    def test_short_face(self, ctx):
        with pytest.raises(GeometryError, match="at least 3"):
            create_primitive(
                {"primitive": "mesh", "vertices": [[0, 0, 0], [1, 0, 0], [0, 1, 0]], "faces": [[0, 1]]}, ctx
            )

    def test_crease_keeps_hard_edge(self, ctx):
        # two faces folded at 90 degrees share an edge; normals must not blend
        node = create_primitive(
            {
                "primitive": "mesh",
                "vertices": [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]],
                "faces": [[0, 1, 2], [0, 3, 1]],
            },
            ctx,
        )
        normals = node.geometry.normals
        assert_allclose(normals[0], np.tile([0, 0, 1], (3, 1)), atol=1e-9)
        assert_allclose(normals[1], np.tile([0, 1, 0], (3, 1)), atol=1e-9)

    def test_shallow_fold_smoothed(self, ctx):
        node = create_primitive(
            {
                "primitive": "mesh",
                "vertices": [[0, 0, 0], [1, 0, 0], [0.5, 1, 0.1], [0.5, -1, 0.1]],
                "faces": [[0, 1, 2], [1, 0, 3]],
            },
            ctx,
        )
        normals = node.geometry.normals
        # the shared corners average the two faces
        assert_allclose(normals[0, 0], normals[1, 1], atol=1e-9)


class TestBrepAndStl:
    def test_brep_without_mesh_rejected(self, ctx):
        with pytest.raises(GeometryError, match="Brep not supported"):
            create_primitive({"primitive": "brep", "content": "abc", "format": "x_b"}, ctx)

    def test_brep_with_inline_mesh(self, ctx):
        node = create_primitive(
            {"primitive": "brep", "vertices": [[0, 0, 0], [1, 0, 0], [0, 1, 0]], "faces": [[0, 1, 2]]}, ctx
        )
        assert node.kind == "Mesh"
        assert node.geometry.face_count == 1

    def test_stl_primitive(self, ctx, ascii_stl):
        node = create_primitive({"primitive": "stl", "content": ascii_stl}, ctx)
        assert node.geometry.face_count == 1
        assert_allclose(node.geometry.normals[0, 0], [0, 0, 1])


class TestWires:
    def test_circle_closed(self, ctx):
        node = create_primitive({"primitive": "circle", "radius": 2}, ctx)
        positions = node.geometry.position
        assert len(positions) == CIRCLE_RES
        assert_allclose(positions[0], positions[-1], atol=1e-5)
        assert_allclose(np.linalg.norm(positions, axis=1), 2.0, rtol=1e-5)

    def test_ellipse_extent(self, ctx):
        node = create_primitive({"primitive": "ellipse", "majorRadius": 4, "minorRadius": 1}, ctx)
        lo, hi = node.geometry.bounding_box()
        assert_allclose(hi[:2], [4, 1], atol=1e-5)
        assert_allclose(lo[:2], [-4, -1], atol=1e-5)

    def test_rectangle_loop(self, ctx):
        node = create_primitive({"primitive": "rectangle", "dimensions": [4, 2]}, ctx)
        assert_allclose(node.geometry.position, [[-2, 1, 0], [2, 1, 0], [2, -1, 0], [-2, -1, 0], [-2, 1, 0]])

    def test_empty_polyline(self, ctx):
        with pytest.raises(GeometryError, match="Polyline has no points"):
            create_primitive({"primitive": "polyline", "points": []}, ctx)

    def test_vector_points_along_coords(self, ctx):
        node = create_primitive({"primitive": "vector", "coords": [3, 0, 0]}, ctx)
        rot = quat_to_matrix(*node.quaternion)
        tip = rot @ node.geometry.position[1].astype(np.float64)
        assert_allclose(tip, [1, 0, 0], atol=1e-6)

    def test_zero_vector(self, ctx):
        with pytest.raises(GeometryError, match="length zero"):
            create_primitive({"primitive": "vector", "coords": [0, 0, 0]}, ctx)

    def test_clamped_curve_endpoints(self, ctx, cubic_curve):
        node = create_primitive(dict(cubic_curve, knots=[0, 0, 0, 0, 1, 1, 1, 1]), ctx)
        positions = node.geometry.position
        assert_allclose(positions[0], [0, 0, 0], atol=1e-6)
        assert_allclose(positions[-1], [0, 1, 0], atol=1e-6)

    def test_arc_radius(self, ctx):
        node = create_primitive(
            {"primitive": "arc", "start": [2, 0, 0], "middle": [0, 2, 0], "end": [-2, 0, 0]}, ctx
        )
        assert_allclose(np.linalg.norm(node.geometry.position, axis=1), 2.0, rtol=1e-5)
        assert math.isclose(float(node.geometry.position[:, 1].max()), 2.0, rel_tol=1e-3)
