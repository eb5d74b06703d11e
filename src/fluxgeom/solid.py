"""Solid primitive builders: closed volumes and raw meshes."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from fluxgeom import models
from fluxgeom.constants import (
    DEFAULT_ROTATION,
    DEG_2_RAD,
    NORMALS_SMOOTH_LIMIT,
    PLANE_HEIGHT,
    PLANE_SEGMENTS,
    PLANE_WIDTH,
    SPHERE_HEIGHT_SEGMENTS,
    SPHERE_WIDTH_SEGMENTS,
    TORUS_SEGMENTS,
)
from fluxgeom.errors import GeometryError
from fluxgeom.geometry import BufferGeometry, Geometry, compute_cusp_normals
from fluxgeom.materials import Material
from fluxgeom.scene import MESH, SceneNode
from fluxgeom.stl import parse_ascii_stl
from fluxgeom.transforms import (
    bake_normals,
    bake_transform,
    euler_to_matrix,
    rotation_matrix,
    translation_matrix,
)

if TYPE_CHECKING:
    from fluxgeom.primitives import BuildContext

SOLID = "solid"

CYLINDER_RADIAL_SEGMENTS = 32


def _mesh(geometry, material: Material) -> SceneNode:
    return SceneNode(kind=MESH, geometry=geometry, material=material)


def _default_rotation() -> np.ndarray:
    return rotation_matrix(euler_to_matrix(*DEFAULT_ROTATION, order="XYZ"))


def _box(width: float, height: float, depth: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Box: 24 verts, 36 indices (6 faces x 4 verts, 12 tris)."""
    hx, hy, hz = width / 2, height / 2, depth / 2

    face_data = [
        ([(hx, -hy, -hz), (hx, hy, -hz), (hx, hy, hz), (hx, -hy, hz)], (1, 0, 0)),
        ([(-hx, -hy, hz), (-hx, hy, hz), (-hx, hy, -hz), (-hx, -hy, -hz)], (-1, 0, 0)),
        ([(-hx, hy, -hz), (-hx, hy, hz), (hx, hy, hz), (hx, hy, -hz)], (0, 1, 0)),
        ([(-hx, -hy, hz), (-hx, -hy, -hz), (hx, -hy, -hz), (hx, -hy, hz)], (0, -1, 0)),
        ([(-hx, -hy, hz), (hx, -hy, hz), (hx, hy, hz), (-hx, hy, hz)], (0, 0, 1)),
        ([(hx, -hy, -hz), (-hx, -hy, -hz), (-hx, hy, -hz), (hx, hy, -hz)], (0, 0, -1)),
    ]

    positions = []
    normals = []
    indices = []
    for i, (verts, normal) in enumerate(face_data):
        base = i * 4
        positions.extend(verts)
        normals.extend([normal] * 4)
        indices.extend([base, base + 1, base + 2, base, base + 2, base + 3])

    return (
        np.array(positions, dtype=np.float64),
        np.array(normals, dtype=np.float64),
        np.array(indices, dtype=np.int64),
    )


def _sphere(radius: float, width_segments: int, height_segments: int):
    """UV sphere around +y; the poles are single-triangle fans."""
    positions = []
    normals = []
    indices = []

    for iy in range(height_segments + 1):
        theta = math.pi * iy / height_segments
        for ix in range(width_segments + 1):
            phi = 2.0 * math.pi * ix / width_segments
            nx = -math.cos(phi) * math.sin(theta)
            ny = math.cos(theta)
            nz = math.sin(phi) * math.sin(theta)
            positions.append((radius * nx, radius * ny, radius * nz))
            normals.append((nx, ny, nz))

    row = width_segments + 1
    for iy in range(height_segments):
        for ix in range(width_segments):
            a = iy * row + ix + 1
            b = iy * row + ix
            c = (iy + 1) * row + ix
            d = (iy + 1) * row + ix + 1
            if iy != 0:
                indices.extend([a, b, d])
            if iy != height_segments - 1:
                indices.extend([b, c, d])

    return (
        np.array(positions, dtype=np.float64),
        np.array(normals, dtype=np.float64),
        np.array(indices, dtype=np.int64),
    )


def _frustum(radius_top: float, radius_bottom: float, height: float, n_radial: int):
    """Capped cylinder or cone frustum around +y, centred on the origin."""
    half_h = height / 2
    slope = (radius_bottom - radius_top) / height if height else 0.0
    positions = []
    normals = []
    indices = []

    # Side vertices: 2 rings of n_radial+1 verts
    for row, (y, radius) in enumerate(((half_h, radius_top), (-half_h, radius_bottom))):
        for seg in range(n_radial + 1):
            angle = 2.0 * math.pi * seg / n_radial
            sin_a, cos_a = math.sin(angle), math.cos(angle)
            positions.append((radius * sin_a, y, radius * cos_a))
            n = np.array([sin_a, slope, cos_a])
            normals.append(tuple(n / np.linalg.norm(n)))

    for seg in range(n_radial):
        top = seg
        bottom = seg + n_radial + 1
        indices.extend([top, bottom, top + 1])
        indices.extend([bottom, bottom + 1, top + 1])

    for y, radius, sign in ((half_h, radius_top, 1.0), (-half_h, radius_bottom, -1.0)):
        if radius <= 0:
            continue
        center = len(positions)
        positions.append((0.0, y, 0.0))
        normals.append((0.0, sign, 0.0))
        start = len(positions)
        for seg in range(n_radial + 1):
            angle = 2.0 * math.pi * seg / n_radial
            positions.append((radius * math.sin(angle), y, radius * math.cos(angle)))
            normals.append((0.0, sign, 0.0))
        for seg in range(n_radial):
            if sign > 0:
                indices.extend([start + seg, start + seg + 1, center])
            else:
                indices.extend([start + seg + 1, start + seg, center])

    return (
        np.array(positions, dtype=np.float64),
        np.array(normals, dtype=np.float64),
        np.array(indices, dtype=np.int64),
    )


def _torus(major: float, minor: float, radial_segments: int, tubular_segments: int):
    """Torus in the xy plane around the z axis."""
    positions = []
    normals = []
    indices = []

    for j in range(radial_segments + 1):
        v = 2.0 * math.pi * j / radial_segments
        for i in range(tubular_segments + 1):
            u = 2.0 * math.pi * i / tubular_segments
            ring = major + minor * math.cos(v)
            x, y, z = ring * math.cos(u), ring * math.sin(u), minor * math.sin(v)
            positions.append((x, y, z))
            cx, cy = major * math.cos(u), major * math.sin(u)
            n = np.array([x - cx, y - cy, z])
            length = np.linalg.norm(n)
            normals.append(tuple(n / length) if length else (0.0, 0.0, 1.0))

    row = tubular_segments + 1
    for j in range(1, radial_segments + 1):
        for i in range(1, tubular_segments + 1):
            a = row * j + i - 1
            b = row * (j - 1) + i - 1
            c = row * (j - 1) + i
            d = row * j + i
            indices.extend([a, b, d])
            indices.extend([b, c, d])

    return (
        np.array(positions, dtype=np.float64),
        np.array(normals, dtype=np.float64),
        np.array(indices, dtype=np.int64),
    )


def _plane(width: float, height: float, segments: int):
    """Subdivided quad in the xy plane facing +z."""
    grid = segments + 1
    xs = np.linspace(-width / 2, width / 2, grid)
    ys = np.linspace(height / 2, -height / 2, grid)
    gx, gy = np.meshgrid(xs, ys)
    positions = np.column_stack([gx.ravel(), gy.ravel(), np.zeros(grid * grid)])
    normals = np.tile([0.0, 0.0, 1.0], (grid * grid, 1))

    iy, ix = np.meshgrid(np.arange(segments), np.arange(segments), indexing="ij")
    a = (ix + grid * iy).ravel()
    b = (ix + grid * (iy + 1)).ravel()
    c = (ix + 1 + grid * (iy + 1)).ravel()
    d = (ix + 1 + grid * iy).ravel()
    indices = np.column_stack([a, b, d, b, c, d]).ravel()
    return positions, normals, indices


def _revolved(radius_top: float, radius_bottom: float, height: float) -> Geometry:
    """Frustum standing on the origin and running along +z, transform baked in."""
    positions, normals, indices = _frustum(
        radius_top, radius_bottom, height, CYLINDER_RADIAL_SEGMENTS
    )
    matrix = _default_rotation() @ translation_matrix((0.0, height / 2, 0.0))
    return Geometry.from_indexed(
        bake_transform(positions, matrix), indices, bake_normals(normals, matrix)
    )


def _faces_to_triangles(faces: list[list[int]], n_vertices: int) -> np.ndarray:
    """Triangles as given; larger faces are fanned from their first index."""
    triangles = []
    for face in faces:
        if len(face) < 3:
            raise GeometryError(f"Mesh face needs at least 3 indices, got {len(face)}")
        for index in face:
            if not 0 <= index < n_vertices:
                raise GeometryError(f"Mesh face index {index} is out of range")
        for k in range(1, len(face) - 1):
            triangles.append((face[0], face[k], face[k + 1]))
    return np.array(triangles, dtype=np.int64).reshape(-1, 3)


def _mesh_geometry(vertices, faces) -> Geometry:
    if not vertices:
        raise GeometryError("Mesh has no vertices")
    geometry = Geometry(vertices=vertices, faces=_faces_to_triangles(faces, len(vertices)))
    compute_cusp_normals(geometry, NORMALS_SMOOTH_LIMIT)
    return geometry


def block(record: models.BlockRecord, material: Material, ctx: BuildContext) -> SceneNode:
    positions, normals, indices = _box(*record.dimensions)
    return _mesh(Geometry.from_indexed(positions, indices, normals), material)


def sphere(record: models.SphereRecord, material: Material, ctx: BuildContext) -> SceneNode:
    positions, normals, indices = _sphere(
        record.radius, SPHERE_WIDTH_SEGMENTS, SPHERE_HEIGHT_SEGMENTS
    )
    matrix = _default_rotation()
    geometry = BufferGeometry.from_indexed(
        bake_transform(positions, matrix), bake_normals(normals, matrix), indices
    )
    return _mesh(geometry, material)


def cylinder(record: models.CylinderRecord, material: Material, ctx: BuildContext) -> SceneNode:
    return _mesh(_revolved(record.radius, record.radius, record.height), material)


def cone(record: models.ConeRecord, material: Material, ctx: BuildContext) -> SceneNode:
    """Cone frustum whose base of ``radius`` widens by ``semiAngle`` degrees toward the top."""
    top = record.radius + record.height * math.tan(record.semiAngle * DEG_2_RAD)
    return _mesh(_revolved(top, record.radius, record.height), material)


def torus(record: models.TorusRecord, material: Material, ctx: BuildContext) -> SceneNode:
    positions, normals, indices = _torus(
        record.majorRadius, record.minorRadius, TORUS_SEGMENTS, TORUS_SEGMENTS
    )
    return _mesh(Geometry.from_indexed(positions, indices, normals), material)


def mesh(record: models.MeshRecord, material: Material, ctx: BuildContext) -> SceneNode:
    return _mesh(_mesh_geometry(record.vertices, record.faces), material)


def plane(record: models.PlaneRecord, material: Material, ctx: BuildContext) -> SceneNode:
    positions, normals, indices = _plane(PLANE_WIDTH, PLANE_HEIGHT, PLANE_SEGMENTS)
    return _mesh(BufferGeometry.from_indexed(positions, normals, indices), material)


def brep(record: models.BrepRecord, material: Material, ctx: BuildContext) -> SceneNode:
    """Breps carrying inline mesh data; anything else needs a tessellation provider."""
    if not record.has_mesh:
        raise GeometryError("Brep not supported")
    return _mesh(_mesh_geometry(record.vertices, record.faces), material)


def stl(record: models.StlRecord, material: Material, ctx: BuildContext) -> SceneNode:
    return _mesh(parse_ascii_stl(record.content), material)
