"""Planar polygon-with-holes triangulation in 3D."""

from __future__ import annotations

from collections.abc import Sequence

import mapbox_earcut as _earcut
import numpy as np

from fluxgeom.constants import TOLERANCE
from fluxgeom.errors import GeometryError
from fluxgeom.geometry import Geometry
from fluxgeom.vectors import DEFAULT_POOL, VectorPool
from fluxgeom.warning_policy import WarningPolicy, emit_warning

Loop = Sequence[Sequence[float]]


def _normalized(vec: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(vec)
    if length < TOLERANCE:
        raise GeometryError("Degenerate polygon: boundary does not span a plane")
    vec /= length
    return vec


def polygon_basis(
    boundary: Loop, pool: VectorPool
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Origin and orthonormal (u, v, normal) frame of a polygon's plane.

    ``u`` runs from the first boundary point to the second; the normal comes
    from ``u`` and the direction to the last boundary point distinct from the
    first, so an explicitly closed loop gives the same frame as an open one.
    """
    origin = pool.convert(boundary[0])
    u = pool.convert(boundary[1])
    u -= origin
    _normalized(u)
    for point in reversed(boundary[1:]):
        v = pool.convert(point)
        v -= origin
        if np.linalg.norm(v) >= TOLERANCE:
            break
    _normalized(v)
    normal = pool.alloc()
    normal[:] = np.cross(u, v)
    _normalized(normal)
    v[:] = np.cross(normal, u)
    _normalized(v)
    return origin, u, v, normal


def _prepare_loop(points: Loop, *, want_ccw: bool, origin, u, v) -> tuple[np.ndarray, np.ndarray]:
    """Project a loop onto (u, v), dropping repeats; return (2d, oriented-index order)."""
    pts3 = np.array([[p[0], p[1], p[2] if len(p) > 2 else 0.0] for p in points], dtype=np.float64)
    rel = pts3 - origin
    flat = np.column_stack([rel @ u, rel @ v])

    keep: list[int] = []
    for i, pt in enumerate(flat):
        if keep and np.all(np.abs(flat[keep[-1]] - pt) <= TOLERANCE):
            continue
        keep.append(i)
    if len(keep) > 1 and np.all(np.abs(flat[keep[0]] - flat[keep[-1]]) <= TOLERANCE):
        keep.pop()
    loop = flat[keep]
    if len(loop) < 3:
        return loop, pts3[keep]

    area = _signed_area(loop)
    if (want_ccw and area < 0) or (not want_ccw and area > 0):
        loop = loop[::-1]
        keep = keep[::-1]
    return loop, pts3[keep]


def _signed_area(loop: np.ndarray) -> float:
    x = loop[:, 0]
    y = loop[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def _check_planar(points: np.ndarray, origin: np.ndarray, normal: np.ndarray) -> None:
    if len(points) == 0:
        return
    distances = np.abs((points - origin) @ normal)
    if np.any(distances > TOLERANCE):
        raise GeometryError("Non planar polygon in polygonSet")


def triangulate_polygon(
    boundary: Loop,
    holes: Sequence[Loop] = (),
    *,
    policy: WarningPolicy | None = None,
    pool: VectorPool | None = None,
) -> Geometry:
    """Triangulate one planar polygon with holes into a ``Geometry``.

    Raises ``GeometryError`` if any boundary or hole point is off the
    boundary's plane by more than the tolerance.
    """
    pool = DEFAULT_POOL if pool is None else pool
    if len(boundary) < 3:
        emit_warning("W02", "Polygon boundary has fewer than 3 points, ignored", policy=policy)
        return Geometry(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3)))

    try:
        origin, u, v, normal = (x.copy() for x in polygon_basis(boundary, pool))
    finally:
        pool.clear()

    outer, outer3 = _prepare_loop(boundary, want_ccw=True, origin=origin, u=u, v=v)
    _check_planar(outer3, origin, normal)
    if len(outer) < 3:
        emit_warning("W02", "Polygon boundary has fewer than 3 distinct points, ignored", policy=policy)
        return Geometry(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3)))

    rings = [outer]
    for hole in holes:
        loop, loop3 = _prepare_loop(hole, want_ccw=False, origin=origin, u=u, v=v)
        _check_planar(loop3, origin, normal)
        if len(loop) < 3:
            emit_warning("W02", "Polygon hole has fewer than 3 distinct points, ignored", policy=policy)
            continue
        rings.append(loop)

    flat = np.concatenate(rings, axis=0)
    ring_ends = np.cumsum([len(r) for r in rings]).astype(np.uint32)
    indices = np.asarray(_earcut.triangulate_float64(flat, ring_ends), dtype=np.int64)
    faces = indices.reshape(-1, 3)

    # keep every triangle counter-clockwise in (u, v) so normals face +normal
    if len(faces):
        tri = flat[faces]
        cross = (tri[:, 1, 0] - tri[:, 0, 0]) * (tri[:, 2, 1] - tri[:, 0, 1]) - (
            tri[:, 1, 1] - tri[:, 0, 1]
        ) * (tri[:, 2, 0] - tri[:, 0, 0])
        flipped = cross < 0
        faces[flipped] = faces[flipped][:, ::-1]

    vertices = origin + np.outer(flat[:, 0], u) + np.outer(flat[:, 1], v)
    geom = Geometry(vertices=vertices, faces=faces)
    geom.normals = np.tile(normal, (len(faces), 3, 1))
    return geom


def triangulate_polygon_set(
    polygons: Sequence[tuple[Loop, Sequence[Loop]]],
    *,
    policy: WarningPolicy | None = None,
    pool: VectorPool | None = None,
) -> Geometry:
    """Triangulate each (boundary, holes) pair and union them into one geometry."""
    merged = Geometry(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3)))
    merged.normals = np.zeros((0, 3, 3))
    for boundary, holes in polygons:
        merged.merge(triangulate_polygon(boundary, holes, policy=policy, pool=pool))
    return merged


def triangle_area(geometry: Geometry) -> float:
    """Total surface area of a triangle geometry."""
    if geometry.face_count == 0:
        return 0.0
    tri = geometry.vertices[geometry.faces]
    cross = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    return float(0.5 * np.linalg.norm(cross, axis=1).sum())
