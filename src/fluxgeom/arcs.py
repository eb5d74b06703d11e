"""Three-point circular arc reconstruction and tessellation."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from fluxgeom.constants import ARC_SEGMENTS_PER_CIRCLE, TOLERANCE
from fluxgeom.errors import GeometryError
from fluxgeom.transforms import quat_to_matrix
from fluxgeom.vectors import DEFAULT_POOL, VectorPool

# Axis substitutions tried, in order, when intersecting the two bisectors.
AXIS_PAIRS: tuple[tuple[int, int], ...] = ((0, 1), (0, 2), (1, 0), (1, 2), (2, 0), (2, 1))


def _normalize(vec: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(vec)
    if length > 0:
        vec /= length
    return vec


def _angle_between(a: np.ndarray, b: np.ndarray) -> float:
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return math.acos(max(-1.0, min(1.0, float(np.dot(a, b)) / denom)))


def is_degenerate(ab: np.ndarray, bc: np.ndarray) -> bool:
    """True when the chords are too short or collinear to define a circle."""
    len_ab = np.linalg.norm(ab)
    len_bc = np.linalg.norm(bc)
    if len_ab < TOLERANCE or len_bc < TOLERANCE:
        return True
    return 1.0 - abs(float(np.dot(ab / len_ab, bc / len_bc))) < TOLERANCE


def intersect_lines(
    p0: np.ndarray, p1: np.ndarray, d0: np.ndarray, d1: np.ndarray
) -> float | None:
    """Parameter ``t0`` such that ``p0 + t0 * d0`` lies on line ``p1 + t * d1``.

    The 3D lines are assumed coplanar. Solves the 2x2 system on each axis pair
    in ``AXIS_PAIRS`` order and returns the first finite solution, or None
    when every pair is singular.
    """
    for x, y in AXIS_PAIRS:
        if d1[y] == 0.0:
            continue
        ratio = d1[x] / d1[y]
        denom = d0[y] * ratio - d0[x]
        if denom == 0.0:
            continue
        t0 = (p0[x] - p1[x] - p0[y] * ratio + p1[y] * ratio) / denom
        if math.isfinite(t0):
            return float(t0)
    return None


def _rotation_about(axis: np.ndarray, angle: float) -> np.ndarray:
    half = angle / 2.0
    s = math.sin(half)
    return quat_to_matrix(axis[0] * s, axis[1] * s, axis[2] * s, math.cos(half))


def tessellate_arc(
    start: Sequence[float],
    middle: Sequence[float],
    end: Sequence[float],
    pool: VectorPool | None = None,
) -> np.ndarray:
    """Points along the circular arc through ``start``, ``middle`` and ``end``.

    Degenerate input (coincident or collinear points) yields the three input
    points unchanged. Otherwise the arc is split into
    ``ceil(angle * 42 / 2pi)`` segments.
    """
    pool = DEFAULT_POOL if pool is None else pool
    try:
        a = pool.convert(start)
        b = pool.convert(middle)
        c = pool.convert(end)

        ab = pool.clone(b)
        ab -= a
        bc = pool.clone(c)
        bc -= b

        if is_degenerate(ab, bc):
            return np.array([a, b, c], dtype=np.float64)

        up = pool.alloc()
        up[:] = np.cross(ab, bc)
        _normalize(up)

        ab_perp = pool.alloc()
        ab_perp[:] = np.cross(ab, up)
        _normalize(ab_perp)
        bc_perp = pool.alloc()
        bc_perp[:] = np.cross(up, bc)
        _normalize(bc_perp)

        ab_mid = pool.clone(a)
        ab_mid += b
        ab_mid *= 0.5
        bc_mid = pool.clone(b)
        bc_mid += c
        bc_mid *= 0.5

        t0 = intersect_lines(ab_mid, bc_mid, ab_perp, bc_perp)
        if t0 is None:
            raise GeometryError("Arc center could not be found")
        center = pool.clone(ab_perp)
        center *= t0
        center += ab_mid

        rel_a = pool.clone(a)
        rel_a -= center
        rel_c = pool.clone(c)
        rel_c -= center

        angle = _angle_between(rel_a, rel_c)
        # Interior angle of the triangle at the middle point decides which
        # way around the circle the arc goes.
        angle_abc = math.pi - _angle_between(ab, bc)
        if angle_abc < math.pi / 2:
            angle = 2 * math.pi - angle

        segments = math.ceil(angle * ARC_SEGMENTS_PER_CIRCLE / (2 * math.pi))
        step = _rotation_about(up, angle / segments) if segments else None
        points = [center + rel_a]
        current = rel_a.copy()
        for _ in range(segments):
            current = step @ current
            points.append(center + current)
        result = np.array(points, dtype=np.float64)
    finally:
        pool.clear()

    if len(result) == 0:
        raise GeometryError("Arc has no vertices")
    return result
