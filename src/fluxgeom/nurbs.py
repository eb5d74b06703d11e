"""Rational B-spline (NURBS) curve and surface evaluation."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np

from fluxgeom.constants import NURBS_CURVE_QUALITY, NURBS_SURFACE_QUALITY, TOLERANCE
from fluxgeom.errors import GeometryError
from fluxgeom.geometry import Geometry


def find_span(degree: int, u: float, knots: Sequence[float]) -> int:
    """Index of the knot span containing ``u`` (The NURBS Book, A2.1)."""
    n = len(knots) - degree - 1
    if u >= knots[n]:
        return n - 1
    if u <= knots[degree]:
        return degree

    low = degree
    high = n
    mid = (low + high) // 2
    while u < knots[mid] or u >= knots[mid + 1]:
        if u < knots[mid]:
            high = mid
        else:
            low = mid
        mid = (low + high) // 2
    return mid


def basis_functions(span: int, u: float, degree: int, knots: Sequence[float]) -> np.ndarray:
    """The ``degree + 1`` non-zero basis functions at ``u`` (The NURBS Book, A2.2)."""
    basis = np.zeros(degree + 1, dtype=np.float64)
    left = np.zeros(degree + 1, dtype=np.float64)
    right = np.zeros(degree + 1, dtype=np.float64)
    basis[0] = 1.0

    for j in range(1, degree + 1):
        left[j] = u - knots[span + 1 - j]
        right[j] = knots[span + j] - u
        saved = 0.0
        for r in range(j):
            rv = right[r + 1]
            lv = left[j - r]
            denom = rv + lv
            temp = basis[r] / denom if denom != 0.0 else 0.0
            basis[r] = saved + rv * temp
            saved = lv * temp
        basis[j] = saved

    return basis


def _homogeneous(points: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """(x, y, z) and w -> (wx, wy, wz, w)."""
    return np.concatenate([points * weights[..., None], weights[..., None]], axis=-1)


def _project(hpoint: np.ndarray) -> np.ndarray:
    w = hpoint[3]
    if w == 0.0:
        return hpoint[:3].copy()
    return hpoint[:3] / w


def _check_domain(degree: int, count: int, knots: Sequence[float], what: str) -> None:
    """Reject control nets and knot vectors that basis evaluation cannot index."""
    if count == 0:
        raise GeometryError(f"NURBS {what} has no control points")
    if degree < 1 or degree >= count:
        raise GeometryError(
            f"NURBS {what} of degree {degree} needs at least {degree + 1} control points, got {count}"
        )
    if any(b < a for a, b in zip(knots, knots[1:])):
        raise GeometryError(f"NURBS {what} knots must be non-decreasing")
    if knots[degree] >= knots[len(knots) - 1 - degree]:
        raise GeometryError(f"NURBS {what} knots span an empty domain")


class NurbsCurve:
    """A NURBS curve with (x, y, z) control points and optional weights."""

    def __init__(
        self,
        degree: int,
        knots: Sequence[float],
        control_points: Sequence[Sequence[float]],
        weights: Sequence[float] | None = None,
    ) -> None:
        points = np.asarray(control_points, dtype=np.float64).reshape(-1, 3)
        if len(knots) != len(points) + degree + 1:
            raise GeometryError(
                "Number of knots in a NURBS curve should equal degree + N + 1, "
                "where N is the number of control points"
            )
        _check_domain(degree, len(points), knots, "curve")
        w = np.ones(len(points)) if weights is None else np.asarray(weights, dtype=np.float64)
        if len(w) != len(points):
            raise GeometryError("NURBS curve needs one weight per control point")

        self.degree = degree
        self.knots = [float(k) for k in knots]
        self.control_points = _homogeneous(points, w)

        # A closed curve starts and ends on the same point; skip the outer
        # degree knots so sampling stays inside the renderable domain.
        self.i_min = 0
        self.i_max = len(self.knots) - 1
        if self.is_closed():
            self.i_min = degree
            self.i_max = len(self.knots) - 1 - degree

    def point_at_parameter(self, u: float) -> np.ndarray:
        span = find_span(self.degree, u, self.knots)
        basis = basis_functions(span, u, self.degree, self.knots)
        hpoint = basis @ self.control_points[span - self.degree : span + 1]
        return _project(hpoint)

    def is_closed(self) -> bool:
        start = self.point_at_parameter(self.knots[self.degree])
        end = self.point_at_parameter(self.knots[len(self.knots) - 1 - self.degree])
        return bool(np.linalg.norm(start - end) < TOLERANCE)

    def get_point(self, t: float) -> np.ndarray:
        """Point at normalised parameter ``t`` in [0, 1]."""
        lo = self.knots[self.i_min]
        hi = self.knots[self.i_max]
        return self.point_at_parameter(lo + t * (hi - lo))

    def get_points(self, divisions: int) -> np.ndarray:
        """``divisions + 1`` evenly spaced samples, (divisions + 1, 3)."""
        return np.array([self.get_point(i / divisions) for i in range(divisions + 1)])


class NurbsSurface:
    """A NURBS surface over a grid of control points.

    ``control_points[i][j]`` runs along the first direction with ``i`` and
    the second with ``j``.
    """

    def __init__(
        self,
        degree1: int,
        degree2: int,
        knots1: Sequence[float],
        knots2: Sequence[float],
        control_points: np.ndarray,
        weights: np.ndarray | None = None,
    ) -> None:
        points = np.asarray(control_points, dtype=np.float64)
        w = np.ones(points.shape[:2]) if weights is None else np.asarray(weights, dtype=np.float64)
        self.degree1 = degree1
        self.degree2 = degree2
        self.knots1 = [float(k) for k in knots1]
        self.knots2 = [float(k) for k in knots2]
        self.control_points = _homogeneous(points, w)

    def point_at_parameters(self, u: float, v: float) -> np.ndarray:
        span1 = find_span(self.degree1, u, self.knots1)
        span2 = find_span(self.degree2, v, self.knots2)
        basis1 = basis_functions(span1, u, self.degree1, self.knots1)
        basis2 = basis_functions(span2, v, self.degree2, self.knots2)
        patch = self.control_points[
            span1 - self.degree1 : span1 + 1, span2 - self.degree2 : span2 + 1
        ]
        hpoint = np.einsum("i,j,ijk->k", basis1, basis2, patch)
        return _project(hpoint)

    def get_point(self, t1: float, t2: float) -> np.ndarray:
        u = self.knots1[0] + t1 * (self.knots1[-1] - self.knots1[0])
        v = self.knots2[0] + t2 * (self.knots2[-1] - self.knots2[0])
        return self.point_at_parameters(u, v)


def evaluate_curve(
    degree: int,
    knots: Sequence[float],
    control_points: Sequence[Sequence[float]],
    weights: Sequence[float] | None = None,
) -> np.ndarray:
    """Sample a curve for rendering.

    Degree 1 curves are returned as their control polygon. Higher degrees
    are sampled ``len(control_points) * degree * 4`` times.
    """
    curve = NurbsCurve(degree, knots, control_points, weights)
    if degree <= 1:
        return np.asarray(control_points, dtype=np.float64).reshape(-1, 3)
    count = max(len(control_points) * degree * NURBS_CURVE_QUALITY, len(control_points) - 1)
    return curve.get_points(count)


def evaluate_surface(
    u_degree: int,
    v_degree: int,
    u_knots: Sequence[float],
    v_knots: Sequence[float],
    control_points: Sequence[Sequence[Sequence[float]]],
    weights: Sequence[float] | None = None,
) -> tuple[Callable[[float, float], np.ndarray], int, int]:
    """Build the parametric function of a surface and its tessellation density.

    ``control_points`` is a list of rows: rows run along v, entries within a
    row along u. ``weights`` is flat and indexed ``weights[j * len(rows) + i]``
    for row ``i``, column ``j``. Returns ``(func, slices, stacks)`` where
    ``func(s, t)`` takes normalised v then u parameters.
    """
    rows = [list(row) for row in control_points]
    if not rows or not rows[0]:
        raise GeometryError("NURBS surface has no control points")
    n_cols = len(rows[0])
    if any(len(row) != n_cols for row in rows):
        raise GeometryError("NURBS surface control points must form a rectangular grid")

    if len(u_knots) != n_cols + u_degree + 1:
        raise GeometryError(
            "Number of uKnots in a NURBS surface should equal uDegree + N + 1, "
            "where N is the number of control points along U direction"
        )
    if len(v_knots) != len(rows) + v_degree + 1:
        raise GeometryError(
            "Number of vKnots in a NURBS surface should equal vDegree + N + 1, "
            "where N is the number of control points along V direction"
        )

    _check_domain(u_degree, n_cols, u_knots, "surface U direction")
    _check_domain(v_degree, len(rows), v_knots, "surface V direction")

    grid = np.asarray(rows, dtype=np.float64).reshape(len(rows), n_cols, 3)
    grid_weights = None
    if weights is not None:
        if len(weights) != len(rows) * n_cols:
            raise GeometryError("NURBS surface needs one weight per control point")
        flat = np.asarray(weights, dtype=np.float64)
        grid_weights = np.array(
            [[flat[j * len(rows) + i] for j in range(n_cols)] for i in range(len(rows))]
        )

    surface = NurbsSurface(v_degree, u_degree, v_knots, u_knots, grid, grid_weights)
    slices = v_degree * len(rows) * NURBS_SURFACE_QUALITY
    stacks = u_degree * n_cols * NURBS_SURFACE_QUALITY
    return surface.get_point, slices, stacks


def parametric_geometry(
    func: Callable[[float, float], np.ndarray], slices: int, stacks: int
) -> Geometry:
    """Tessellate ``func`` over [0, 1]^2 into a (slices x stacks) quad grid."""
    positions = np.array(
        [func(i / slices, j / stacks) for i in range(slices + 1) for j in range(stacks + 1)],
        dtype=np.float64,
    )
    faces = []
    row = stacks + 1
    for i in range(slices):
        for j in range(stacks):
            a = i * row + j
            b = (i + 1) * row + j
            c = (i + 1) * row + j + 1
            d = i * row + j + 1
            faces.append((a, b, d))
            faces.append((b, c, d))
    return Geometry(vertices=positions, faces=faces)
