"""Wire primitive builders: curve-like geometry rendered as lines."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from fluxgeom import models
from fluxgeom.arcs import is_degenerate, tessellate_arc
from fluxgeom.constants import CIRCLE_RES
from fluxgeom.errors import GeometryError
from fluxgeom.geometry import BufferGeometry
from fluxgeom.materials import Material
from fluxgeom.nurbs import evaluate_curve
from fluxgeom.scene import GROUP, LINE, POINTS, SceneNode
from fluxgeom.warning_policy import emit_warning

if TYPE_CHECKING:
    from fluxgeom.primitives import BuildContext

WIRE = "wire"

# Arrow drawn for vector primitives: half width, length, base of the head.
ARROW_HALF_WIDTH = 0.03
ARROW_LENGTH = 1.0
ARROW_HEAD_BASE = 0.85


def _line(positions, material: Material) -> SceneNode:
    return SceneNode(kind=LINE, geometry=BufferGeometry.from_positions(positions), material=material)


def line(record: models.LineRecord, material: Material, ctx: BuildContext) -> SceneNode:
    return _line([record.start, record.end], material)


def polyline(record: models.PolylineRecord, material: Material, ctx: BuildContext) -> SceneNode:
    if not record.points:
        raise GeometryError("Polyline has no points")
    return _line(record.points, material)


def circle(record: models.CircleRecord, material: Material, ctx: BuildContext) -> SceneNode:
    """Closed loop of ``CIRCLE_RES`` points in the xy plane; first and last coincide."""
    t = np.arange(CIRCLE_RES) * (2 * math.pi / (CIRCLE_RES - 1))
    positions = np.column_stack(
        [record.radius * np.cos(t), record.radius * np.sin(t), np.zeros(CIRCLE_RES)]
    )
    return _line(positions, material)


def rectangle(record: models.RectangleRecord, material: Material, ctx: BuildContext) -> SceneNode:
    dx = record.dimensions[0] * 0.5
    dy = record.dimensions[1] * 0.5
    positions = [(-dx, dy, 0), (dx, dy, 0), (dx, -dy, 0), (-dx, -dy, 0), (-dx, dy, 0)]
    return _line(positions, material)


def ellipse(record: models.EllipseRecord, material: Material, ctx: BuildContext) -> SceneNode:
    t = np.linspace(0.0, 2 * math.pi, CIRCLE_RES + 1)
    positions = np.column_stack(
        [
            record.majorRadius * np.cos(t),
            record.minorRadius * np.sin(t),
            np.zeros(len(t)),
        ]
    )
    return _line(positions, material)


def vector(record: models.VectorRecord, material: Material, ctx: BuildContext) -> SceneNode:
    """Unit arrow along +z, turned to point along ``coords``."""
    direction = np.asarray(record.coords, dtype=np.float64)
    length = np.linalg.norm(direction)
    if length == 0:
        raise GeometryError("Vector primitive has length zero")
    direction = direction / length

    d = ARROW_HALF_WIDTH
    tip = ARROW_LENGTH
    c = ARROW_HEAD_BASE
    positions = [
        # shaft
        (0, 0, 0),
        (0, 0, tip),
        # head
        (d, d, c),
        (d, -d, c),
        (0, 0, tip),
        (-d, d, c),
        (-d, -d, c),
        (0, 0, tip),
        (d, -d, c),
        (-d, -d, c),
        (0, 0, tip),
        (d, d, c),
        (-d, d, c),
    ]
    node = _line(positions, material)
    node.look_at(direction)
    return node


def point(record: models.PointRecord, material: Material, ctx: BuildContext) -> SceneNode:
    return SceneNode(
        kind=POINTS, geometry=BufferGeometry.from_positions([record.point]), material=material
    )


def arc(record: models.ArcRecord, material: Material, ctx: BuildContext) -> SceneNode:
    start = np.asarray(record.start)
    middle = np.asarray(record.middle)
    end = np.asarray(record.end)
    if is_degenerate(middle - start, end - middle):
        emit_warning("W01", "Degenerate arc drawn as straight segments", policy=ctx.policy, subject=record.id)
    return _line(tessellate_arc(start, middle, end, pool=ctx.pool), material)


def curve(record: models.CurveRecord, material: Material, ctx: BuildContext) -> SceneNode:
    positions = evaluate_curve(record.degree, record.knots, record.controlPoints, record.weights)
    return _line(positions, material)


def polycurve(record: models.PolycurveRecord, material: Material, ctx: BuildContext) -> SceneNode:
    """Group of line children. Every child must be a wire primitive."""
    if not record.curves:
        raise GeometryError("Polycurve has no curves")
    group = SceneNode(kind=GROUP)
    for data in record.curves:
        group.add(ctx.build_child(data, WIRE, container="polycurve", material=material))
    return group
