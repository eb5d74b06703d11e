"""Sheet primitive builders: open surfaces rendered as shaded meshes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from fluxgeom import models
from fluxgeom.errors import GeometryError
from fluxgeom.geometry import Geometry
from fluxgeom.materials import Material
from fluxgeom.nurbs import evaluate_surface, parametric_geometry
from fluxgeom.polygons import triangulate_polygon_set
from fluxgeom.scene import MESH, SceneNode

if TYPE_CHECKING:
    from fluxgeom.primitives import BuildContext

SHEET = "sheet"


def surface(record: models.SurfaceRecord, material: Material, ctx: BuildContext) -> SceneNode:
    func, slices, stacks = evaluate_surface(
        record.uDegree,
        record.vDegree,
        record.uKnots,
        record.vKnots,
        record.controlPoints,
        record.weights,
    )
    geometry = parametric_geometry(func, slices, stacks)
    geometry.compute_vertex_normals()
    return SceneNode(kind=MESH, geometry=geometry, material=material)


def polygon_set(record: models.PolygonSetRecord, material: Material, ctx: BuildContext) -> SceneNode:
    geometry = triangulate_polygon_set(
        [(polygon.boundary, polygon.holes) for polygon in record.polygons],
        policy=ctx.policy,
        pool=ctx.pool,
    )
    return SceneNode(kind=MESH, geometry=geometry, material=material)


def polysurface(record: models.PolysurfaceRecord, material: Material, ctx: BuildContext) -> SceneNode:
    """One mesh holding every child surface. Every child must be a sheet primitive."""
    if not record.surfaces:
        raise GeometryError("Polysurface has no surfaces")
    merged = Geometry(vertices=np.zeros((0, 3)), faces=np.zeros((0, 3)))
    for data in record.surfaces:
        child = ctx.build_child(data, SHEET, container="polysurface", material=material)
        merged.merge(child.geometry, child.matrix)
    return SceneNode(kind=MESH, geometry=merged, material=material)
