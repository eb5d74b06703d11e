"""Recursive scene assembly from arbitrarily nested Flux JSON."""

from __future__ import annotations

import enum
from typing import Any

import numpy as np

from fluxgeom.errors import GeometryError
from fluxgeom.geometry import BufferGeometry, Geometry, upgrade_children_to_buffer
from fluxgeom.primitives import BuildContext, create_primitive
from fluxgeom.results import BuildResult
from fluxgeom.scene import GROUP, MESH, POINTS, SceneNode

ENTITIES_KEY = "Entities"


class Shape(enum.Enum):
    PRIMITIVE = "primitive"
    ENTITY_MAP = "entity_map"
    LIST = "list"
    UNRECOGNIZED = "unrecognized"


def classify(data: Any) -> Shape:
    """Decide how a JSON value is built; everything else is ignored."""
    if isinstance(data, dict):
        if isinstance(data.get("primitive"), str):
            return Shape.PRIMITIVE
        if isinstance(data.get(ENTITIES_KEY), dict):
            return Shape.ENTITY_MAP
        return Shape.UNRECOGNIZED
    if isinstance(data, (list, tuple)):
        return Shape.LIST
    return Shape.UNRECOGNIZED


def can_merge(node: SceneNode) -> bool:
    """Anonymous meshes with mergeable geometry, or anonymous point clouds."""
    if node.material_properties is not None or node.user_data or node.children:
        return False
    if node.kind == MESH:
        return isinstance(node.geometry, Geometry)
    if node.kind == POINTS:
        return isinstance(node.geometry, BufferGeometry)
    return False


def _merge_target(group: SceneNode, node: SceneNode) -> SceneNode | None:
    for sibling in reversed(group.children):
        if (
            sibling.kind == node.kind
            and can_merge(sibling)
            and sibling.material.name == node.material.name
        ):
            return sibling
    return None


def merge_into(target: SceneNode, node: SceneNode) -> None:
    """Fold ``node``'s geometry into ``target``, expressed in ``target``'s local space."""
    matrix = np.linalg.inv(target.matrix) @ node.matrix
    target.geometry.merge(node.geometry, matrix)


def _add_child(group: SceneNode, node: SceneNode, merge_models: bool) -> None:
    if merge_models and can_merge(node):
        target = _merge_target(group, node)
        if target is not None:
            merge_into(target, node)
            return
    group.add(node)


def _build_primitive(data: dict[str, Any], ctx: BuildContext) -> BuildResult:
    result = BuildResult()
    kind, _ = ctx.registry.resolve(data["primitive"])
    try:
        node = create_primitive(data, ctx)
    except GeometryError as e:
        element_id = data.get("id")
        message = str(e) if element_id is None else f"{element_id}: {e}"
        result.status.append_error(kind, message)
        return result

    result.status.append_valid(kind)
    result.mesh = node
    if data.get("id") is not None:
        result.objects[str(data["id"])] = node
    return result


def _build(data: Any, ctx: BuildContext, merge_models: bool) -> BuildResult:
    shape = classify(data)
    if shape is Shape.PRIMITIVE:
        return _build_primitive(data, ctx)

    if shape is Shape.ENTITY_MAP:
        result = BuildResult(mesh=SceneNode(kind=GROUP))
        for name, value in data[ENTITIES_KEY].items():
            child = _build(value, ctx, merge_models)
            result.status.update(child.status)
            result.objects.update(child.objects)
            if child.mesh is not None:
                if not child.mesh.name:
                    child.mesh.name = str(name)
                result.mesh.add(child.mesh)
        if not result.mesh.children:
            result.mesh = None
        return result

    if shape is Shape.LIST:
        result = BuildResult(mesh=SceneNode(kind=GROUP))
        for element in data:
            child = _build(element, ctx, merge_models)
            result.status.update(child.status)
            result.objects.update(child.objects)
            if child.mesh is not None:
                _add_child(result.mesh, child.mesh, merge_models)
        upgrade_children_to_buffer(result.mesh)
        if not result.mesh.children:
            result.mesh = None
        return result

    return BuildResult()


def build_object(
    data: Any, ctx: BuildContext | None = None, *, merge_models: bool = True
) -> BuildResult:
    """Build a scene from a primitive, an entities map, or a nested list of them.

    Failing primitives are recorded in the result's status instead of
    raising. The root is always a Group; unrecognised input (numbers,
    strings, None) yields an empty result with no errors.
    """
    ctx = BuildContext() if ctx is None else ctx
    try:
        result = _build(data, ctx, merge_models)
    finally:
        ctx.pool.clear()

    if result.mesh is not None and classify(data) is Shape.PRIMITIVE:
        root = SceneNode(kind=GROUP)
        root.add(result.mesh)
        result.mesh = root
    if result.mesh is not None:
        upgrade_children_to_buffer(result.mesh)
    return result
