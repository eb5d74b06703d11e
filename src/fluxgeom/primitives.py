"""Build one primitive record into a scene node."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from fluxgeom.constants import TOLERANCE, Z_UP
from fluxgeom.errors import CompositionError, GeometryError
from fluxgeom.materials import Material, create_material, find_material_properties
from fluxgeom.models import PrimitiveRecord, validate_record
from fluxgeom.registry import DEFAULT_REGISTRY, Registry
from fluxgeom.scene import SceneNode
from fluxgeom.vectors import DEFAULT_POOL, VectorPool
from fluxgeom.warning_policy import WarningPolicy

RIGHT = np.array([1.0, 0.0, 0.0])
IN = np.array([0.0, 1.0, 0.0])
UP = np.array(Z_UP)


@dataclass
class BuildContext:
    """What a builder may use beyond its record and material."""

    registry: Registry = field(default_factory=lambda: DEFAULT_REGISTRY)
    policy: WarningPolicy | None = None
    pool: VectorPool = field(default_factory=lambda: DEFAULT_POOL)

    def build_child(
        self,
        data: Any,
        entity_type: str,
        *,
        container: str,
        material: Material | None = None,
    ) -> SceneNode:
        """Build a container's child, which must resolve to ``entity_type``.

        A child of the wrong entity type fails the whole container.
        """
        if not isinstance(data, dict) or not isinstance(data.get("primitive"), str):
            raise CompositionError(f"{container} children must be primitive records")
        kind, spec = self.registry.resolve(data["primitive"])
        if spec is None or spec.entity_type != entity_type:
            raise CompositionError(
                f"{container} may only contain {entity_type} primitives, got '{kind}'"
            )
        return create_primitive(data, self, material=material)


def create_primitive(
    data: dict[str, Any],
    ctx: BuildContext | None = None,
    *,
    material: Material | None = None,
) -> SceneNode:
    """Create the scene node for one primitive record.

    Raises ``GeometryError`` when the kind is unknown or the record is
    malformed. ``material`` replaces the resolved material; containers use it
    to pass theirs on to their children.
    """
    ctx = BuildContext() if ctx is None else ctx
    kind, spec = ctx.registry.resolve(data.get("primitive"))
    if spec is None:
        raise GeometryError(f"Unsupported geometry type: {kind}")

    canonical = dict(data, primitive=kind)
    record = validate_record(spec.model, canonical)
    material_properties = find_material_properties(data)
    if material is None:
        material = create_material(spec.material_type, material_properties)
    else:
        material = dataclasses.replace(
            material, color=material.color.copy(), properties=dict(material.properties)
        )

    node = spec.builder(record, material, ctx)
    if node is None:
        raise GeometryError(f"Unsupported geometry type: {kind}")
    return cleanup_mesh(node, record, material_properties)


def _move_material_color_to_geometry(node: SceneNode) -> None:
    """Carry material colour on the vertices so differently coloured meshes can merge.

    The material colour is reset to white afterwards since renderers multiply
    material and vertex colour.
    """
    materials: dict[int, Material] = {}
    for child in node.traverse():
        if child.material is None:
            continue
        materials[id(child.material)] = child.material
        geometry = child.geometry
        if geometry is None:
            continue
        if not geometry.has_colors:
            geometry.set_color(child.material.color)
    for material in materials.values():
        material.color = np.ones(3, dtype=np.float64)


def cleanup_mesh(
    node: SceneNode, record: PrimitiveRecord, material_properties: dict[str, Any] | None = None
) -> SceneNode:
    """Place, orient and tag a freshly built node."""
    _move_material_color_to_geometry(node)

    node.material_properties = material_properties
    if record.origin is not None:
        node.position = np.array(record.origin, dtype=np.float64)

    axis = record.orientation
    if record.reference is not None or axis is not None:
        axis_vec = UP.copy()
        if axis is not None:
            axis_vec = _unit(axis)

        reference_vec = RIGHT.copy()
        if record.reference is not None:
            reference_vec = _unit(record.reference)
        elif np.sum((reference_vec - axis_vec) ** 2) < TOLERANCE:
            reference_vec = IN.copy()

        up = np.cross(reference_vec, axis_vec)
        node.up = up if np.linalg.norm(up) > TOLERANCE else UP.copy()
        node.look_at(node.position + axis_vec)

    if record.tag is not None:
        node.user_data["tag"] = record.tag
    if record.id is not None:
        node.user_data["id"] = record.id
        node.name = str(record.id)
    return node


def _unit(values) -> np.ndarray:
    vec = np.asarray(values, dtype=np.float64)
    length = np.linalg.norm(vec)
    if length == 0:
        raise GeometryError("Orientation vector has length zero")
    return vec / length
