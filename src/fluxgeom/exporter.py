"""glTF/GLB export of a built scene via pygltflib."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any

import numpy as np
import pygltflib

from fluxgeom.errors import ExportError
from fluxgeom.geometry import BufferGeometry, Geometry
from fluxgeom.materials import Material
from fluxgeom.scene import LINE, MESH, POINTS, SceneNode

PRIMITIVE_MODES = {
    MESH: pygltflib.TRIANGLES,
    LINE: pygltflib.LINE_STRIP,
    POINTS: pygltflib.POINTS,
}

# Flux is Z-up, glTF is Y-up: -90 degrees about X.
Z_UP_TO_Y_UP = [-math.sqrt(0.5), 0.0, 0.0, math.sqrt(0.5)]


def _write_buffer_view_and_accessor(
    gltf: pygltflib.GLTF2,
    blob_data: bytearray,
    data_array: np.ndarray,
    component_type: int,
    accessor_type: str,
    target: int | None = None,
    *,
    include_min_max: bool = False,
) -> int:
    """Write a buffer view and accessor, returning the accessor index."""
    offset = len(blob_data)
    data_bytes = data_array.tobytes()
    blob_data.extend(data_bytes)

    bv_idx = len(gltf.bufferViews)
    bv = pygltflib.BufferView(
        buffer=0,
        byteOffset=offset,
        byteLength=len(data_bytes),
    )
    if target is not None:
        bv.target = target
    gltf.bufferViews.append(bv)

    acc_kwargs: dict = {
        "bufferView": bv_idx,
        "byteOffset": 0,
        "componentType": component_type,
        "count": len(data_array),
        "type": accessor_type,
    }
    if include_min_max:
        acc_kwargs["min"] = data_array.min(axis=0).tolist()
        acc_kwargs["max"] = data_array.max(axis=0).tolist()

    acc_idx = len(gltf.accessors)
    gltf.accessors.append(pygltflib.Accessor(**acc_kwargs))
    return acc_idx


def _vec3_accessor(gltf: pygltflib.GLTF2, blob_data: bytearray, values: np.ndarray, **kwargs) -> int:
    return _write_buffer_view_and_accessor(
        gltf,
        blob_data,
        np.ascontiguousarray(values, dtype=np.float32),
        pygltflib.FLOAT,
        pygltflib.VEC3,
        pygltflib.ARRAY_BUFFER,
        **kwargs,
    )


def _build_material(material: Material) -> pygltflib.Material:
    """Build a glTF Material from a scene material."""
    props = material.properties
    base_color = [float(np.float32(c)) for c in material.color] + [material.opacity]
    gltf_material = pygltflib.Material(
        name=material.name or material.type,
        pbrMetallicRoughness=pygltflib.PbrMetallicRoughness(
            baseColorFactor=base_color,
            metallicFactor=float(props.get("metalness", 0.0)),
            roughnessFactor=float(props.get("roughness", 1.0)),
        ),
        alphaMode="BLEND" if material.transparent else "OPAQUE",
        doubleSided=props.get("side", "double") == "double",
    )
    if props.get("emissive") is not None:
        gltf_material.emissiveFactor = [float(c) for c in props["emissive"]]
    return gltf_material


def _material_index(
    gltf: pygltflib.GLTF2, material: Material | None, material_map: dict[tuple, int]
) -> int | None:
    if material is None:
        return None
    key = (material.name, tuple(np.round(material.color, 6)), material.opacity)
    if key not in material_map:
        material_map[key] = len(gltf.materials)
        gltf.materials.append(_build_material(material))
    return material_map[key]


def _build_mesh(
    gltf: pygltflib.GLTF2,
    node: SceneNode,
    blob_data: bytearray,
    material_map: dict[tuple, int],
) -> int | None:
    """Append a glTF mesh for a leaf node, returning its index or None if it is empty."""
    geometry = node.geometry
    if isinstance(geometry, Geometry):
        geometry = BufferGeometry.from_geometry(geometry)
    if geometry is None or geometry.vertex_count == 0:
        return None

    attributes = pygltflib.Attributes(
        POSITION=_vec3_accessor(gltf, blob_data, geometry.position, include_min_max=True)
    )
    if node.kind == MESH and "normal" in geometry.attributes:
        attributes.NORMAL = _vec3_accessor(gltf, blob_data, geometry.attributes["normal"])
    if geometry.has_colors:
        attributes.COLOR_0 = _vec3_accessor(gltf, blob_data, geometry.attributes["color"])

    primitive = pygltflib.Primitive(
        attributes=attributes,
        mode=PRIMITIVE_MODES[node.kind],
        material=_material_index(gltf, node.material, material_map),
    )
    gltf.meshes.append(pygltflib.Mesh(name=node.name or None, primitives=[primitive]))
    return len(gltf.meshes) - 1


def _extras(node: SceneNode) -> dict[str, Any]:
    extras: dict[str, Any] = dict(node.user_data)
    if not node.visible:
        extras["visible"] = False
    return extras


def _build_node(
    gltf: pygltflib.GLTF2,
    node: SceneNode,
    blob_data: bytearray,
    material_map: dict[tuple, int],
) -> int:
    """Append ``node`` and its subtree, returning the node index."""
    gltf_node = pygltflib.Node(name=node.name or None, extras=_extras(node))
    if not node.is_identity():
        gltf_node.translation = [float(v) for v in node.position]
        gltf_node.rotation = [float(v) for v in node.quaternion]
        gltf_node.scale = [float(v) for v in node.scale]
    if node.kind in PRIMITIVE_MODES:
        gltf_node.mesh = _build_mesh(gltf, node, blob_data, material_map)

    node_idx = len(gltf.nodes)
    gltf.nodes.append(gltf_node)
    children = [_build_node(gltf, child, blob_data, material_map) for child in node.children]
    if children:
        gltf_node.children = children
    return node_idx


def build_gltf(root: SceneNode, *, y_up: bool = True) -> pygltflib.GLTF2:
    """Build the complete glTF2 structure for a scene tree."""
    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[])],
        nodes=[],
        meshes=[],
        accessors=[],
        bufferViews=[],
        buffers=[],
        materials=[],
    )

    blob_data = bytearray()
    material_map: dict[tuple, int] = {}
    root_idx = _build_node(gltf, root, blob_data, material_map)
    if y_up:
        root_node = gltf.nodes[root_idx]
        if root_node.rotation is None:
            root_node.rotation = list(Z_UP_TO_Y_UP)
        else:
            wrapper = pygltflib.Node(name="z-up", rotation=list(Z_UP_TO_Y_UP), children=[root_idx])
            gltf.nodes.append(wrapper)
            root_idx = len(gltf.nodes) - 1
    gltf.scenes[0].nodes = [root_idx]

    gltf.buffers = [pygltflib.Buffer(byteLength=len(blob_data))]
    gltf.set_binary_blob(bytes(blob_data))
    return gltf


def export_glb_bytes(root: SceneNode, *, y_up: bool = True) -> bytes:
    return b"".join(build_gltf(root, y_up=y_up).save_to_bytes())


def export_glb(root: SceneNode | None, output_path: Path, *, y_up: bool = True) -> None:
    """Write ``root`` to ``output_path`` as binary glTF."""
    if root is None:
        raise ExportError("Nothing to export: the scene is empty")
    data = export_glb_bytes(root, y_up=y_up)
    try:
        Path(output_path).write_bytes(data)
    except OSError as e:
        raise ExportError(f"Cannot write {output_path}: {e}") from e
