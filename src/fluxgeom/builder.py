"""High-level conversion: breps, scene elements, then the geometry assembler."""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass
from typing import Any

import numpy as np

from fluxgeom.assembler import build_object
from fluxgeom.brep import (
    BREP,
    RESULT_PREFIX,
    BrepProvider,
    decode_response,
    encode_request,
    map_async_breps,
    split_async_breps,
)
from fluxgeom.errors import GeometryError, ProviderError
from fluxgeom.primitives import BuildContext
from fluxgeom.registry import DEFAULT_REGISTRY, Registry
from fluxgeom.results import BuildResult, set_object_color
from fluxgeom.scene import GROUP, LINE, MESH, SceneNode
from fluxgeom.status import StatusMap
from fluxgeom.vectors import VectorPool
from fluxgeom.warning_policy import WarningPolicy, emit_warning

LAYER = "layer"
GROUP_ELEMENT = "group"
INSTANCE = "instance"
GEOMETRY = "geometry"

# Render-only elements (materials, textures, cameras) are recognised and skipped.
SCENE_PRIMITIVES: frozenset[str] = frozenset(
    {LAYER, GROUP_ELEMENT, INSTANCE, GEOMETRY, "material", "texture", "camera"}
)

SCENE_STATUS = "scene"


@dataclass(frozen=True)
class BuildOptions:
    """Settings shared by every conversion a ``SceneBuilder`` runs."""

    merge_models: bool = True
    warning_policy: WarningPolicy | None = None


def _element_id(element: Any) -> str | None:
    if not isinstance(element, dict) or element.get("id") is None:
        return None
    return str(element["id"])


def _prefixed(record: dict[str, Any], message: str) -> str:
    return message if record.get("id") is None else f"{record['id']}: {message}"


def is_scene(data: Any) -> bool:
    """A flat list holding at least one layer element."""
    return isinstance(data, list) and any(
        isinstance(element, dict) and element.get("primitive") == LAYER for element in data
    )


def element_matrix(values: Any) -> np.ndarray:
    """A 16-number row-major list as a 4x4 matrix."""
    matrix = np.asarray(values, dtype=np.float64)
    if matrix.size != 16:
        raise ValueError("matrix must have 16 elements")
    return matrix.reshape(4, 4)


def check_scene(elements: list[Any]) -> str | None:
    """Return the first structural problem with a scene, or None if it links cleanly."""
    ids: set[str] = set()
    for element in elements:
        element_id = _element_id(element)
        if element_id is None:
            continue
        if element_id in ids:
            return f"Duplicate element id '{element_id}'"
        ids.add(element_id)

    references = {LAYER: "elements", GROUP_ELEMENT: "children"}
    for element in elements:
        element_id = _element_id(element)
        if element_id is None:
            continue
        kind = element.get("primitive")
        if kind in references:
            field_name = references[kind]
            children = element.get(field_name)
            if not isinstance(children, list):
                return f"{kind.capitalize()} '{element_id}' must list its {field_name}"
            for child in children:
                if str(child) not in ids:
                    return f"{kind.capitalize()} '{element_id}' references unknown element '{child}'"
        if kind == INSTANCE and str(element.get("entity")) not in ids:
            return f"Instance '{element_id}' references unknown element '{element.get('entity')}'"
        if kind in (GROUP_ELEMENT, INSTANCE) and element.get("matrix") is not None:
            try:
                element_matrix(element["matrix"])
            except (TypeError, ValueError):
                return f"{kind.capitalize()} '{element_id}' has an invalid matrix"
    return None


def strip_scene(elements: list[Any]) -> list[Any]:
    """Drop scene elements, leaving the plain entities."""
    return [
        None
        if isinstance(element, dict) and element.get("primitive") in SCENE_PRIMITIVES
        else element
        for element in elements
    ]


def _rebuild_child(child: SceneNode) -> SceneNode:
    """A fresh node sharing ``child``'s geometry, with its own material and local transform."""
    material = child.material
    if material is not None:
        material = dataclasses.replace(
            material, color=material.color.copy(), properties=dict(material.properties)
        )
    return SceneNode(
        kind=child.kind,
        geometry=child.geometry,
        material=material,
        name=child.name,
        user_data=dict(child.user_data),
        material_properties=child.material_properties,
        visible=child.visible,
        up=child.up.copy(),
        position=child.position.copy(),
        quaternion=child.quaternion.copy(),
        scale=child.scale.copy(),
    )


class _Linker:
    """Attach scene nodes to their parents; a node has at most one parent."""

    def __init__(self) -> None:
        self._parents: dict[int, SceneNode] = {}

    def attach(self, parent: SceneNode, child: SceneNode | None) -> None:
        if child is None:
            return
        previous = self._parents.get(id(child))
        if previous is not None:
            previous.children.remove(child)
        parent.add(child)
        self._parents[id(child)] = parent


class SceneBuilder:
    """Converts Flux JSON, scene or plain entities, into a ``BuildResult``.

    Breps without inline mesh data go to ``provider`` in one batch before
    anything is built; their STL results take the breps' places in the
    document so they link and merge like any other primitive.
    """

    def __init__(
        self,
        provider: BrepProvider | None = None,
        *,
        options: BuildOptions | None = None,
        registry: Registry | None = None,
    ) -> None:
        self.provider = provider
        self.options = BuildOptions() if options is None else options
        self.registry = DEFAULT_REGISTRY if registry is None else registry

    def set_allow_merge(self, allow_merge: bool) -> None:
        self.options = dataclasses.replace(self.options, merge_models=allow_merge)

    def convert_sync(self, data: Any) -> BuildResult:
        return asyncio.run(self.convert(data))

    async def convert(self, data: Any) -> BuildResult:
        ctx = BuildContext(
            registry=self.registry, policy=self.options.warning_policy, pool=VectorPool()
        )
        status = StatusMap()

        _, breps = split_async_breps(data)
        if breps:
            replacements = iter(await self._tessellate(breps, status))
            data = map_async_breps(data, lambda _: next(replacements))

        if is_scene(data):
            result = self._convert_scene(data, ctx)
        else:
            result = self._build_entity(data, ctx)
        status.update(result.status)
        result.status = status
        return result

    async def _tessellate(
        self, breps: list[dict[str, Any]], status: StatusMap
    ) -> list[dict[str, Any] | None]:
        """Replacement records for ``breps``, in order; None where tessellation failed."""
        if self.provider is None:
            emit_warning(
                "W03",
                f"{len(breps)} brep primitive(s) skipped: no tessellation provider configured",
                policy=self.options.warning_policy,
            )
            status.append_error(BREP, "Tessellation provider was not set")
            return [None] * len(breps)

        try:
            response = await self.provider.tessellate(encode_request(breps))
            decoded = decode_response(response, breps)
        except ProviderError as e:
            status.append_error(BREP, str(e))
            return [None] * len(breps)

        replacements: list[dict[str, Any] | None] = []
        for i, brep in enumerate(breps):
            key = f"{RESULT_PREFIX}{i}"
            record = decoded.records.get(key)
            if record is not None:
                status.append_valid(BREP)
            else:
                message = decoded.errors.get(key, "Tessellation returned no result")
                status.append_error(BREP, _prefixed(brep, message))
            replacements.append(record)
        return replacements

    def _build_entity(self, data: Any, ctx: BuildContext) -> BuildResult:
        return build_object(data, ctx, merge_models=self.options.merge_models)

    def _convert_scene(self, elements: list[Any], ctx: BuildContext) -> BuildResult:
        problem = check_scene(elements)
        if problem is not None:
            result = self._build_entity(strip_scene(elements), ctx)
            result.status.clear()
            result.status.append_error(SCENE_STATUS, problem)
            return result

        result = BuildResult(mesh=SceneNode(kind=GROUP))
        nodes: dict[str, SceneNode] = {}
        for element in elements:
            element_id = _element_id(element)
            if element_id is None:
                continue
            kind = element.get("primitive")
            if kind in (LAYER, GROUP_ELEMENT, INSTANCE):
                node = SceneNode(kind=GROUP)
            elif kind in SCENE_PRIMITIVES and kind != GEOMETRY:
                continue
            else:
                entity = element.get("entities") if kind == GEOMETRY else element
                built = self._build_entity(entity, ctx)
                result.status.update(built.status)
                result.objects.update(built.objects)
                node = built.get_object()
                if node is None:
                    continue
            node.name = f"{kind}:{element_id}"
            node.user_data["id"] = element["id"]
            node.user_data["primitive"] = kind
            nodes[element_id] = node
            result.objects[element_id] = node

        self._link(elements, nodes, result)
        return result

    def _link(
        self, elements: list[Any], nodes: dict[str, SceneNode], result: BuildResult
    ) -> None:
        linker = _Linker()
        layers: list[tuple[SceneNode, dict[str, Any]]] = []
        for element in elements:
            element_id = _element_id(element)
            node = nodes.get(element_id) if element_id is not None else None
            if node is None:
                continue
            kind = element["primitive"]
            if kind == LAYER:
                for child_id in element["elements"]:
                    linker.attach(node, nodes.get(str(child_id)))
                if element.get("visible") is not None:
                    node.visible = bool(element["visible"])
                linker.attach(result.mesh, node)
                layers.append((node, element))
            elif kind == GROUP_ELEMENT:
                if element.get("matrix") is not None:
                    node.set_matrix(element_matrix(element["matrix"]))
                for child_id in element["children"]:
                    linker.attach(node, nodes.get(str(child_id)))
            elif kind == INSTANCE:
                if element.get("matrix") is not None:
                    node.set_matrix(element_matrix(element["matrix"]))
                target = nodes.get(str(element["entity"]))
                if target is None:
                    continue
                for child in list(target.traverse()):
                    if child.kind in (MESH, LINE):
                        copy = node.add(_rebuild_child(child))
                        if copy.user_data.get("id") is not None:
                            result.objects[str(copy.user_data["id"])] = copy

        for layer, element in layers:
            try:
                set_object_color(layer, element.get("color"))
            except GeometryError as e:
                result.status.append_error(LAYER, _prefixed(element, str(e)))
