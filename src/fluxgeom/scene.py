"""Scene graph nodes produced by the builders."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from fluxgeom.constants import EULER_ORDER, Z_UP
from fluxgeom.transforms import compose, decompose, look_at_rotation, matrix_to_quat

GROUP = "Group"
MESH = "Mesh"
LINE = "Line"
POINTS = "Points"

NODE_KINDS: frozenset[str] = frozenset({GROUP, MESH, LINE, POINTS})


@dataclass(eq=False)
class SceneNode:
    """One node of the output tree.

    Leaf nodes (Mesh/Line/Points) own one geometry and one material; Group
    nodes only hold children. ``material_properties`` keeps the raw
    per-element overrides the node was built with so the merge pass can tell
    it apart from anonymous geometry.
    """

    kind: str = GROUP
    geometry: Any = None
    material: Any = None
    children: list[SceneNode] = field(default_factory=list)
    name: str = ""
    user_data: dict[str, Any] = field(default_factory=dict)
    material_properties: dict[str, Any] | None = None
    visible: bool = True
    up: np.ndarray = field(default_factory=lambda: np.array(Z_UP, dtype=np.float64))
    rotation_order: str = EULER_ORDER
    position: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    quaternion: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)
    )
    scale: np.ndarray = field(default_factory=lambda: np.ones(3, dtype=np.float64))

    def __post_init__(self) -> None:
        if self.kind not in NODE_KINDS:
            raise ValueError(f"Unknown node kind: {self.kind!r}")

    def add(self, child: SceneNode) -> SceneNode:
        self.children.append(child)
        return child

    @property
    def matrix(self) -> np.ndarray:
        return compose(self.position, self.quaternion, self.scale)

    def set_matrix(self, matrix) -> None:
        """Replace the local transform with a 4x4 matrix."""
        self.position, self.quaternion, self.scale = decompose(np.asarray(matrix, dtype=np.float64))

    def is_identity(self) -> bool:
        return bool(np.allclose(self.matrix, np.eye(4)))

    def look_at(self, target) -> None:
        """Rotate so local +z points at ``target``, keeping ``up`` as the roll reference."""
        rot = look_at_rotation(self.position, np.asarray(target, dtype=np.float64), self.up)
        self.quaternion = matrix_to_quat(rot)

    def traverse(self) -> Iterator[SceneNode]:
        yield self
        for child in self.children:
            yield from child.traverse()

    def world_matrices(self, parent: np.ndarray | None = None) -> Iterator[tuple[SceneNode, np.ndarray]]:
        """Yield every node with its world matrix."""
        world = self.matrix if parent is None else parent @ self.matrix
        yield self, world
        for child in self.children:
            yield from child.world_matrices(world)

    def count_vertices(self) -> int:
        return sum(
            node.geometry.vertex_count for node in self.traverse() if node.geometry is not None
        )

    def describe(self) -> dict[str, Any]:
        """Structural summary used by ``inspect`` and equality checks in tests."""
        info: dict[str, Any] = {"type": self.kind}
        if self.name:
            info["name"] = self.name
        if self.geometry is not None:
            info["geometry"] = type(self.geometry).__name__
            info["vertices"] = self.geometry.vertex_count
        if self.user_data:
            info["user_data"] = dict(self.user_data)
        if not self.visible:
            info["visible"] = False
        if self.children:
            info["children"] = [child.describe() for child in self.children]
        return info
