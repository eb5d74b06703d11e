"""The outcome of one build: a scene tree plus its status report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from fluxgeom.materials import parse_color
from fluxgeom.scene import SceneNode
from fluxgeom.status import StatusMap


def set_object_color(node: SceneNode, color: Any) -> None:
    """Recolour a subtree: vertex colours go white and the material takes ``color``."""
    if color is None:
        return
    rgb = parse_color(color)
    for child in node.traverse():
        if child.geometry is not None and child.material is not None:
            if child.geometry.has_colors:
                child.geometry.set_color((1.0, 1.0, 1.0))
            child.material.color = rgb.copy()


@dataclass
class BuildResult:
    """A possibly partial scene and the status of every primitive kind seen.

    ``mesh`` is None when nothing could be built. ``objects`` maps
    user-supplied element ids to their nodes.
    """

    mesh: SceneNode | None = None
    status: StatusMap = field(default_factory=StatusMap)
    objects: dict[str, SceneNode] = field(default_factory=dict)

    @property
    def invalid_prims(self) -> frozenset[str]:
        return self.status.invalid_keys()

    def get_object(self) -> SceneNode | None:
        if self.mesh is None or (self.mesh.geometry is None and not self.mesh.children):
            return None
        return self.mesh

    def is_empty(self) -> bool:
        return self.get_object() is None

    def get_error_summary(self) -> str:
        return self.status.invalid_key_summary()

    def get_object_by_id(self, element_id: Any) -> SceneNode | None:
        return self.objects.get(str(element_id))

    def set_element_visible(self, element_id: Any, visible: bool) -> None:
        node = self.get_object_by_id(element_id)
        if node is not None:
            node.visible = visible

    def set_element_color(self, element_id: Any, color: Any) -> None:
        node = self.get_object_by_id(element_id)
        if node is not None:
            set_object_color(node, color)

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray] | None:
        """World-space bounds of every geometry in the tree."""
        root = self.get_object()
        if root is None:
            return None
        lows = []
        highs = []
        for node, world in root.world_matrices():
            if node.geometry is None or node.geometry.vertex_count == 0:
                continue
            lo, hi = node.geometry.bounding_box()
            corners = np.array(
                [[x, y, z, 1.0] for x in (lo[0], hi[0]) for y in (lo[1], hi[1]) for z in (lo[2], hi[2])]
            )
            placed = (world @ corners.T).T[:, :3]
            lows.append(placed.min(axis=0))
            highs.append(placed.max(axis=0))
        if not lows:
            return None
        return np.min(lows, axis=0), np.max(highs, axis=0)
