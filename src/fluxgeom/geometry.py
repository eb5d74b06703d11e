"""Geometry containers: mergeable indexed triangles and flat GPU-ready buffers."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from fluxgeom.transforms import bake_normals, bake_transform


def _as_vertices(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).reshape(-1, 3)


def _as_faces(values) -> np.ndarray:
    return np.asarray(values, dtype=np.int64).reshape(-1, 3)


@dataclass
class Geometry:
    """Indexed triangle geometry that can still be merged in place.

    ``colors`` holds one RGB triple per vertex. ``normals`` holds one normal
    per face corner, shape (M, 3, 3), so hard edges survive vertex sharing.
    """

    vertices: np.ndarray
    faces: np.ndarray
    colors: np.ndarray | None = None
    normals: np.ndarray | None = None

    def __post_init__(self) -> None:
        self.vertices = _as_vertices(self.vertices)
        self.faces = _as_faces(self.faces)

    @classmethod
    def from_indexed(
        cls,
        positions: np.ndarray,
        indices: np.ndarray,
        vertex_normals: np.ndarray | None = None,
    ) -> Geometry:
        """Build from flat triangle indices and optional per-vertex normals."""
        geom = cls(vertices=positions, faces=indices)
        if vertex_normals is not None:
            geom.normals = _as_vertices(vertex_normals)[geom.faces]
        return geom

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def has_colors(self) -> bool:
        return self.colors is not None

    def face_normals(self) -> np.ndarray:
        """Unit normal of every face, (M, 3). Degenerate faces get a zero normal."""
        if self.face_count == 0:
            return np.zeros((0, 3), dtype=np.float64)
        tri = self.vertices[self.faces]
        cross = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
        lengths = np.linalg.norm(cross, axis=1, keepdims=True)
        lengths[lengths == 0.0] = 1.0
        return cross / lengths

    def compute_flat_normals(self) -> None:
        self.normals = np.repeat(self.face_normals()[:, None, :], 3, axis=1)

    def compute_vertex_normals(self) -> None:
        """Smooth normals: every corner gets the average of the faces sharing its vertex."""
        face_normals = self.face_normals()
        accum = np.zeros_like(self.vertices)
        for corner in range(3):
            np.add.at(accum, self.faces[:, corner], face_normals)
        lengths = np.linalg.norm(accum, axis=1, keepdims=True)
        lengths[lengths == 0.0] = 1.0
        self.normals = (accum / lengths)[self.faces]

    def resolved_normals(self) -> np.ndarray:
        if self.normals is None:
            self.compute_flat_normals()
        return self.normals

    def set_color(self, rgb) -> None:
        self.colors = np.tile(np.asarray(rgb, dtype=np.float64), (self.vertex_count, 1))

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        return _bounds(self.vertices)

    def apply_matrix(self, matrix: np.ndarray) -> None:
        self.vertices = bake_transform(self.vertices, matrix)
        if self.normals is not None:
            flat = bake_normals(self.normals.reshape(-1, 3), matrix)
            self.normals = flat.reshape(-1, 3, 3)

    def merge(self, other: Geometry, matrix: np.ndarray | None = None) -> None:
        """Append ``other`` into this geometry, transformed by ``matrix`` if given."""
        other_vertices = other.vertices
        other_normals = other.resolved_normals()
        if matrix is not None:
            other_vertices = bake_transform(other_vertices, matrix)
            other_normals = bake_normals(other_normals.reshape(-1, 3), matrix).reshape(-1, 3, 3)

        offset = self.vertex_count
        self.normals = np.concatenate([self.resolved_normals(), other_normals], axis=0)
        if self.colors is not None or other.colors is not None:
            self.colors = np.concatenate(
                [_colors_or_white(self.colors, offset), _colors_or_white(other.colors, other.vertex_count)],
                axis=0,
            )
        self.vertices = np.concatenate([self.vertices, other_vertices], axis=0)
        self.faces = np.concatenate([self.faces, other.faces + offset], axis=0)

    def copy(self) -> Geometry:
        return Geometry(
            vertices=self.vertices.copy(),
            faces=self.faces.copy(),
            colors=None if self.colors is None else self.colors.copy(),
            normals=None if self.normals is None else self.normals.copy(),
        )


@dataclass
class BufferGeometry:
    """Flat, non-indexed vertex buffers keyed by attribute name.

    Attributes are ``position``, ``normal`` and ``color``, each (N, 3) float32.
    Triangles are consecutive vertex triples; lines and points use the
    vertices in order.
    """

    attributes: dict[str, np.ndarray] = field(default_factory=dict)

    @classmethod
    def from_positions(cls, positions, colors=None) -> BufferGeometry:
        geom = cls({"position": np.asarray(positions, dtype=np.float32).reshape(-1, 3)})
        if colors is not None:
            geom.attributes["color"] = np.asarray(colors, dtype=np.float32).reshape(-1, 3)
        return geom

    @classmethod
    def from_indexed(cls, positions, normals, indices) -> BufferGeometry:
        """Expand indexed triangles into flat buffers."""
        idx = np.asarray(indices, dtype=np.int64)
        return cls(
            {
                "position": _as_vertices(positions)[idx].astype(np.float32),
                "normal": _as_vertices(normals)[idx].astype(np.float32),
            }
        )

    @classmethod
    def from_geometry(cls, geometry: Geometry) -> BufferGeometry:
        """Upgrade an indexed ``Geometry`` to flat buffers."""
        faces = geometry.faces.reshape(-1)
        attributes = {
            "position": geometry.vertices[faces].astype(np.float32),
            "normal": geometry.resolved_normals().reshape(-1, 3).astype(np.float32),
        }
        if geometry.colors is not None:
            attributes["color"] = geometry.colors[faces].astype(np.float32)
        return cls(attributes)

    @property
    def position(self) -> np.ndarray:
        return self.attributes["position"]

    @property
    def vertex_count(self) -> int:
        return len(self.attributes.get("position", ()))

    @property
    def has_colors(self) -> bool:
        return "color" in self.attributes

    def set_color(self, rgb) -> None:
        self.attributes["color"] = np.tile(
            np.asarray(rgb, dtype=np.float32), (self.vertex_count, 1)
        )

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        return _bounds(self.position)

    def apply_matrix(self, matrix: np.ndarray) -> None:
        self.attributes["position"] = bake_transform(self.position, matrix).astype(np.float32)
        if "normal" in self.attributes:
            self.attributes["normal"] = bake_normals(self.attributes["normal"], matrix).astype(
                np.float32
            )

    def merge(self, other: BufferGeometry, matrix: np.ndarray | None = None) -> None:
        """Concatenate ``other``'s buffers, transformed by ``matrix`` if given.

        Only attributes present on both sides survive, except colour, which
        defaults to white where missing.
        """
        incoming = BufferGeometry({k: v.copy() for k, v in other.attributes.items()})
        if matrix is not None:
            incoming.apply_matrix(matrix)

        merged: dict[str, np.ndarray] = {}
        for name in ("position", "normal"):
            if name in self.attributes and name in incoming.attributes:
                merged[name] = np.concatenate([self.attributes[name], incoming.attributes[name]])
        if "color" in self.attributes or "color" in incoming.attributes:
            merged["color"] = np.concatenate(
                [
                    _colors_or_white(self.attributes.get("color"), self.vertex_count),
                    _colors_or_white(incoming.attributes.get("color"), incoming.vertex_count),
                ]
            ).astype(np.float32)
        self.attributes = merged


def _colors_or_white(colors: np.ndarray | None, count: int) -> np.ndarray:
    if colors is None:
        return np.ones((count, 3), dtype=np.float64)
    return colors


def _bounds(points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    if len(points) == 0:
        zero = np.zeros(3, dtype=np.float64)
        return zero, zero.copy()
    points = np.asarray(points, dtype=np.float64)
    return points.min(axis=0), points.max(axis=0)


def upgrade_children_to_buffer(node) -> None:
    """Convert every direct Mesh child still holding a ``Geometry`` to ``BufferGeometry``."""
    for child in node.children:
        if child.kind == "Mesh" and isinstance(child.geometry, Geometry):
            child.geometry = BufferGeometry.from_geometry(child.geometry)


def compute_cusp_normals(geometry: Geometry, limit: float) -> None:
    """Shade smoothly across edges but keep creases sharper than ``limit``.

    Each face corner averages the normals of faces sharing its vertex whose
    normal is within ``limit`` (a cosine) of the corner's own face normal.
    Vertices are matched by position so unwelded meshes still smooth.
    """
    face_normals = geometry.face_normals()
    if geometry.face_count == 0:
        geometry.normals = np.zeros((0, 3, 3), dtype=np.float64)
        return

    keys = np.round(geometry.vertices, 6)
    _, welded = np.unique(keys, axis=0, return_inverse=True)
    welded = welded.reshape(-1)
    corner_keys = welded[geometry.faces]

    incident: dict[int, list[int]] = {}
    for face_index, corners in enumerate(corner_keys):
        for key in corners:
            incident.setdefault(int(key), []).append(face_index)

    normals = np.zeros((geometry.face_count, 3, 3), dtype=np.float64)
    for face_index, corners in enumerate(corner_keys):
        own = face_normals[face_index]
        for corner, key in enumerate(corners):
            neighbours = face_normals[incident[int(key)]]
            similar = neighbours[neighbours @ own > limit]
            total = similar.sum(axis=0) if len(similar) else own
            length = np.linalg.norm(total)
            normals[face_index, corner] = total / length if length > 0 else own
    geometry.normals = normals
