"""ASCII STL decoding, the format brep tessellation results arrive in."""

from __future__ import annotations

import numpy as np

from fluxgeom.errors import GeometryError
from fluxgeom.geometry import Geometry


def parse_ascii_stl(text: str) -> Geometry:
    """Parse an ASCII STL solid into an unwelded triangle ``Geometry``.

    Facet normals from the file are used where they are non-zero; other
    facets get their computed face normal.
    """
    tokens = text.split()
    if not tokens or tokens[0].lower() != "solid":
        raise GeometryError("STL content must start with 'solid'")

    vertices: list[tuple[float, float, float]] = []
    normals: list[tuple[float, float, float]] = []
    pos = 0
    try:
        while pos < len(tokens):
            word = tokens[pos].lower()
            if word == "facet":
                if tokens[pos + 1].lower() != "normal":
                    raise GeometryError("STL facet is missing its normal")
                normals.append(tuple(float(v) for v in tokens[pos + 2 : pos + 5]))
                pos += 5
            elif word == "vertex":
                vertices.append(tuple(float(v) for v in tokens[pos + 1 : pos + 4]))
                pos += 4
            else:
                pos += 1
    except (IndexError, ValueError) as e:
        raise GeometryError(f"Malformed STL content: {e}") from e

    if len(vertices) != 3 * len(normals):
        raise GeometryError(
            f"STL has {len(normals)} facets but {len(vertices)} vertices; expected 3 per facet"
        )

    faces = np.arange(len(vertices), dtype=np.int64).reshape(-1, 3)
    geometry = Geometry(vertices=np.asarray(vertices, dtype=np.float64).reshape(-1, 3), faces=faces)

    computed = geometry.face_normals()
    given = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    lengths = np.linalg.norm(given, axis=1)
    use_given = lengths > 0
    face_normals = computed.copy()
    face_normals[use_given] = given[use_given] / lengths[use_given, None]
    geometry.normals = np.repeat(face_normals[:, None, :], 3, axis=1)
    return geometry


def write_ascii_stl(geometry: Geometry, name: str = "fluxgeom") -> str:
    """Serialise a triangle ``Geometry`` to ASCII STL text."""
    lines = [f"solid {name}"]
    for normal, face in zip(geometry.face_normals(), geometry.faces):
        lines.append(f"  facet normal {normal[0]:.6e} {normal[1]:.6e} {normal[2]:.6e}")
        lines.append("    outer loop")
        for index in face:
            x, y, z = geometry.vertices[index]
            lines.append(f"      vertex {x:.6e} {y:.6e} {z:.6e}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    return "\n".join(lines) + "\n"
