"""Shared fixtures: Flux JSON records for every primitive kind."""

from __future__ import annotations

import copy

import pytest

from fluxgeom.primitives import BuildContext
from fluxgeom.vectors import VectorPool

CUBIC_CURVE = {
    "primitive": "curve",
    "degree": 3,
    "knots": [0, 0, 0, 1, 2, 3, 3, 3],
    "controlPoints": [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]],
}

FLAT_SURFACE = {
    "primitive": "surface",
    "uDegree": 1,
    "vDegree": 1,
    "uKnots": [0, 0, 1, 1],
    "vKnots": [0, 0, 1, 1],
    "controlPoints": [[[-8, 8, 0], [8, 8, 0]], [[-8, -8, 0], [8, -8, 0]]],
}

HOLED_POLYGON_SET = {
    "primitive": "polygonSet",
    "polygons": [
        {
            "boundary": [[15, 0, 15], [0, 13.0, 0], [0, -13.0, 0]],
            "holes": [[[10, 0, 10], [2, 9.0, 2], [2, -9.0, 2]]],
        }
    ],
}

# (record, expected node kind) for every supported primitive
PRIMITIVE_CASES = [
    ({"primitive": "cone", "origin": [0, 0, 0], "height": 10, "radius": 10, "semiAngle": 10}, "Mesh"),
    ({"primitive": "cylinder", "origin": [0, 0, 0], "axis": [10, 20, 30], "height": 40, "radius": 10}, "Mesh"),
    ({"primitive": "sphere", "origin": [0, 0, 0], "radius": 10}, "Mesh"),
    ({"primitive": "torus", "origin": [0, 0, 0], "majorRadius": 5, "minorRadius": 3, "axis": [0, 0, 1]}, "Mesh"),
    (
        {"primitive": "block", "origin": [0, 0, 0], "dimensions": [1, 2, 3], "axis": [0, 0, 1], "reference": [0, 1, 0]},
        "Mesh",
    ),
    ({"primitive": "circle", "origin": [0, 0, 0], "radius": 10}, "Line"),
    ({"primitive": "ellipse", "origin": [1, 1, 1], "axis": [1, 1, 1], "majorRadius": 4, "minorRadius": 1.1}, "Line"),
    ({"primitive": "rectangle", "origin": [0, 0, 0], "dimensions": [2, 2]}, "Line"),
    ({"primitive": "plane", "origin": [5, 5, 0], "normal": [0, 0, 1]}, "Mesh"),
    ({"primitive": "point", "point": [0, 0, 0]}, "Points"),
    ({"primitive": "vector", "coords": [2, 2, 0]}, "Line"),
    ({"primitive": "line", "start": [1, 1, 1], "end": [2, 2, 2]}, "Line"),
    (CUBIC_CURVE, "Line"),
    (
        {
            "primitive": "polycurve",
            "curves": [
                CUBIC_CURVE,
                {
                    "primitive": "curve",
                    "degree": 3,
                    "knots": [0, 0, 0, 0, 14.1, 14.1, 14.1, 14.1],
                    "controlPoints": [[0, 0, 0], [-3.3, -3.3, 0], [-6.6, -6.6, 0], [-10, -10, 0]],
                },
                {"primitive": "arc", "start": [1, 0, 0], "middle": [0, 1, 0], "end": [-1, 0, 0]},
            ],
        },
        "Group",
    ),
    ({"primitive": "arc", "start": [1, 0, 0], "middle": [0, 1, 0], "end": [-1, 0, 0]}, "Line"),
    ({"primitive": "arc", "start": [0, 0, 0], "middle": [1, 1, 0], "end": [0, 0, 0]}, "Line"),
    (
        {"primitive": "mesh", "vertices": [[-1, 0, 0], [0, 1, 2], [1, 0, 0], [0, -1, 2]], "faces": [[0, 3, 1], [1, 3, 2]]},
        "Mesh",
    ),
    (
        {"primitive": "polygon-set", "polygons": [{"boundary": [[15, 0, 0], [-7.5, 13.0, 0], [-7.5, -13.0, 0]], "holes": []}]},
        "Mesh",
    ),
    (HOLED_POLYGON_SET, "Mesh"),
    ({"primitive": "polyline", "points": [[0, 0, 5], [1, 0, 5], [2, 2, 5], [0, 1, 5]]}, "Line"),
    (FLAT_SURFACE, "Mesh"),
    (
        {
            "primitive": "polysurface",
            "surfaces": [
                FLAT_SURFACE,
                {
                    "primitive": "surface",
                    "uDegree": 1,
                    "vDegree": 1,
                    "uKnots": [0, 0, 1, 1],
                    "vKnots": [0, 0, 1, 1],
                    "controlPoints": [[[-20, 8, 9], [-8, 8, 0]], [[-20, -8, 9], [-8, -8, 0]]],
                },
                HOLED_POLYGON_SET,
            ],
        },
        "Mesh",
    ),
]


@pytest.fixture
def ctx() -> BuildContext:
    """A build context with its own vector pool."""
    return BuildContext(pool=VectorPool())


@pytest.fixture
def unit_block() -> dict:
    return {"primitive": "block", "origin": [0, 0, 0], "dimensions": [1, 1, 1]}


@pytest.fixture
def cubic_curve() -> dict:
    return copy.deepcopy(CUBIC_CURVE)


@pytest.fixture
def flat_surface() -> dict:
    return copy.deepcopy(FLAT_SURFACE)


@pytest.fixture
def holed_polygon_set() -> dict:
    return copy.deepcopy(HOLED_POLYGON_SET)


@pytest.fixture
def ascii_stl() -> str:
    return (
        "solid tri\n"
        "  facet normal 0 0 1\n"
        "    outer loop\n"
        "      vertex 0 0 0\n"
        "      vertex 1 0 0\n"
        "      vertex 0 1 0\n"
        "    endloop\n"
        "  endfacet\n"
        "endsolid tri\n"
    )
