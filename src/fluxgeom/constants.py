"""Numeric tolerances, tessellation resolutions and material defaults."""

from __future__ import annotations

import math

HALF_PI = math.pi * 0.5
TOLERANCE = 1e-6
DEG_2_RAD = math.pi / 180.0

# Euler rotation (x, y, z) that turns y-up revolved solids to point along +z.
DEFAULT_ROTATION = (HALF_PI, HALF_PI, 0.0)

# Flux is z-up; every built object is oriented with this up vector.
Z_UP = (0.0, 0.0, 1.0)
EULER_ORDER = "YXZ"

CIRCLE_RES = 32
ARC_SEGMENTS_PER_CIRCLE = 42
SPHERE_WIDTH_SEGMENTS = 12
SPHERE_HEIGHT_SEGMENTS = 8
TORUS_SEGMENTS = 24

PLANE_WIDTH = 10000.0
PLANE_HEIGHT = 10000.0
PLANE_SEGMENTS = 100

# Samples per control point and degree when evaluating NURBS.
NURBS_CURVE_QUALITY = 4
NURBS_SURFACE_QUALITY = 4

# Neighbouring mesh faces meeting at less than this angle are shaded smooth.
NORMALS_SMOOTH_LIMIT = math.cos(45.0 * DEG_2_RAD)

POINT_PIXEL_SIZE = 2.0

# Flux material property -> renderer material property
FLUX_MATERIAL_TO_RENDER: dict[str, str] = {
    "glossiness": "roughness",
    "transparency": "opacity",
    "reflectivity": "metalness",
    "color": "color",
    "emissionColor": "emissive",
}

# Renderer properties whose value is the complement (1 - value) of the Flux one.
INVERSE_PROPERTIES: frozenset[str] = frozenset({"roughness", "opacity"})

LEGACY_POINT_PROPERTIES: dict[str, str] = {"pointSize": "size"}

DEFAULT_MATERIAL_PROPERTIES: dict[str, dict[str, object]] = {
    "surface": {
        "color": [1.0, 1.0, 1.0],
        "reflectivity": 0.0,
        "glossiness": 0.0,
        "transparency": None,
        "emissionColor": None,
        "wireframe": False,
        "side": "double",
    },
    "point": {
        "color": [0.5, 0.5, 0.8],
        "pointSize": 0.001,
        "sizeAttenuation": True,
    },
    "line": {
        "color": [0.5, 0.5, 0.8],
        "linewidth": 1.0,
    },
}
