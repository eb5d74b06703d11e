"""Material resolution: Flux material properties to renderer materials."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from fluxgeom.constants import (
    DEFAULT_MATERIAL_PROPERTIES,
    FLUX_MATERIAL_TO_RENDER,
    INVERSE_PROPERTIES,
    LEGACY_POINT_PROPERTIES,
)
from fluxgeom.errors import GeometryError

SURFACE = "surface"
POINT = "point"
LINE = "line"

MATERIAL_TYPES: frozenset[str] = frozenset({SURFACE, POINT, LINE})

# Renderer-side properties that distinguish surface materials when merging.
RENDER_SURFACE_PROPERTIES: tuple[str, ...] = ("opacity", "roughness", "metalness", "emissive")

CSS_COLORS: dict[str, str] = {
    "aliceblue": "#f0f8ff",
    "antiquewhite": "#faebd7",
    "aqua": "#00ffff",
    "aquamarine": "#7fffd4",
    "azure": "#f0ffff",
    "beige": "#f5f5dc",
    "bisque": "#ffe4c4",
    "black": "#000000",
    "blanchedalmond": "#ffebcd",
    "blue": "#0000ff",
    "blueviolet": "#8a2be2",
    "brown": "#a52a2a",
    "burlywood": "#deb887",
    "cadetblue": "#5f9ea0",
    "chartreuse": "#7fff00",
    "chocolate": "#d2691e",
    "coral": "#ff7f50",
    "cornflowerblue": "#6495ed",
    "cornsilk": "#fff8dc",
    "crimson": "#dc143c",
    "cyan": "#00ffff",
    "darkblue": "#00008b",
    "darkcyan": "#008b8b",
    "darkgoldenrod": "#b8860b",
    "darkgray": "#a9a9a9",
    "darkgreen": "#006400",
    "darkgrey": "#a9a9a9",
    "darkkhaki": "#bdb76b",
    "darkmagenta": "#8b008b",
    "darkolivegreen": "#556b2f",
    "darkorange": "#ff8c00",
    "darkorchid": "#9932cc",
    "darkred": "#8b0000",
    "darksalmon": "#e9967a",
    "darkseagreen": "#8fbc8f",
    "darkslateblue": "#483d8b",
    "darkslategray": "#2f4f4f",
    "darkslategrey": "#2f4f4f",
    "darkturquoise": "#00ced1",
    "darkviolet": "#9400d3",
    "deeppink": "#ff1493",
    "deepskyblue": "#00bfff",
    "dimgray": "#696969",
    "dimgrey": "#696969",
    "dodgerblue": "#1e90ff",
    "firebrick": "#b22222",
    "floralwhite": "#fffaf0",
    "forestgreen": "#228b22",
    "fuchsia": "#ff00ff",
    "gainsboro": "#dcdcdc",
    "ghostwhite": "#f8f8ff",
    "gold": "#ffd700",
    "goldenrod": "#daa520",
    "gray": "#808080",
    "green": "#008000",
    "greenyellow": "#adff2f",
    "grey": "#808080",
    "honeydew": "#f0fff0",
    "hotpink": "#ff69b4",
    "indianred": "#cd5c5c",
    "indigo": "#4b0082",
    "ivory": "#fffff0",
    "khaki": "#f0e68c",
    "lavender": "#e6e6fa",
    "lavenderblush": "#fff0f5",
    "lawngreen": "#7cfc00",
    "lemonchiffon": "#fffacd",
    "lightblue": "#add8e6",
    "lightcoral": "#f08080",
    "lightcyan": "#e0ffff",
    "lightgoldenrodyellow": "#fafad2",
    "lightgray": "#d3d3d3",
    "lightgreen": "#90ee90",
    "lightgrey": "#d3d3d3",
    "lightpink": "#ffb6c1",
    "lightsalmon": "#ffa07a",
    "lightseagreen": "#20b2aa",
    "lightskyblue": "#87cefa",
    "lightslategray": "#778899",
    "lightslategrey": "#778899",
    "lightsteelblue": "#b0c4de",
    "lightyellow": "#ffffe0",
    "lime": "#00ff00",
    "limegreen": "#32cd32",
    "linen": "#faf0e6",
    "magenta": "#ff00ff",
    "maroon": "#800000",
    "mediumaquamarine": "#66cdaa",
    "mediumblue": "#0000cd",
    "mediumorchid": "#ba55d3",
    "mediumpurple": "#9370db",
    "mediumseagreen": "#3cb371",
    "mediumslateblue": "#7b68ee",
    "mediumspringgreen": "#00fa9a",
    "mediumturquoise": "#48d1cc",
    "mediumvioletred": "#c71585",
    "midnightblue": "#191970",
    "mintcream": "#f5fffa",
    "mistyrose": "#ffe4e1",
    "moccasin": "#ffe4b5",
    "navajowhite": "#ffdead",
    "navy": "#000080",
    "oldlace": "#fdf5e6",
    "olive": "#808000",
    "olivedrab": "#6b8e23",
    "orange": "#ffa500",
    "orangered": "#ff4500",
    "orchid": "#da70d6",
    "palegoldenrod": "#eee8aa",
    "palegreen": "#98fb98",
    "paleturquoise": "#afeeee",
    "palevioletred": "#db7093",
    "papayawhip": "#ffefd5",
    "peachpuff": "#ffdab9",
    "peru": "#cd853f",
    "pink": "#ffc0cb",
    "plum": "#dda0dd",
    "powderblue": "#b0e0e6",
    "purple": "#800080",
    "rebeccapurple": "#663399",
    "red": "#ff0000",
    "rosybrown": "#bc8f8f",
    "royalblue": "#4169e1",
    "saddlebrown": "#8b4513",
    "salmon": "#fa8072",
    "sandybrown": "#f4a460",
    "seagreen": "#2e8b57",
    "seashell": "#fff5ee",
    "sienna": "#a0522d",
    "silver": "#c0c0c0",
    "skyblue": "#87ceeb",
    "slateblue": "#6a5acd",
    "slategray": "#708090",
    "slategrey": "#708090",
    "snow": "#fffafa",
    "springgreen": "#00ff7f",
    "steelblue": "#4682b4",
    "tan": "#d2b48c",
    "teal": "#008080",
    "thistle": "#d8bfd8",
    "tomato": "#ff6347",
    "turquoise": "#40e0d0",
    "violet": "#ee82ee",
    "wheat": "#f5deb3",
    "white": "#ffffff",
    "whitesmoke": "#f5f5f5",
    "yellow": "#ffff00",
    "yellowgreen": "#9acd32",
}


@dataclass
class Material:
    """A renderer material: one of surface-shaded, point or line.

    ``properties`` holds the renderer-side values (``roughness``,
    ``opacity``, ``size``...). ``name`` is the identity key used to share
    materials between nodes and on export.
    """

    type: str
    color: np.ndarray
    properties: dict[str, Any] = field(default_factory=dict)
    name: str = ""
    transparent: bool = False

    @property
    def opacity(self) -> float:
        value = self.properties.get("opacity")
        return 1.0 if value is None else float(value)


def parse_color(value: Any) -> np.ndarray:
    """Convert a Flux colour to an RGB float array in 0..1.

    Accepts ``[r, g, b]`` in 0..1, ``#rrggbb``/``#rgb`` strings, CSS colour
    names and 0xRRGGBB integers.
    """
    if isinstance(value, np.ndarray):
        value = value.tolist()
    if isinstance(value, bool):
        raise GeometryError(f"Invalid color: {value!r}")
    if isinstance(value, int):
        return np.array(
            [(value >> 16 & 0xFF) / 255.0, (value >> 8 & 0xFF) / 255.0, (value & 0xFF) / 255.0],
            dtype=np.float64,
        )
    if isinstance(value, (list, tuple)):
        if len(value) != 3:
            raise GeometryError(f"Color must have 3 components, got {len(value)}")
        try:
            return np.array([float(c) for c in value], dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise GeometryError(f"Invalid color: {value!r}") from e
    if isinstance(value, str):
        text = value.strip().lower()
        text = CSS_COLORS.get(text, text)
        if text.startswith("#"):
            digits = text[1:]
            if len(digits) == 3:
                digits = "".join(c * 2 for c in digits)
            if len(digits) == 6:
                try:
                    packed = int(digits, 16)
                except ValueError:
                    pass
                else:
                    return parse_color(packed)
    raise GeometryError(f"Invalid color: {value!r}")


def find_material_properties(record: Mapping[str, Any]) -> dict[str, Any] | None:
    """Return the per-entity material overrides, or None when there are none."""
    attributes = record.get("attributes")
    if isinstance(attributes, Mapping) and attributes.get("materialProperties"):
        return dict(attributes["materialProperties"])
    if record.get("materialProperties"):
        return dict(record["materialProperties"])
    return None


def get_entity_data(record: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Look up one material property on an entity, with a default."""
    props = find_material_properties(record)
    if props is not None and props.get(key) is not None:
        return props[key]
    return default


def _known(defaults: Mapping[str, Any], props: Mapping[str, Any]) -> dict[str, Any]:
    return {name: props[name] for name in defaults if props.get(name) is not None}


def _surface_properties(props: Mapping[str, Any]) -> tuple[np.ndarray, dict[str, Any]]:
    defaults = DEFAULT_MATERIAL_PROPERTIES[SURFACE]
    out: dict[str, Any] = {
        "side": props.get("side") or "double",
        "polygonOffset": True,
        "polygonOffsetFactor": 1,
        "polygonOffsetUnits": 1,
        "vertexColors": True,
    }
    if props.get("wireframe") is not None:
        out["wireframe"] = bool(props["wireframe"])

    for flux_name, render_name in FLUX_MATERIAL_TO_RENDER.items():
        value = props.get(flux_name)
        if value is None:
            value = defaults.get(flux_name)
        if value is None:
            continue
        if render_name in INVERSE_PROPERTIES:
            value = 1.0 - float(value)
        out[render_name] = value

    color = parse_color(out.pop("color"))
    if out.get("emissive") is not None:
        out["emissive"] = parse_color(out["emissive"]).tolist()
    return color, out


def _point_properties(props: Mapping[str, Any]) -> tuple[np.ndarray, dict[str, Any]]:
    defaults = DEFAULT_MATERIAL_PROPERTIES[POINT]
    known = _known(defaults, props)
    size = known.pop("pointSize", None)
    if size is None:
        size = props.get(LEGACY_POINT_PROPERTIES["pointSize"], defaults["pointSize"])
    out = {
        "size": float(size),
        "sizeAttenuation": bool(known.pop("sizeAttenuation", defaults["sizeAttenuation"])),
        "vertexColors": True,
    }
    color = parse_color(known.pop("color", defaults["color"]))
    return color, out


def _line_properties(props: Mapping[str, Any]) -> tuple[np.ndarray, dict[str, Any]]:
    defaults = DEFAULT_MATERIAL_PROPERTIES[LINE]
    known = _known(defaults, props)
    out = {
        "linewidth": float(known.pop("linewidth", defaults["linewidth"])),
        "vertexColors": True,
    }
    color = parse_color(known.pop("color", defaults["color"]))
    return color, out


def create_material(material_type: str, material_properties: Mapping[str, Any] | None) -> Material:
    """Create a renderer material of ``material_type`` from Flux material properties."""
    props = dict(material_properties or {})
    builders = {
        SURFACE: _surface_properties,
        POINT: _point_properties,
        LINE: _line_properties,
    }
    builder = builders.get(material_type)
    if builder is None:
        raise GeometryError(f"Unknown material type: {material_type!r}")

    color, render_props = builder(props)
    material = Material(type=material_type, color=color, properties=render_props)
    material.name = material_key(material_type, render_props)
    if material.opacity < 1:
        material.transparent = True
    return material


def material_key(material_type: str, render_properties: Mapping[str, Any]) -> str:
    """Deterministic identity string for a material.

    Colour is excluded because it is carried by vertex colours.
    """
    names = set(DEFAULT_MATERIAL_PROPERTIES.get(material_type, {}))
    if material_type == SURFACE:
        names.update(RENDER_SURFACE_PROPERTIES)
    elif material_type == POINT:
        names.add("size")
    names.discard("color")

    parts = [material_type]
    for name in sorted(names):
        value = render_properties.get(name)
        if value is not None:
            parts.append(name + json.dumps(value, sort_keys=True))
    return "|".join(parts)
