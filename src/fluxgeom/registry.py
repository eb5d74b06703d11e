"""Read-only table of primitive builders."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from fluxgeom import models, sheet, solid, wire
from fluxgeom.materials import LINE, POINT, SURFACE
from fluxgeom.models import PrimitiveRecord, canonical_primitive

POINT_ENTITY = "point"

ENTITY_TYPES: frozenset[str] = frozenset({wire.WIRE, sheet.SHEET, solid.SOLID, POINT_ENTITY})


@dataclass(frozen=True)
class PrimitiveSpec:
    """How to build one primitive kind."""

    builder: Callable[..., Any]
    entity_type: str
    material_type: str
    model: type[PrimitiveRecord]


class Registry(Mapping[str, PrimitiveSpec]):
    """Immutable mapping of canonical primitive name -> ``PrimitiveSpec``."""

    def __init__(self, specs: Mapping[str, PrimitiveSpec]) -> None:
        for name, spec in specs.items():
            if spec.entity_type not in ENTITY_TYPES:
                raise ValueError(f"Unknown entity type {spec.entity_type!r} for {name!r}")
        self._specs = MappingProxyType(dict(specs))

    def __getitem__(self, name: str) -> PrimitiveSpec:
        return self._specs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def resolve(self, name: Any) -> tuple[Any, PrimitiveSpec | None]:
        """Canonicalise a primitive name and look it up."""
        if not isinstance(name, str):
            return name, None
        canonical = canonical_primitive(name)
        return canonical, self._specs.get(canonical)

    def material_type(self, name: str) -> str | None:
        _, spec = self.resolve(name)
        return None if spec is None else spec.material_type


def _wire(builder, model) -> PrimitiveSpec:
    return PrimitiveSpec(builder, wire.WIRE, LINE, model)


def _sheet(builder, model) -> PrimitiveSpec:
    return PrimitiveSpec(builder, sheet.SHEET, SURFACE, model)


def _solid(builder, model) -> PrimitiveSpec:
    return PrimitiveSpec(builder, solid.SOLID, SURFACE, model)


def build_default_registry() -> Registry:
    return Registry(
        {
            "line": _wire(wire.line, models.LineRecord),
            "polyline": _wire(wire.polyline, models.PolylineRecord),
            "circle": _wire(wire.circle, models.CircleRecord),
            "rectangle": _wire(wire.rectangle, models.RectangleRecord),
            "ellipse": _wire(wire.ellipse, models.EllipseRecord),
            "vector": _wire(wire.vector, models.VectorRecord),
            "arc": _wire(wire.arc, models.ArcRecord),
            "curve": _wire(wire.curve, models.CurveRecord),
            "polycurve": _wire(wire.polycurve, models.PolycurveRecord),
            "point": PrimitiveSpec(wire.point, POINT_ENTITY, POINT, models.PointRecord),
            "surface": _sheet(sheet.surface, models.SurfaceRecord),
            "polygonSet": _sheet(sheet.polygon_set, models.PolygonSetRecord),
            "polysurface": _sheet(sheet.polysurface, models.PolysurfaceRecord),
            "block": _solid(solid.block, models.BlockRecord),
            "sphere": _solid(solid.sphere, models.SphereRecord),
            "cylinder": _solid(solid.cylinder, models.CylinderRecord),
            "cone": _solid(solid.cone, models.ConeRecord),
            "torus": _solid(solid.torus, models.TorusRecord),
            "mesh": _solid(solid.mesh, models.MeshRecord),
            "plane": _solid(solid.plane, models.PlaneRecord),
            "brep": _solid(solid.brep, models.BrepRecord),
            "stl": _solid(solid.stl, models.StlRecord),
        }
    )


DEFAULT_REGISTRY = build_default_registry()
