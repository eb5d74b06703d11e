"""Pydantic v2 schema models for Flux JSON primitive records."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from fluxgeom.errors import GeometryError

# Deprecated primitive spellings -> canonical name
LEGACY_PRIMITIVE_NAMES: dict[str, str] = {
    "point-2d": "point",
    "polygon-set": "polygonSet",
    "polyline-2d": "polyline",
    "circle-2d": "circle",
}


def canonical_primitive(name: str) -> str:
    """Resolve a deprecated primitive name to its current spelling."""
    return LEGACY_PRIMITIVE_NAMES.get(name, name)


def _point3(value: tuple[float | None, ...]) -> tuple[float, float, float]:
    if len(value) not in (2, 3):
        raise ValueError(f"expected 2 or 3 coordinates, got {len(value)}")
    x, y = value[0], value[1]
    z = value[2] if len(value) == 3 else None
    if x is None or y is None:
        raise ValueError("x and y coordinates are required")
    return (float(x), float(y), float(z or 0.0))


Point = Annotated[tuple[float | None, ...], AfterValidator(_point3)]
Positive = Annotated[float, Field(gt=0)]


class PrimitiveRecord(BaseModel):
    """Fields any primitive may carry."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    primitive: str
    id: str | int | None = None
    origin: Point | None = None
    axis: Point | None = None
    direction: Point | None = None
    normal: Point | None = None
    reference: Point | None = None
    attributes: dict[str, Any] | None = None
    materialProperties: dict[str, Any] | None = None

    @property
    def orientation(self) -> tuple[float, float, float] | None:
        return self.axis or self.direction or self.normal

    @property
    def tag(self) -> Any:
        if self.attributes:
            return self.attributes.get("tag")
        return None


# -- wire ---------------------------------------------------------------------


class LineRecord(PrimitiveRecord):
    start: Point
    end: Point


class PolylineRecord(PrimitiveRecord):
    points: list[Point]


class CircleRecord(PrimitiveRecord):
    radius: Positive


class RectangleRecord(PrimitiveRecord):
    dimensions: tuple[float, ...]

    @field_validator("dimensions")
    @classmethod
    def _two_dimensions(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if len(v) < 2:
            raise ValueError("rectangle dimensions need width and height")
        return v


class EllipseRecord(PrimitiveRecord):
    majorRadius: Positive = Field(validation_alias=AliasChoices("majorRadius", "major_radius"))
    minorRadius: Positive = Field(validation_alias=AliasChoices("minorRadius", "minor_radius"))


class VectorRecord(PrimitiveRecord):
    coords: Point


class PointRecord(PrimitiveRecord):
    point: Point


class ArcRecord(PrimitiveRecord):
    start: Point
    middle: Point
    end: Point


class CurveRecord(PrimitiveRecord):
    degree: int = Field(ge=1)
    knots: list[float]
    controlPoints: list[Point]
    weights: list[float] | None = None


class PolycurveRecord(PrimitiveRecord):
    curves: list[dict[str, Any]]


# -- sheet --------------------------------------------------------------------


class SurfaceRecord(PrimitiveRecord):
    uDegree: int = Field(ge=1)
    vDegree: int = Field(ge=1)
    uKnots: list[float]
    vKnots: list[float]
    controlPoints: list[list[Point]]
    weights: list[float] | None = None


class PolygonRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    boundary: list[Point]
    holes: list[list[Point]] = Field(default_factory=list)


class PolygonSetRecord(PrimitiveRecord):
    polygons: list[PolygonRecord]


class PolysurfaceRecord(PrimitiveRecord):
    surfaces: list[dict[str, Any]]


# -- solid --------------------------------------------------------------------


class BlockRecord(PrimitiveRecord):
    dimensions: tuple[Positive, Positive, Positive]


class SphereRecord(PrimitiveRecord):
    radius: float

    @field_validator("radius")
    @classmethod
    def _positive_radius(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("sphere radius must be positive")
        return v


class CylinderRecord(PrimitiveRecord):
    radius: Positive
    height: Positive


class ConeRecord(PrimitiveRecord):
    radius: float = Field(ge=0)
    height: Positive
    semiAngle: float = Field(validation_alias=AliasChoices("semiAngle", "semi-angle"))

    @field_validator("semiAngle")
    @classmethod
    def _semi_angle_range(cls, v: float) -> float:
        if not 0 < v < 90:
            raise ValueError("cone semiAngle must be between 0 and 90 degrees")
        return v


class TorusRecord(PrimitiveRecord):
    majorRadius: Positive = Field(validation_alias=AliasChoices("majorRadius", "major_radius"))
    minorRadius: Positive = Field(validation_alias=AliasChoices("minorRadius", "minor_radius"))


class MeshRecord(PrimitiveRecord):
    vertices: list[Point]
    faces: list[list[int]]


class PlaneRecord(PrimitiveRecord):
    pass


class BrepRecord(PrimitiveRecord):
    vertices: list[Point] | None = None
    faces: list[list[int]] | None = None
    content: str | None = None
    format: str | None = None

    @property
    def has_mesh(self) -> bool:
        return self.vertices is not None and self.faces is not None


class StlRecord(PrimitiveRecord):
    content: str


def validate_record(model: type[PrimitiveRecord], data: dict[str, Any]) -> PrimitiveRecord:
    """Validate raw JSON against ``model``, re-raising failures as ``GeometryError``.

    A missing field is reported by name so callers can show which field the
    record lacks.
    """
    kind = data.get("primitive", model.__name__)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = e.errors()
        for err in errors:
            if err["type"] == "missing":
                field_name = ".".join(str(p) for p in err["loc"])
                raise GeometryError(f"{kind} is missing required field '{field_name}'") from e
        first = errors[0]
        location = ".".join(str(p) for p in first["loc"])
        raise GeometryError(f"Invalid {kind} field '{location}': {first['msg']}") from e
