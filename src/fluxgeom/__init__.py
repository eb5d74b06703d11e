"""fluxgeom: Flux JSON parametric geometry to renderable scene trees."""

from fluxgeom.assembler import build_object
from fluxgeom.builder import BuildOptions, SceneBuilder
from fluxgeom.errors import (
    CompositionError,
    ExportError,
    FluxGeomError,
    GeometryError,
    ParseError,
    ProviderError,
)
from fluxgeom.primitives import BuildContext, create_primitive
from fluxgeom.results import BuildResult

__version__ = "0.1.0"

__all__ = [
    "BuildContext",
    "BuildOptions",
    "BuildResult",
    "CompositionError",
    "ExportError",
    "FluxGeomError",
    "GeometryError",
    "ParseError",
    "ProviderError",
    "SceneBuilder",
    "__version__",
    "build_object",
    "create_primitive",
]
