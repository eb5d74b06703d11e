"""Custom exception hierarchy for the fluxgeom scene builder."""


class FluxGeomError(Exception):
    """Base exception for all fluxgeom errors."""


class ParseError(FluxGeomError):
    """Raised when an input document cannot be read or decoded."""


class GeometryError(FluxGeomError):
    """Raised when a primitive is malformed or its geometry is degenerate."""

    def __init__(self, message: str = "Invalid or degenerate geometry specified.") -> None:
        super().__init__(message)


class CompositionError(GeometryError):
    """Raised when a container holds a child of the wrong entity type."""


class ProviderError(FluxGeomError):
    """Raised when the brep tessellation provider fails."""


class ExportError(FluxGeomError):
    """Raised when glTF/GLB export fails."""
