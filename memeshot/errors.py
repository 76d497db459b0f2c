"""Exception taxonomy for the export pipeline."""

from __future__ import annotations

__all__ = [
    "ExportError",
    "TargetMissing",
    "RasterizerFailure",
    "GeometryError",
    "EncodingError",
    "ExportUnavailable",
]


class ExportError(RuntimeError):
    """Base class for export related failures."""


class TargetMissing(ExportError):
    """Raised when the capture root cannot be located."""


class RasterizerFailure(ExportError):
    """Raised when the primary capture throws or returns unusable data."""


class GeometryError(ExportError):
    """Raised when the scene has nothing to export or layout metrics are inconsistent."""


class EncodingError(ExportError):
    """Raised when the final buffer cannot be serialized or emitted."""


class ExportUnavailable(ExportError):
    """Raised when both the capture and the reconstruction paths failed."""
