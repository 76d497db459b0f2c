"""Scene geometry resolution."""

from .resolver import PlacedField, ResolvedGeometry, bar_inclusion, resolve_geometry

__all__ = [
    "PlacedField",
    "ResolvedGeometry",
    "bar_inclusion",
    "resolve_geometry",
]
