"""Fallback rendering: fonts, background filters and the scene compositor."""

from .compose import canvas_size, compose_fallback, resolve_font_size
from .filters import apply_image_style, parse_filter
from .fonts import load_font

__all__ = [
    "canvas_size",
    "compose_fallback",
    "resolve_font_size",
    "apply_image_style",
    "parse_filter",
    "load_font",
]
