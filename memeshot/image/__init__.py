"""Pixel buffer utilities (allocation, conversion, encoding, border trimming)."""

from .buffer import (
    PixelBuffer,
    as_rgba,
    encode_png,
    load_image,
    new_buffer,
    parse_color,
)
from .trim import (
    BoundingBox,
    background_mask,
    find_content_box,
    trim_borders,
)

__all__ = [
    "PixelBuffer",
    "as_rgba",
    "encode_png",
    "load_image",
    "new_buffer",
    "parse_color",
    "BoundingBox",
    "background_mask",
    "find_content_box",
    "trim_borders",
]
