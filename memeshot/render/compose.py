"""Fallback compositor: rebuild the exported image from resolved geometry.

Used when the primary capture of the live scene is unavailable. Draws, back
to front: white backdrop, header bar, background image, regular captions and
footer bar. Image overlays are not reconstructed on this path.

All geometry is in logical pixels and is multiplied by the oversampling
factor (``settings.scale``) while drawing.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import cv2
from PIL import Image, ImageDraw, ImageFont

from memeshot.config import ExportSettings
from memeshot.geometry.resolver import PlacedField, ResolvedGeometry
from memeshot.image.buffer import PixelBuffer, from_pil, parse_color
from memeshot.scene.model import Rect, Scene, TextField

from .filters import apply_image_style
from .fonts import load_font

logger = logging.getLogger(__name__)

BAR_FILL = (0, 0, 0, 255)
TEXT_FILL = (255, 255, 255, 255)
STROKE_FILL = (0, 0, 0, 255)

Font = ImageFont.ImageFont | ImageFont.FreeTypeFont


def canvas_size(geometry: ResolvedGeometry, settings: ExportSettings) -> Tuple[int, int]:
    """Physical canvas size: scaled geometry with a floor of ``settings.min_canvas``."""
    width = max(int(math.ceil(round(geometry.width * settings.scale, 6))), settings.min_canvas)
    height = max(int(math.ceil(round(geometry.height * settings.scale, 6))), settings.min_canvas)
    return width, height


def resolve_font_size(reported: Optional[float], settings: ExportSettings) -> float:
    """On-screen computed size when known, else the default, never below the floor."""
    size = reported if reported else settings.default_font_size
    return max(float(size), settings.min_font_size)


def _line_offsets(count: int, font_size: float, line_height: float) -> List[float]:
    return [(i - (count - 1) / 2.0) * font_size * line_height for i in range(count)]


def _scaled_box(rect: Rect, scale: float) -> Tuple[int, int, int, int]:
    return (
        int(round(rect.left * scale)),
        int(round(rect.top * scale)),
        int(round(rect.right * scale)),
        int(round(rect.bottom * scale)),
    )


def _draw_line(
    draw: ImageDraw.ImageDraw,
    xy: Tuple[float, float],
    line: str,
    font: Font,
    anchor_x: str,
    stroke_width: int = 0,
) -> None:
    """Draw one line with its ink box centred vertically on ``xy``.

    ``anchor_x`` is "left" (x is the left edge) or "center".
    """
    if not line:
        return
    x, y = xy
    left, top, right, bottom = draw.textbbox((0, 0), line, font=font, stroke_width=stroke_width)
    tx = x - left if anchor_x == "left" else x - (left + right) / 2.0
    ty = y - (top + bottom) / 2.0
    draw.text(
        (tx, ty),
        line,
        font=font,
        fill=TEXT_FILL,
        stroke_width=stroke_width,
        stroke_fill=STROKE_FILL if stroke_width else None,
    )


def draw_bar(canvas: Image.Image, placed: PlacedField, settings: ExportSettings) -> None:
    """Black full-width bar with left-aligned white text, vertically centred."""
    scale = settings.scale
    draw = ImageDraw.Draw(canvas)
    x0, y0, x1, y1 = _scaled_box(placed.rect, scale)
    if y1 > y0:
        draw.rectangle((x0, y0, max(x0, x1 - 1), y1 - 1), fill=BAR_FILL)

    text_field: TextField = placed.source
    font_size = resolve_font_size(placed.font_size, settings)
    font = load_font(font_size * scale, settings.font_candidates)
    lines = text_field.text.rstrip("\n").split("\n")
    _, cy = placed.rect.center
    x = (placed.rect.left + settings.bar_padding) * scale
    for line, offset in zip(lines, _line_offsets(len(lines), font_size, settings.line_height)):
        _draw_line(draw, (x, (cy + offset) * scale), line, font, anchor_x="left")


def draw_background(canvas: Image.Image, scene: Scene, rect: Rect, settings: ExportSettings) -> bool:
    """Stretch the background into ``rect``; returns False when skipped."""
    image = scene.background_image
    if image is None or not image.is_ready:
        logger.debug("Background image not loaded, drawing without it")
        return False
    natural_w, natural_h = image.natural_size
    if natural_w <= 0 or natural_h <= 0:
        logger.debug("Background image has zero natural size, drawing without it")
        return False

    x0, y0, x1, y1 = _scaled_box(rect, settings.scale)
    target_w, target_h = max(1, x1 - x0), max(1, y1 - y0)
    shrinking = target_w < natural_w or target_h < natural_h
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    stretched = cv2.resize(image.pixels, (target_w, target_h), interpolation=interpolation)
    layer = apply_image_style(Image.fromarray(stretched), scene.image_style, settings.scale)
    _paste(canvas, layer, x0, y0)
    return True


def _paste(canvas: Image.Image, layer: Image.Image, x: int, y: int) -> None:
    """Alpha-composite ``layer`` at (x, y), clipping anything outside the canvas."""
    crop_left, crop_top = max(0, -x), max(0, -y)
    crop_right = min(layer.width, canvas.width - x)
    crop_bottom = min(layer.height, canvas.height - y)
    if crop_right <= crop_left or crop_bottom <= crop_top:
        return
    if (crop_left, crop_top, crop_right, crop_bottom) != (0, 0, layer.width, layer.height):
        layer = layer.crop((crop_left, crop_top, crop_right, crop_bottom))
    canvas.alpha_composite(layer, dest=(max(0, x), max(0, y)))


def render_caption_layer(text: str, font_size: float, settings: ExportSettings) -> Image.Image:
    """Render outlined multi-line text centred on a transparent layer."""
    scale = settings.scale
    lines = text.split("\n")
    font = load_font(font_size * scale, settings.font_candidates)
    line_width = max(font_size / 16.0, 2.0)
    # a canvas stroke straddles the glyph edge; PIL strokes only outwards
    stroke = max(1, int(round(line_width * scale / 2.0)))

    probe = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    boxes = [probe.textbbox((0, 0), line, font=font, stroke_width=stroke) for line in lines]
    max_w = max((b[2] - b[0] for b in boxes), default=0)
    max_h = max((b[3] - b[1] for b in boxes), default=0)
    offsets = [o * scale for o in _line_offsets(len(lines), font_size, settings.line_height)]
    pad = 2 * stroke
    layer_w = int(math.ceil(max_w)) + 2 * pad
    layer_h = int(math.ceil(max_h + (offsets[-1] - offsets[0]))) + 2 * pad

    layer = Image.new("RGBA", (max(1, layer_w), max(1, layer_h)), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    cx, cy = layer.width / 2.0, layer.height / 2.0
    for line, offset in zip(lines, offsets):
        _draw_line(draw, (cx, cy + offset), line, font, anchor_x="center", stroke_width=stroke)
    return layer


def _apply_transform(layer: Image.Image, text_field: TextField) -> Image.Image:
    if text_field.scale > 0 and not math.isclose(text_field.scale, 1.0):
        size = (
            max(1, int(round(layer.width * text_field.scale))),
            max(1, int(round(layer.height * text_field.scale))),
        )
        layer = layer.resize(size, Image.Resampling.LANCZOS)
    if text_field.rotation % 360:
        # CSS rotates clockwise, PIL counter-clockwise
        layer = layer.rotate(-text_field.rotation, resample=Image.Resampling.BICUBIC, expand=True)
    opacity = max(0.0, min(100.0, text_field.opacity)) / 100.0
    if opacity < 1.0:
        alpha = layer.getchannel("A").point(lambda a: int(round(a * opacity)))
        layer.putalpha(alpha)
    return layer


def draw_caption(canvas: Image.Image, placed: PlacedField, settings: ExportSettings) -> None:
    """Draw a regular text field centred on its resolved midpoint."""
    text_field: TextField = placed.source
    if text_field.is_placeholder:
        return
    text = text_field.text.strip()
    if not text:
        return
    font_size = resolve_font_size(placed.font_size, settings)
    layer = _apply_transform(render_caption_layer(text, font_size, settings), text_field)
    cx, cy = placed.rect.center
    x = int(round(cx * settings.scale - layer.width / 2.0))
    y = int(round(cy * settings.scale - layer.height / 2.0))
    _paste(canvas, layer, x, y)


def compose_fallback(
    scene: Scene,
    geometry: ResolvedGeometry,
    settings: Optional[ExportSettings] = None,
) -> PixelBuffer:
    """Reconstruct the scene into a fresh RGBA buffer.

    Doxygen:
    - @param scene: Scene snapshot; never mutated.
    - @param geometry: Output of resolve_geometry for the same scene.
    - @param settings: Export settings (scale, font sizes, padding).
    - @return: (height, width, 4) uint8 buffer, not trimmed.
    """
    settings = settings or ExportSettings()
    width, height = canvas_size(geometry, settings)
    canvas = Image.new("RGBA", (width, height), parse_color(settings.background_color))

    for placed in geometry.fields_of_kind("header"):
        draw_bar(canvas, placed, settings)

    draw_background(canvas, scene, geometry.image_rect, settings)

    for placed in geometry.fields_of_kind("text"):
        draw_caption(canvas, placed, settings)

    for placed in geometry.fields_of_kind("image"):
        logger.debug("Image field %s is not reconstructed in the fallback path", placed.id)

    for placed in geometry.fields_of_kind("footer"):
        draw_bar(canvas, placed, settings)

    logger.debug("Composed fallback image %dx%d", width, height)
    return from_pil(canvas)
