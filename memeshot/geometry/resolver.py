"""Resolve a scene and its on-screen layout into capture-relative rectangles.

The capture rectangle is either the image area alone or the vertical stack of
header bar, image area and footer bar. Every rectangle produced here is
relative to the capture rectangle's top-left corner, in logical (CSS) pixels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from memeshot.errors import GeometryError
from memeshot.scene.model import (
    FieldId,
    ImageField,
    LayoutMetrics,
    Rect,
    Scene,
    TextField,
    TextKind,
)

logger = logging.getLogger(__name__)

__all__ = ["PlacedField", "ResolvedGeometry", "bar_inclusion", "resolve_geometry"]


@dataclass(frozen=True)
class PlacedField:
    id: FieldId
    kind: str  # "header", "footer", "text" or "image"
    rect: Rect
    source: Union[TextField, ImageField]
    font_size: Optional[float] = None


@dataclass
class ResolvedGeometry:
    width: float
    height: float
    capture_rect: Rect
    image_rect: Rect
    header_rect: Optional[Rect] = None
    footer_rect: Optional[Rect] = None
    fields: List[PlacedField] = field(default_factory=list)

    @property
    def include_header(self) -> bool:
        return self.header_rect is not None

    @property
    def include_footer(self) -> bool:
        return self.footer_rect is not None

    def fields_of_kind(self, kind: str) -> List[PlacedField]:
        return [f for f in self.fields if f.kind == kind]

    def field(self, field_id: FieldId) -> Optional[PlacedField]:
        return next((f for f in self.fields if f.id == field_id), None)


def bar_inclusion(scene: Scene) -> tuple[bool, bool]:
    """Return (include_header, include_footer): a bar counts only with non-blank text."""
    header, footer = scene.header, scene.footer
    return (
        header is not None and header.has_visible_text,
        footer is not None and footer.has_visible_text,
    )


def _has_background(scene: Scene) -> bool:
    image = scene.background_image
    if image is None or not image.is_ready:
        return False
    width, height = image.natural_size
    return width > 0 and height > 0


def _font_size(layout: LayoutMetrics, field_id: FieldId) -> Optional[float]:
    reported = layout.fields.get(field_id)
    return reported.font_size if reported is not None else None


def _reported_size(layout: LayoutMetrics, field_id: FieldId) -> Optional[tuple[float, float]]:
    reported = layout.fields.get(field_id)
    if reported is None or reported.rect is None:
        return None
    return (reported.rect.width, reported.rect.height)


def resolve_geometry(scene: Scene, layout: LayoutMetrics) -> ResolvedGeometry:
    """Compute the capture rectangle and a destination rectangle for every visible field.

    Doxygen:
    - @param scene: Read-only scene snapshot.
    - @param layout: Rendered rectangles reported by the layout collaborator.
    - @return: ResolvedGeometry in capture-relative logical pixels.
    - @throws GeometryError: If nothing is visible or the metrics are inconsistent.
    """
    image = layout.image_area
    if image.width <= 0 or image.height <= 0:
        raise GeometryError(f"Image area has no extent: {image.width}x{image.height}")

    include_header, include_footer = bar_inclusion(scene)
    if include_header and layout.header is None:
        raise GeometryError("Header has text but no rendered bar was reported")
    if include_footer and layout.footer is None:
        raise GeometryError("Footer has text but no rendered bar was reported")

    visible_text = scene.visible_text_fields()
    if not _has_background(scene) and not visible_text and not scene.image_fields:
        raise GeometryError("Scene has no visible content to export")

    header_h = layout.header.height if include_header else 0.0
    footer_h = layout.footer.height if include_footer else 0.0
    rows = [image]
    if include_header:
        rows.append(layout.header)
    if include_footer:
        rows.append(layout.footer)
    left = min(r.left for r in rows)
    width = max(r.right for r in rows) - left
    top = layout.header.top if include_header else image.top
    height = header_h + image.height + footer_h
    capture = Rect(left, top, width, height)

    # bars are stacked against the image area with no gaps
    image_rect = Rect(image.left - left, header_h, image.width, image.height)
    header_rect = Rect(0.0, 0.0, width, header_h) if include_header else None
    footer_rect = Rect(0.0, header_h + image.height, width, footer_h) if include_footer else None

    placed: List[PlacedField] = []
    if header_rect is not None:
        placed.append(PlacedField(scene.header.id, TextKind.HEADER.value, header_rect, scene.header, _font_size(layout, scene.header.id)))

    for text_field in scene.regular_text_fields:
        if text_field.is_placeholder or not text_field.has_visible_text:
            continue
        cx = image_rect.left + image.width * text_field.x / 100.0
        cy = image_rect.top + image.height * text_field.y / 100.0
        w, h = _reported_size(layout, text_field.id) or (0.0, 0.0)
        placed.append(
            PlacedField(text_field.id, TextKind.REGULAR.value, Rect.centered_at(cx, cy, w, h), text_field, _font_size(layout, text_field.id))
        )

    for image_field in scene.image_fields:
        cx = image_rect.left + image.width * image_field.x / 100.0
        cy = image_rect.top + image.height * image_field.y / 100.0
        size = _reported_size(layout, image_field.id) or (
            image_field.width * image_field.scale,
            image_field.height * image_field.scale,
        )
        placed.append(PlacedField(image_field.id, "image", Rect.centered_at(cx, cy, size[0], size[1]), image_field))

    if footer_rect is not None:
        placed.append(PlacedField(scene.footer.id, TextKind.FOOTER.value, footer_rect, scene.footer, _font_size(layout, scene.footer.id)))

    logger.debug(
        "Resolved capture %.1fx%.1f (header=%s, footer=%s, fields=%d)",
        width, height, include_header, include_footer, len(placed),
    )
    return ResolvedGeometry(
        width=width,
        height=height,
        capture_rect=capture,
        image_rect=image_rect,
        header_rect=header_rect,
        footer_rect=footer_rect,
        fields=placed,
    )
