"""Build scene snapshots and layout metrics from editor-shaped JSON.

Scene documents use the editor's field names (``templateImage``,
``imageStyle``, ``textFields`` with ``type`` header/footer/text,
``imageFields``). Layout documents carry the rendered rectangles reported
by the page (``imageArea``, ``header``, ``footer`` and per-field ``fields``).
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .model import (
    FieldId,
    FieldLayout,
    ImageField,
    ImageRef,
    LayoutMetrics,
    Rect,
    Scene,
    TextField,
    TextKind,
)

# CSS font-size multiplier the editor applies to every text field
ON_SCREEN_FONT_FACTOR = 0.4


def _read_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data


def _resolve_src(src: str, base_dir: Optional[str]) -> str:
    if base_dir and not os.path.isabs(src):
        return os.path.join(base_dir, src)
    return src


def _text_kind(value: Any) -> TextKind:
    try:
        return TextKind(str(value or "text").lower())
    except ValueError:
        raise ValueError(f"Unknown text field type: {value!r}") from None


def text_field_from_dict(item: Mapping[str, Any]) -> TextField:
    if "id" not in item:
        raise ValueError("Text field is missing 'id'")
    return TextField(
        id=item["id"],
        kind=_text_kind(item.get("type")),
        text=str(item.get("text") or ""),
        x=float(item.get("x", 50.0)),
        y=float(item.get("y", 50.0)),
        font_size=float(item.get("fontSize", 40.0)),
        color=str(item.get("color") or "#ffffff"),
        font_family=str(item.get("fontFamily") or "Arial"),
        opacity=float(item.get("opacity", 100.0)),
        rotation=float(item.get("rotation", 0.0)),
        scale=float(item.get("scale", 1.0)),
    )


def image_field_from_dict(item: Mapping[str, Any], base_dir: Optional[str] = None) -> ImageField:
    if "id" not in item or not item.get("src"):
        raise ValueError("Image field needs both 'id' and 'src'")
    return ImageField(
        id=item["id"],
        src=ImageRef(src=_resolve_src(str(item["src"]), base_dir)),
        x=float(item.get("x", 50.0)),
        y=float(item.get("y", 50.0)),
        width=float(item.get("width", 100.0)),
        height=float(item.get("height", 100.0)),
        scale=float(item.get("scale", 1.0)),
        opacity=float(item.get("opacity", 100.0)),
        rotation=float(item.get("rotation", 0.0)),
    )


def scene_from_dict(data: Mapping[str, Any], base_dir: Optional[str] = None) -> Scene:
    """Create a Scene snapshot from an editor state mapping.

    Doxygen:
    - @param data: Mapping with templateImage, imageStyle, textFields, imageFields.
    - @param base_dir: Directory used to resolve relative image paths.
    - @return: Fresh Scene; images are referenced, not decoded yet.
    - @throws ValueError: On malformed fields, duplicate ids or repeated bars.
    """
    template = data.get("templateImage")
    background = ImageRef(src=_resolve_src(str(template), base_dir)) if template else None
    text_fields = [text_field_from_dict(item) for item in data.get("textFields") or []]
    image_fields = [image_field_from_dict(item, base_dir) for item in data.get("imageFields") or []]
    return Scene(
        background_image=background,
        image_style=str(data.get("imageStyle") or ""),
        text_fields=text_fields,
        image_fields=image_fields,
    )


def load_scene(path: str) -> Scene:
    return scene_from_dict(_read_json(path), base_dir=os.path.dirname(os.path.abspath(path)))


def rect_from_dict(item: Optional[Mapping[str, Any]]) -> Optional[Rect]:
    if item is None:
        return None
    try:
        return Rect(
            left=float(item.get("left", 0.0)),
            top=float(item.get("top", 0.0)),
            width=float(item["width"]),
            height=float(item["height"]),
        )
    except KeyError as exc:
        raise ValueError(f"Rectangle is missing {exc.args[0]!r}") from None


def _field_ids(scene: Optional[Scene]) -> Dict[str, FieldId]:
    if scene is None:
        return {}
    ids: List[FieldId] = [f.id for f in scene.text_fields] + [f.id for f in scene.image_fields]
    return {str(fid): fid for fid in ids}


def layout_from_dict(
    data: Mapping[str, Any],
    scene: Optional[Scene] = None,
    derive_font_sizes: bool = False,
) -> LayoutMetrics:
    """Create LayoutMetrics from a mapping of rendered rectangles.

    JSON object keys are strings, so field keys are matched back to the
    scene's ids when a scene is given. With ``derive_font_sizes`` every text
    field lacking a reported size gets the editor's on-screen size
    (``fontSize * 0.4``).
    """
    image_area = rect_from_dict(data.get("imageArea"))
    if image_area is None:
        raise ValueError("Layout is missing 'imageArea'")

    id_map = _field_ids(scene)
    fields: Dict[FieldId, FieldLayout] = {}
    for key, item in (data.get("fields") or {}).items():
        fid = id_map.get(str(key), key)
        size = item.get("fontSize")
        fields[fid] = FieldLayout(
            rect=rect_from_dict(item.get("rect")),
            font_size=float(size) if size is not None else None,
        )

    if derive_font_sizes and scene is not None:
        for text_field in scene.text_fields:
            current = fields.get(text_field.id, FieldLayout())
            if current.font_size is None:
                fields[text_field.id] = FieldLayout(
                    rect=current.rect,
                    font_size=text_field.font_size * ON_SCREEN_FONT_FACTOR,
                )

    return LayoutMetrics(
        image_area=image_area,
        header=rect_from_dict(data.get("header")),
        footer=rect_from_dict(data.get("footer")),
        fields=fields,
    )


def load_layout(path: str, scene: Optional[Scene] = None, derive_font_sizes: bool = False) -> LayoutMetrics:
    return layout_from_dict(_read_json(path), scene=scene, derive_font_sizes=derive_font_sizes)


def load_snapshot(scene_path: str, layout_path: str, derive_font_sizes: bool = True) -> Tuple[Scene, LayoutMetrics]:
    scene = load_scene(scene_path)
    return scene, load_layout(layout_path, scene=scene, derive_font_sizes=derive_font_sizes)
