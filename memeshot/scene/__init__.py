"""Scene snapshot model and loaders."""

from .model import (
    FieldLayout,
    ImageField,
    ImageRef,
    LayoutMetrics,
    Rect,
    Scene,
    TextField,
    TextKind,
)
from .loader import (
    layout_from_dict,
    load_layout,
    load_scene,
    load_snapshot,
    scene_from_dict,
)

__all__ = [
    "FieldLayout",
    "ImageField",
    "ImageRef",
    "LayoutMetrics",
    "Rect",
    "Scene",
    "TextField",
    "TextKind",
    "layout_from_dict",
    "load_layout",
    "load_scene",
    "load_snapshot",
    "scene_from_dict",
]
