"""Apply the editor's CSS ``filter`` string to the background image."""

from __future__ import annotations

import logging
import re
from typing import List, Tuple

from PIL import Image, ImageEnhance, ImageFilter, ImageOps

logger = logging.getLogger(__name__)

_FUNC_RE = re.compile(r"([a-z-]+)\(\s*([^)]*?)\s*\)", re.IGNORECASE)

_SEPIA_MATRIX = (
    0.393, 0.769, 0.189, 0,
    0.349, 0.686, 0.168, 0,
    0.272, 0.534, 0.131, 0,
)


def _amount(raw: str, default: float = 1.0) -> float:
    raw = raw.strip().lower()
    if not raw:
        return default
    if raw.endswith("%"):
        return float(raw[:-1]) / 100.0
    if raw.endswith("px"):
        return float(raw[:-2])
    return float(raw)


def parse_filter(style: str) -> List[Tuple[str, float]]:
    """Split a CSS filter value into (function, amount) pairs, in order."""
    ops: List[Tuple[str, float]] = []
    for name, arg in _FUNC_RE.findall(style or ""):
        default = 0.0 if name.lower() == "blur" else 1.0
        try:
            ops.append((name.lower(), _amount(arg, default)))
        except ValueError:
            logger.debug("Ignoring filter %s(%s): unparsable amount", name, arg)
    return ops


def _blend(rgb: Image.Image, target: Image.Image, amount: float) -> Image.Image:
    return Image.blend(rgb, target, max(0.0, min(1.0, amount)))


def apply_image_style(img: Image.Image, style: str, scale: float = 1.0) -> Image.Image:
    """Return a filtered copy of ``img``; alpha is preserved and unknown functions are skipped.

    Blur radii are CSS pixels and are multiplied by ``scale``.
    """
    ops = parse_filter(style)
    if not ops:
        return img
    rgba = img.convert("RGBA")
    alpha = rgba.getchannel("A")
    rgb = rgba.convert("RGB")
    for name, amount in ops:
        if name == "grayscale":
            rgb = _blend(rgb, ImageOps.grayscale(rgb).convert("RGB"), amount)
        elif name == "sepia":
            rgb = _blend(rgb, rgb.convert("RGB", _SEPIA_MATRIX), amount)
        elif name == "invert":
            rgb = _blend(rgb, ImageOps.invert(rgb), amount)
        elif name == "brightness":
            rgb = ImageEnhance.Brightness(rgb).enhance(amount)
        elif name == "contrast":
            rgb = ImageEnhance.Contrast(rgb).enhance(amount)
        elif name == "saturate":
            rgb = ImageEnhance.Color(rgb).enhance(amount)
        elif name == "blur":
            if amount > 0:
                rgb = rgb.filter(ImageFilter.GaussianBlur(radius=amount * scale))
        else:
            logger.debug("Filter %s is not reproduced in the fallback path", name)
    out = rgb.convert("RGBA")
    out.putalpha(alpha)
    return out
